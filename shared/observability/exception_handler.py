"""
Shared exception handler for TutorDesk.

Provides observable, intention-revealing patterns for exception handling.
Use this instead of silent `except: pass` to ensure all exceptions are logged and counted.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger("tutordesk.exceptions")

_LOGRECORD_RESERVED_KEYS = set(
    logging.LogRecord(
        name="",
        level=0,
        pathname="",
        lineno=0,
        msg="",
        args=(),
        exc_info=None,
    ).__dict__.keys()
)
# Common computed/reserved attributes that aren't always present in __dict__ at construction time.
_LOGRECORD_RESERVED_KEYS.update({"message", "asctime"})


def swallow_exception(
    exc: Exception,
    *,
    context: str,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log and count a swallowed exception with context.

    Use this function when an exception needs to be suppressed but should still
    be observable through logs and metrics. This is appropriate for:
    - Best-effort operations (OTP phone enrichment, cache reads/writes)
    - Fallback paths where a secondary source answers instead (search)
    - Metrics collection that must not break the runtime

    DO NOT use this for core logic paths - those should fail fast.

    Args:
        exc: The exception that was caught
        context: Short, stable, meaningful context string (used in metrics labels)
        extra: Additional context to include in logs

    Example:
        try:
            phone = lookup_phone_from_otp(email)
        except Exception as e:
            swallow_exception(
                e,
                context="student_otp_enrichment",
                extra={"student_id": student_id, "module": __name__},
            )
    """
    exc_type_name = type(exc).__name__

    log_extra: Dict[str, Any] = {"context": context, "exception_type": exc_type_name}
    for key, value in (extra or {}).items():
        # Python logging forbids overwriting LogRecord attributes (e.g. "module"),
        # so we sanitize to prevent runtime failures in "best-effort" paths.
        if key in _LOGRECORD_RESERVED_KEYS or key in log_extra:
            log_extra[f"extra_{key}"] = value
        else:
            log_extra[key] = value

    logger.exception(
        "Swallowed exception",
        extra=log_extra,
    )

    # Only the API service exports Prometheus metrics; triggers and scripts log only.
    try:
        from TutorDeskBackend.metrics import swallowed_exceptions_total

        swallowed_exceptions_total.labels(context=context, exception_type=exc_type_name).inc()
    except ImportError:
        pass
    except Exception as metrics_exc:
        logger.debug("swallowed_exception_metric_failed error=%s", metrics_exc)
