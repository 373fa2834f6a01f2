from __future__ import annotations

import logging

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from shared.config import load_backend_config


logger = logging.getLogger("tutordesk_backend.sentry_init")

# Request body keys that may carry student contact details.
_SCRUBBED_KEYS = {"email", "phone", "phone_number", "whatsapp_phone", "full_name"}


def setup_sentry(*, service_name: str = "tutordesk-backend") -> bool:
    """
    Optional Sentry error tracking.

    - Enable with `SENTRY_DSN`; without it this is a no-op.
    - Configure environment, release, and sampling via SENTRY_* settings.
    """
    cfg = load_backend_config()
    dsn = str(cfg.sentry_dsn or "").strip()

    if not dsn:
        logger.info("sentry_disabled_no_dsn")
        return False

    environment = str(cfg.sentry_environment or cfg.app_env or "development").strip()
    release = str(cfg.sentry_release or "").strip() or None
    traces_sample_rate = float(cfg.sentry_traces_sample_rate if cfg.sentry_traces_sample_rate is not None else 0.1)
    profiles_sample_rate = float(cfg.sentry_profiles_sample_rate if cfg.sentry_profiles_sample_rate is not None else 0.0)

    integrations = [
        FastApiIntegration(transaction_style="url"),
        LoggingIntegration(
            level=logging.INFO,  # breadcrumbs
            event_level=logging.ERROR,  # events
        ),
    ]

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            release=release,
            traces_sample_rate=traces_sample_rate,
            profiles_sample_rate=profiles_sample_rate,
            integrations=integrations,
            send_default_pii=False,
            attach_stacktrace=True,
            before_send=_before_send,
        )
    except Exception:
        logger.exception("sentry_setup_failed")
        return False

    logger.info(
        "sentry_enabled",
        extra={
            "service_name": service_name,
            "environment": environment,
            "release": release or "unknown",
            "traces_sample_rate": traces_sample_rate,
        },
    )
    return True


def _before_send(event, hint):
    """Drop contact details from captured request bodies."""
    data = (event.get("request") or {}).get("data")
    if isinstance(data, dict):
        for key in list(data.keys()):
            if key in _SCRUBBED_KEYS:
                data[key] = "[scrubbed]"
    return event
