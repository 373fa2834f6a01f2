"""
Timestamp helpers.

Documents written by the web console hold Firestore timestamps, while older
imports carry ISO strings, epoch numbers or `{_seconds, _nanoseconds}` maps.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_datetime(value: Any) -> Optional[datetime]:
    """Best-effort conversion to an aware UTC datetime; None when unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, dict):
        seconds = value.get("_seconds", value.get("seconds"))
        if seconds is None:
            return None
        return to_datetime(float(seconds))
    if isinstance(value, (int, float)):
        ts = float(value)
        # Millisecond epochs are 13 digits.
        if ts > 1e11:
            ts = ts / 1000.0
        try:
            return datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    s = str(value).strip()
    if not s:
        return None
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def sort_key_desc(value: Any) -> float:
    """Sort key for newest-first ordering; missing timestamps sort last."""
    dt = to_datetime(value)
    return -dt.timestamp() if dt else float("inf")
