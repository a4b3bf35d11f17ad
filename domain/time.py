"""
Domain clock helpers (pure).

Every timestamp stored on an entity is an aware datetime at offset 0. The
repositories serialize with `isoformat()` and rely on that.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def require_utc_timestamp(name: str, value: datetime) -> None:
    """Raise ValueError unless `value` is timezone-aware with a zero UTC offset."""

    offset = value.utcoffset() if value.tzinfo is not None else None
    if offset is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if offset != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0)")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
