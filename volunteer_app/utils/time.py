"""Clock and timestamp helpers."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock used by services."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalize a timestamp to aware UTC.

    SQLite returns naive datetimes for ``DateTime(timezone=True)`` columns; all
    values are written in UTC, so naive values are interpreted as UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

