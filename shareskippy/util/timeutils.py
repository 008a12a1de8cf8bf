"""Time helpers.

All timestamps are stored as naive UTC datetimes. These helpers keep the
conversion in one place.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    """Return the current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def day_window(days_from_today: int, now: datetime | None = None) -> tuple[datetime, datetime]:
    """Return ``[start, end)`` covering the whole UTC day offset from today."""
    start = start_of_day(now or utcnow()) + timedelta(days=days_from_today)
    return start, start + timedelta(days=1)
