"""
Datetime utility functions for handling timezone-aware datetimes.

All wall-clock reads in the engine go through utc_now() so tests can freeze
time with a single patch.
"""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Return the current datetime in UTC timezone.

    Returns:
        A timezone-aware datetime object representing the current time in UTC.

    Example:
        >>> from entrance.core.datetime_utils import utc_now
        >>> utc_now().tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def ensure_timezone_aware(dt: Optional[datetime]) -> datetime:
    """
    Ensure a datetime object is timezone-aware (UTC).
    SQLite returns naive datetimes even for DateTime(timezone=True) columns.

    Raises:
        ValueError: If dt is None
    """
    if dt is None:
        raise ValueError("datetime cannot be None")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def milliseconds_between(start: Optional[datetime], end: datetime) -> int:
    """
    Whole milliseconds from ``start`` to ``end``, never negative.

    Returns 0 when start is None.
    """
    if start is None:
        return 0
    delta = ensure_timezone_aware(end) - ensure_timezone_aware(start)
    return max(0, int(delta.total_seconds() * 1000))
