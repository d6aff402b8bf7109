"""
Calendar-day helpers.

Days are compared and stored as plain calendar dates (``YYYY-MM-DD``); the
time of day is always dropped. Instants are timezone-aware UTC.
"""
from datetime import date, datetime, timedelta, tzinfo, UTC
from typing import Optional, Union

DayLike = Union[date, datetime, str]


def normalize_day(value: DayLike, tz: Optional[tzinfo] = None) -> date:
    """
    Turn a date, datetime or ISO string into a calendar day.

    Aware datetimes are converted to ``tz`` (system local when None) before the
    time component is dropped, so 23:30 UTC and 01:30 the next day in Paris
    land on the day the site actually saw.

    Raises:
        ValueError: If a string is not an ISO 8601 date or datetime
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Day cannot be empty")
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            return normalize_day(datetime.fromisoformat(text.replace('Z', '+00:00')), tz)
        except ValueError:
            raise ValueError(
                f"Invalid day '{value}'. Must be ISO 8601 (e.g., '2024-05-01')"
            )
    raise ValueError(f"Unsupported day value: {value!r}")


def day_key(value: DayLike, tz: Optional[tzinfo] = None) -> str:
    """Serialized form of a day, used as the storage and cache key."""
    return normalize_day(value, tz).isoformat()


def next_day(value: DayLike, tz: Optional[tzinfo] = None) -> date:
    return normalize_day(value, tz) + timedelta(days=1)


def utc_now() -> datetime:
    return datetime.now(UTC)


def format_instant(value: datetime) -> str:
    """
    Serialize an instant as fixed-width ISO 8601 UTC, so stored timestamps
    sort correctly as strings. Naive values are taken to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")
