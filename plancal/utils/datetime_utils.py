"""
Timezone-aware datetime utilities.

This module provides utilities for working with timezone-aware datetimes,
ensuring consistent handling across the application.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

# UTC timezone constant
UTC = timezone.utc

MINUTES_PER_DAY = 24 * 60


def now_utc() -> datetime:
    """
    Get current UTC datetime (timezone-aware).

    Returns:
        datetime: Current UTC time with tzinfo set to UTC
    """
    return datetime.now(UTC)


def get_user_today(user_timezone: str, now: Optional[datetime] = None) -> date:
    """
    Get today's date in the user's timezone.

    Args:
        user_timezone: IANA timezone name (e.g., "Asia/Tokyo", "America/New_York")
        now: Reference instant, defaults to the current time

    Returns:
        date: Today's date in the user's timezone
    """
    tz = ZoneInfo(user_timezone)
    return ensure_utc(now or now_utc()).astimezone(tz).date()


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is timezone-aware and in UTC.

    Naive datetimes are assumed to already be UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_local_datetime(value: datetime, user_timezone: str) -> datetime:
    """Convert an instant to the user's wall clock (naive values are taken as UTC)."""
    return ensure_utc(value).astimezone(ZoneInfo(user_timezone))


def local_to_utc(day: date, minutes: int, user_timezone: str) -> datetime:
    """Build the UTC instant for a local date and minute-of-day (24:00 allowed)."""
    midnight = datetime.combine(day, time(0, 0), tzinfo=ZoneInfo(user_timezone))
    return (midnight + timedelta(minutes=minutes)).astimezone(UTC)


def time_to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def minutes_to_time(minutes: int) -> time:
    """
    Convert minutes since midnight to a time.

    24:00 has no ``time`` representation and is mapped to 23:59.
    """
    if minutes >= MINUTES_PER_DAY:
        return time(23, 59)
    hours, mins = divmod(max(minutes, 0), 60)
    return time(hours, mins)
