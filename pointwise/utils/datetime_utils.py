"""
Timezone-aware datetime utilities.

Every "day boundary" in the recurrence code goes through this module.
Instants are timezone-aware UTC datetimes; calendar days are resolved in the
user's IANA timezone, never from raw UTC midnights.
"""

import calendar
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# UTC timezone constant
UTC = timezone.utc

TIME_OF_DAY_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def now_utc() -> datetime:
    """
    Get current UTC datetime (timezone-aware).

    Returns:
        datetime: Current UTC time with tzinfo set to UTC
    """
    return datetime.now(UTC)


def resolve_time_zone(time_zone: str) -> ZoneInfo:
    """
    Load an IANA timezone.

    Raises:
        ValueError: If the name is not a known timezone
    """
    try:
        return ZoneInfo(time_zone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {time_zone!r}") from exc


def is_valid_time_zone(time_zone: str) -> bool:
    try:
        resolve_time_zone(time_zone)
    except ValueError:
        return False
    return True


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is timezone-aware and in UTC.

    Args:
        dt: datetime to convert (can be None, naive, or timezone-aware)

    Returns:
        Optional[datetime]: UTC timezone-aware datetime, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive datetime - assume UTC
        return dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def to_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert to the naive-UTC form stored in the database."""
    if dt is None:
        return None
    return ensure_utc(dt).replace(tzinfo=None)


def local_date(instant: datetime, time_zone: str) -> date:
    """Calendar date of an instant in the given timezone."""
    return ensure_utc(instant).astimezone(resolve_time_zone(time_zone)).date()


def date_key(instant: datetime, time_zone: str) -> str:
    """
    Calendar-day key (YYYY-MM-DD) of an instant in the given timezone.

    Day-granularity comparisons use this key instead of comparing instants,
    which breaks across DST and UTC-offset boundaries.
    """
    return local_date(instant, time_zone).isoformat()


def start_of_local_date(day: date, time_zone: str) -> datetime:
    """
    Instant of local midnight for a calendar date.

    When midnight does not exist (DST gap at 00:00) the first instant of
    the day after the gap is returned, so the date key is still `day`.
    """
    tz = resolve_time_zone(time_zone)
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(UTC)


def start_of_day(instant: datetime, time_zone: str) -> datetime:
    """
    Instant of local midnight of `instant`'s calendar date in `time_zone`.

    Example:
        >>> start_of_day(datetime(2024, 1, 19, 23, 0, tzinfo=UTC), "Asia/Tokyo")
        datetime(2024, 1, 19, 15, 0, tzinfo=timezone.utc)  # 2024-01-20 00:00 JST
    """
    return start_of_local_date(local_date(instant, time_zone), time_zone)


def add_calendar_days(instant: datetime, days: int, time_zone: str) -> datetime:
    """
    Add calendar days in the local calendar, keeping the local wall-clock time.

    This is not `instant + timedelta(days=n)`: across a DST change the
    result differs from n * 24 hours.
    """
    tz = resolve_time_zone(time_zone)
    local = ensure_utc(instant).astimezone(tz).replace(tzinfo=None)
    shifted = local + timedelta(days=days)
    return shifted.replace(tzinfo=tz).astimezone(UTC)


def add_months(day: date, months: int) -> date:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def parse_time_of_day(value: str) -> time:
    """
    Parse an "HH:MM" string.

    Raises:
        ValueError: If the string is not a 24-hour HH:MM time
    """
    match = TIME_OF_DAY_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Invalid time of day: {value!r} (expected HH:MM)")
    return time(int(match.group(1)), int(match.group(2)))


def merge_date_and_time(day_instant: datetime, time_of_day: str, time_zone: str) -> datetime:
    """
    Instant for a local "HH:MM" time on the local calendar day of `day_instant`.

    Example:
        >>> day = start_of_day(datetime(2024, 1, 20, tzinfo=UTC), "Asia/Tokyo")
        >>> merge_date_and_time(day, "09:00", "Asia/Tokyo")
        datetime(2024, 1, 20, 0, 0, tzinfo=timezone.utc)  # 09:00 JST
    """
    return merge_local_date_and_time(local_date(day_instant, time_zone), time_of_day, time_zone)


def merge_local_date_and_time(day: date, time_of_day: Optional[str], time_zone: str) -> datetime:
    """Instant for a local calendar date plus an optional "HH:MM" time."""
    if time_of_day is None:
        return start_of_local_date(day, time_zone)
    tz = resolve_time_zone(time_zone)
    return datetime.combine(day, parse_time_of_day(time_of_day), tzinfo=tz).astimezone(UTC)


def sunday_based_weekday(day: date) -> int:
    """Weekday number with 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7
