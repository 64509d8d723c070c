"""
Recurrence engine.

Pure functions that turn a validated recurrence pattern into calendar days.
The unit of output is a calendar day in the context timezone, returned as
the instant of local midnight; fanning a day out into one instance per
time of day is done by the buffer service.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from pointwise.models.context import ExecutionContext
from pointwise.models.recurrence import DailyPattern, MonthlyPattern, RecurrencePattern, WeeklyPattern
from pointwise.utils.datetime_utils import add_months, local_date, start_of_local_date, sunday_based_weekday


@dataclass(frozen=True)
class RecurrenceLimits:
    """Policy constants for search horizons and buffer sizes."""

    max_weeks_to_search: int = 12
    max_months_to_search: int = 12
    default_occurrences: int = 30
    daily_buffer_days: int = 30
    weekly_buffer_weeks: int = 12
    monthly_buffer_months: int = 12
    # Cap passed to generate_occurrences by the buffer service
    buffer_batch_size: int = 12


DEFAULT_LIMITS = RecurrenceLimits()


def matches_day(pattern: RecurrencePattern, day: date) -> bool:
    """
    Check whether a calendar day carries an occurrence.

    Month days that do not exist in a month (31 in April, 30 in February)
    never match, so such months simply have no occurrence.
    """
    if isinstance(pattern, DailyPattern):
        return True
    if isinstance(pattern, WeeklyPattern):
        return sunday_based_weekday(day) in pattern.days_of_week
    if isinstance(pattern, MonthlyPattern):
        return day.day in pattern.days_of_month
    raise TypeError(f"Unsupported recurrence pattern: {type(pattern).__name__}")


def is_active(pattern: RecurrencePattern, ctx: ExecutionContext) -> bool:
    """A series is active while it has no end date or its end date is not past."""
    return pattern.end_date is None or pattern.end_date >= ctx.today


def _past_end(pattern: RecurrencePattern, day: date) -> bool:
    return pattern.end_date is not None and day > pattern.end_date


def build_instance_key(day: date, time_of_day: Optional[str] = None) -> str:
    """
    Stable identifier of an occurrence inside its series.

    Example:
        >>> build_instance_key(date(2025, 3, 17), "09:00")
        '2025-03-17T09:00'
    """
    if time_of_day:
        return f"{day.isoformat()}T{time_of_day}"
    return day.isoformat()


def find_next_occurrence(
    pattern: RecurrencePattern,
    base_date: datetime,
    ctx: ExecutionContext,
    last_occurrence_date: Optional[datetime] = None,
    limits: RecurrenceLimits = DEFAULT_LIMITS,
) -> Optional[datetime]:
    """
    Earliest occurrence strictly after a reference day.

    Args:
        pattern: Validated recurrence pattern
        base_date: Reference instant when no previous occurrence is known
        ctx: Execution context (timezone resolves the reference day)
        last_occurrence_date: Previous occurrence; takes precedence over base_date
        limits: Search horizons

    Returns:
        Local midnight of the next matching day, or None when the series
        has no occurrence within the search horizon or before its end date
    """
    reference = last_occurrence_date or base_date
    first = local_date(reference, ctx.time_zone) + timedelta(days=1)
    # No occurrence precedes the anchor date
    first = max(first, pattern.start_date)

    if isinstance(pattern, DailyPattern):
        limit = first + timedelta(days=1)
    elif isinstance(pattern, WeeklyPattern):
        limit = first + timedelta(weeks=limits.max_weeks_to_search)
    else:
        limit = add_months(first, limits.max_months_to_search)

    day = first
    while day < limit:
        if _past_end(pattern, day):
            return None
        if matches_day(pattern, day):
            return start_of_local_date(day, ctx.time_zone)
        day += timedelta(days=1)
    return None


def generate_occurrences(
    pattern: RecurrencePattern,
    start_date: datetime,
    ctx: ExecutionContext,
    max_occurrences: Optional[int] = None,
    limits: RecurrenceLimits = DEFAULT_LIMITS,
) -> list[datetime]:
    """
    Enumerate occurrences on or after start_date, ascending.

    Stops at max_occurrences, at the pattern's end date, or at the search
    horizon, whichever comes first. The horizon bounds the walk for
    patterns that rarely match (e.g. only day 31).
    """
    count = max_occurrences if max_occurrences is not None else limits.default_occurrences
    if count <= 0:
        return []

    first = max(local_date(start_date, ctx.time_zone), pattern.start_date)
    if isinstance(pattern, DailyPattern):
        limit = first + timedelta(days=count)
    elif isinstance(pattern, WeeklyPattern):
        limit = first + timedelta(weeks=max(count, limits.max_weeks_to_search))
    else:
        limit = add_months(first, max(count, limits.max_months_to_search))

    occurrences: list[datetime] = []
    day = first
    while day < limit and len(occurrences) < count:
        if _past_end(pattern, day):
            break
        if matches_day(pattern, day):
            occurrences.append(start_of_local_date(day, ctx.time_zone))
        day += timedelta(days=1)
    return occurrences
