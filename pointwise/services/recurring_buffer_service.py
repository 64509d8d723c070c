"""
Recurring buffer service.

Keeps a rolling buffer of materialized instances for every active
recurring template. Each series is processed in its own error boundary;
re-running the job is safe because days that already hold an instance are
skipped and the storage layer ignores duplicate instance keys.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional

from pointwise.core.config import get_settings
from pointwise.core.logger import setup_logger
from pointwise.interfaces.task_repository import ITaskRepository, SeriesRef
from pointwise.interfaces.user_repository import IUserRepository
from pointwise.models.buffer import BufferRunSummary
from pointwise.models.context import ExecutionContext
from pointwise.models.recurrence import DailyPattern, MonthlyPattern, RecurrencePattern
from pointwise.models.task import Task, TaskInstanceCreate
from pointwise.services.recurrence_engine import (
    DEFAULT_LIMITS,
    RecurrenceLimits,
    build_instance_key,
    find_next_occurrence,
    generate_occurrences,
    is_active,
)
from pointwise.utils.datetime_utils import (
    add_calendar_days,
    add_months,
    date_key,
    ensure_utc,
    local_date,
    merge_local_date_and_time,
    now_utc,
    start_of_local_date,
)

logger = setup_logger(__name__)


def buffer_horizon(
    pattern: RecurrencePattern,
    ctx: ExecutionContext,
    limits: RecurrenceLimits = DEFAULT_LIMITS,
) -> date:
    """
    Last local day (inclusive) the buffer must cover.

    Counts include today's period: 30 daily buffer days end on today + 29,
    12 weekly periods end 11 weeks out, 12 monthly periods 11 months out.
    Weekly and monthly horizons also stop at the 12th matching day from
    today, so the buffer never holds more than 12 upcoming occurrences.
    """
    today = ctx.today
    if isinstance(pattern, DailyPattern):
        horizon = today + timedelta(days=limits.daily_buffer_days - 1)
    else:
        if isinstance(pattern, MonthlyPattern):
            horizon = add_months(today, limits.monthly_buffer_months - 1)
        else:
            horizon = today + timedelta(weeks=limits.weekly_buffer_weeks - 1)
        upcoming = generate_occurrences(
            pattern,
            start_of_local_date(today, ctx.time_zone),
            ctx,
            limits.buffer_batch_size,
            limits,
        )
        if len(upcoming) == limits.buffer_batch_size:
            horizon = min(horizon, local_date(upcoming[-1], ctx.time_zone))
    if pattern.end_date is not None:
        horizon = min(horizon, pattern.end_date)
    return horizon


def is_upcoming(occurrence: datetime, ctx: ExecutionContext) -> bool:
    """True unless the slot lies before the current minute."""
    return occurrence >= ctx.now.replace(second=0, microsecond=0)


def has_upcoming_slot(pattern: RecurrencePattern, day: date, ctx: ExecutionContext) -> bool:
    return any(
        is_upcoming(merge_local_date_and_time(day, time_of_day, ctx.time_zone), ctx)
        for time_of_day in pattern.times_of_day
    )


def candidate_days(
    pattern: RecurrencePattern,
    last_start: Optional[datetime],
    ctx: ExecutionContext,
    limits: RecurrenceLimits = DEFAULT_LIMITS,
) -> list[date]:
    """
    Calendar days that may still need an instance.

    Without a previous instance only the next occurrence that still has an
    upcoming time slot is returned; it seeds the series and later runs fill
    the rest of the buffer. Days before today are never candidates.
    """
    tz = ctx.time_zone

    if last_start is None:
        base_day = max(ctx.today, pattern.start_date) - timedelta(days=1)
        first = find_next_occurrence(pattern, start_of_local_date(base_day, tz), ctx, limits=limits)
        if first is not None and not has_upcoming_slot(pattern, local_date(first, tz), ctx):
            # Every slot of today's occurrence has passed
            first = find_next_occurrence(pattern, first, ctx, limits=limits)
        return [local_date(first, tz)] if first else []

    horizon = buffer_horizon(pattern, ctx, limits)
    first_day = max(local_date(last_start, tz) + timedelta(days=1), ctx.today)

    if isinstance(pattern, DailyPattern):
        days: list[date] = []
        day = max(first_day, pattern.start_date)
        while day <= horizon:
            days.append(day)
            day += timedelta(days=1)
        return days

    search_start = start_of_local_date(first_day, tz)
    horizon_key = horizon.isoformat()
    return [
        local_date(occurrence, tz)
        for occurrence in generate_occurrences(
            pattern, search_start, ctx, limits.buffer_batch_size, limits
        )
        if date_key(occurrence, tz) <= horizon_key
    ]


def fan_out(template: Task, day: date, ctx: ExecutionContext) -> list[TaskInstanceCreate]:
    """
    One instance per configured time of day, copying the template's content.

    Slots that have already passed are left out.
    """
    pattern = template.recurrence_pattern
    instances = []
    for time_of_day in pattern.times_of_day:
        occurrence = merge_local_date_and_time(day, time_of_day, ctx.time_zone)
        if not is_upcoming(occurrence, ctx):
            continue
        instances.append(
            TaskInstanceCreate(
                user_id=template.user_id,
                title=template.title,
                description=template.description,
                category=template.category,
                xp_value=template.xp_value,
                start_date=day,
                start_time=time_of_day,
                due_date=day,
                due_time=time_of_day,
                start_at=occurrence,
                due_at=occurrence,
                source_recurring_task_id=template.id,
                recurrence_instance_key=build_instance_key(day, time_of_day),
            )
        )
    return instances


class RecurringBufferService:
    """Service that materializes upcoming instances of recurring templates."""

    def __init__(
        self,
        task_repo: ITaskRepository,
        user_repo: IUserRepository,
        limits: RecurrenceLimits = DEFAULT_LIMITS,
        default_time_zone: Optional[str] = None,
    ):
        self.task_repo = task_repo
        self.user_repo = user_repo
        self.limits = limits
        self.default_time_zone = default_time_zone or get_settings().DEFAULT_TIME_ZONE

    async def resolve_time_zone(self, user_id: str) -> str:
        """User's preferred timezone, or the configured default."""
        preferences = await self.user_repo.get_preferences(user_id)
        return preferences.preferred_time_zone or self.default_time_zone

    async def run(self, now: Optional[datetime] = None) -> BufferRunSummary:
        """
        Process every recurring template once.

        Args:
            now: Current instant (defaults to the wall clock)

        Returns:
            Summary with processed series, generated instances and
            per-series error messages
        """
        now = ensure_utc(now) or now_utc()
        summary = BufferRunSummary(timestamp=now)

        refs = await self.task_repo.list_template_refs()
        logger.info(f"Recurring buffer run started: {len(refs)} templates")

        for ref in refs:
            try:
                generated = await self._process_ref(ref, now)
            except Exception as e:
                logger.error(f"Recurring buffer failed for series {ref.id}: {e}")
                summary.processed += 1
                summary.errors.append(f"RecurringTask {ref.id}: {e}")
                continue
            if generated is None:
                continue
            summary.processed += 1
            summary.generated += generated

        logger.info(
            f"Recurring buffer run finished: processed={summary.processed} "
            f"generated={summary.generated} errors={len(summary.errors)}"
        )
        return summary

    async def _process_ref(self, ref: SeriesRef, now: datetime) -> Optional[int]:
        # Loading the template validates its stored pattern
        template = await self.task_repo.get(ref.user_id, ref.id)
        if template is None or not template.is_template:
            return None

        ctx = ExecutionContext(now=now, time_zone=await self.resolve_time_zone(ref.user_id))
        if not is_active(template.recurrence_pattern, ctx):
            logger.debug(f"Series {ref.id} ended on {template.recurrence_pattern.end_date}")
            return None
        return await self.process_series(template, ctx)

    async def process_series(self, template: Task, ctx: ExecutionContext) -> int:
        """
        Fill the buffer of one template.

        Returns:
            Number of instances inserted
        """
        tz = ctx.time_zone
        # Edited instances may have been moved; they do not mark generation progress
        last = await self.task_repo.find_latest_instance(
            template.user_id, template.id, only_non_edited=True
        )
        last_start = None
        if last is not None:
            last_start = last.start_at or start_of_local_date(last.start_date, tz)

        instances: list[TaskInstanceCreate] = []
        for day in candidate_days(template.recurrence_pattern, last_start, ctx, self.limits):
            slots = fan_out(template, day, ctx)
            if not slots:
                continue
            day_start = start_of_local_date(day, tz)
            existing = await self.task_repo.find_instance_in_range(
                template.user_id,
                template.id,
                day_start,
                add_calendar_days(day_start, 1, tz),
            )
            if existing is not None:
                logger.debug(f"Series {template.id}: {day.isoformat()} already materialized")
                continue
            instances.extend(slots)

        if not instances:
            return 0

        created = await self.task_repo.create_instances(instances)
        await self.task_repo.set_next_occurrence(
            template.user_id, template.id, instances[-1].start_at
        )
        logger.info(f"Series {template.id}: generated {created} instances")
        return created
