"""
Task conversion service.

State transitions between one-time tasks, recurring templates, generated
instances and edited instances. Every function runs inside a caller-owned
ITaskTransaction so that deletes, updates and template metadata changes
commit or roll back together.
"""

from __future__ import annotations

from typing import Any, Optional

from pointwise.core.exceptions import PolicyError
from pointwise.core.logger import setup_logger
from pointwise.interfaces.task_repository import ITaskTransaction
from pointwise.models.context import ExecutionContext
from pointwise.models.enums import RecurrenceChoice, RecurrenceKind
from pointwise.models.patch import TaskPatch, resolve
from pointwise.models.recurrence import MonthlyPattern, RecurrencePattern, WeeklyPattern, build_pattern
from pointwise.models.task import Task
from pointwise.services.recurrence_engine import build_instance_key
from pointwise.utils.datetime_utils import merge_local_date_and_time

logger = setup_logger(__name__)

DATE_TIME_FIELDS = ("start_date", "start_time", "due_date", "due_time")
CONTENT_FIELDS = ("title", "description", "category", "xp_value")
# Fields that cannot be cleared
_NOT_NULL_FIELDS = frozenset({"title", "xp_value"})

DEFAULT_TIME_OF_DAY = "00:00"


def preserve_date_time_fields(task: Task, patch: TaskPatch) -> dict[str, Any]:
    """
    Date/time values after applying the patch.

    A field the patch sets (even to None) takes the patched value; an unset
    field keeps the task's value, including None. This keeps date-less
    tasks date-less through conversions.
    """
    return {name: resolve(getattr(patch, name), getattr(task, name)) for name in DATE_TIME_FIELDS}


def resolve_instants(preserved: dict[str, Any], ctx: ExecutionContext) -> dict[str, Any]:
    """start_at / due_at for preserved calendar fields in the context timezone."""
    start_date = preserved.get("start_date")
    due_date = preserved.get("due_date")
    return {
        "start_at": (
            merge_local_date_and_time(start_date, preserved.get("start_time"), ctx.time_zone)
            if start_date
            else None
        ),
        "due_at": (
            merge_local_date_and_time(due_date, preserved.get("due_time"), ctx.time_zone)
            if due_date
            else None
        ),
    }


def build_update_data(patch: TaskPatch) -> dict[str, Any]:
    """Content fields explicitly set by the patch."""
    data: dict[str, Any] = {}
    for name in CONTENT_FIELDS:
        if not patch.is_set(name):
            continue
        value = patch.value(name)
        if value is None and name in _NOT_NULL_FIELDS:
            continue
        data[name] = value.strip() if isinstance(value, str) else value
    return data


def build_date_time_data(task: Task, patch: TaskPatch, ctx: ExecutionContext) -> dict[str, Any]:
    preserved = preserve_date_time_fields(task, patch)
    return {**preserved, **resolve_instants(preserved, ctx)}


def clear_recurrence_fields() -> dict[str, Any]:
    """Column values of a task that has no part in any series."""
    return {
        "recurrence_pattern": None,
        "next_occurrence": None,
        "edited_instance_keys": [],
        "is_recurring_instance": False,
        "source_recurring_task_id": None,
        "recurrence_instance_key": None,
        "is_edited_instance": False,
    }


def instance_key_of(task: Task) -> str:
    if task.recurrence_instance_key:
        return task.recurrence_instance_key
    return build_instance_key(task.start_date, task.start_time)


def requested_kind(patch: TaskPatch) -> Optional[RecurrenceKind]:
    choice: Optional[RecurrenceChoice] = patch.value("recurrence")
    return choice.to_kind() if choice is not None else None


def build_pattern_from_patch(
    task: Task,
    patch: TaskPatch,
    ctx: ExecutionContext,
) -> RecurrencePattern:
    """
    Pattern requested by the patch, falling back to the task's current pattern.

    Raises:
        PolicyError: If the patch does not name a recurrence kind
        ValidationError: If the resulting pattern is not valid
    """
    kind = requested_kind(patch)
    if kind is None:
        raise PolicyError("A recurrence pattern change requires recurrence daily, weekly or monthly")

    current = task.recurrence_pattern
    preserved = preserve_date_time_fields(task, patch)

    times_of_day = patch.value("times_of_day")
    if not times_of_day:
        if current is not None:
            times_of_day = list(current.times_of_day)
        else:
            times_of_day = [preserved["start_time"] or DEFAULT_TIME_OF_DAY]

    days_of_week = patch.value("recurrence_days")
    if days_of_week is None and isinstance(current, WeeklyPattern):
        days_of_week = list(current.days_of_week)

    days_of_month = patch.value("recurrence_month_days")
    if days_of_month is None and isinstance(current, MonthlyPattern):
        days_of_month = list(current.days_of_month)

    start_date = preserved["start_date"]
    if start_date is None:
        start_date = current.start_date if current is not None else ctx.today

    return build_pattern(
        kind,
        start_date=start_date,
        times_of_day=times_of_day,
        days_of_week=days_of_week,
        days_of_month=days_of_month,
        end_date=current.end_date if current is not None else None,
    )


async def convert_to_recurring(
    tx: ITaskTransaction,
    task: Task,
    patch: TaskPatch,
    ctx: ExecutionContext,
) -> Task:
    """
    Turn a one-time task into a recurring template.

    Raises:
        PolicyError: If the patch does not request a recurrence kind
    """
    pattern = build_pattern_from_patch(task, patch, ctx)
    data = {
        **build_update_data(patch),
        **build_date_time_data(task, patch, ctx),
        "recurrence_pattern": pattern,
        "edited_instance_keys": [],
        "next_occurrence": None,
    }
    logger.info(f"Task {task.id}: ONE_TIME -> TEMPLATE ({pattern.kind})")
    return await tx.update(task.user_id, task.id, data)


async def convert_to_one_time(
    tx: ITaskTransaction,
    task: Task,
    patch: TaskPatch,
    ctx: ExecutionContext,
) -> Task:
    """Turn a template into a one-time task, deleting every instance it owns."""
    deleted = await tx.delete_instances(task.user_id, task.id)
    data = {
        **clear_recurrence_fields(),
        **build_date_time_data(task, patch, ctx),
        **build_update_data(patch),
    }
    logger.info(f"Task {task.id}: TEMPLATE -> ONE_TIME ({deleted} instances deleted)")
    return await tx.update(task.user_id, task.id, data)


async def update_recurrence_pattern(
    tx: ITaskTransaction,
    task: Task,
    patch: TaskPatch,
    ctx: ExecutionContext,
) -> list[Task]:
    """
    Replace a template's pattern.

    Non-edited instances are deleted (the next buffer run regenerates them);
    edited instances and edited_instance_keys are left as they are.

    Returns:
        Template and surviving instances, ordered by start date
    """
    pattern = build_pattern_from_patch(task, patch, ctx)
    deleted = await tx.delete_instances(task.user_id, task.id, only_non_edited=True)
    data = {
        **build_update_data(patch),
        **build_date_time_data(task, patch, ctx),
        "recurrence_pattern": pattern,
        "next_occurrence": None,
    }
    await tx.update(task.user_id, task.id, data)
    logger.info(f"Task {task.id}: pattern changed to {pattern.kind} ({deleted} instances deleted)")
    return await tx.list_series(task.user_id, task.id)


async def update_single_task(
    tx: ITaskTransaction,
    task: Task,
    patch: TaskPatch,
    ctx: ExecutionContext,
) -> Task:
    """
    Update one row.

    An instance is marked edited, and its key recorded on the template,
    before the field update is applied.
    """
    if task.is_instance and task.source_recurring_task_id:
        template = await tx.get(task.user_id, task.source_recurring_task_id)
        if template is not None:
            key = instance_key_of(task)
            if key not in template.edited_instance_keys:
                await tx.update(
                    task.user_id,
                    template.id,
                    {"edited_instance_keys": [*template.edited_instance_keys, key]},
                )
            if not task.is_edited_instance:
                await tx.update(task.user_id, task.id, {"is_edited_instance": True})
                logger.info(f"Task {task.id}: INSTANCE -> EDITED_INSTANCE ({key})")

    data = {**build_update_data(patch), **build_date_time_data(task, patch, ctx)}
    return await tx.update(task.user_id, task.id, data)


async def update_series_tasks(
    tx: ITaskTransaction,
    template: Task,
    patch: TaskPatch,
    ctx: ExecutionContext,
) -> list[Task]:
    """
    Apply an edit to a template and all of its non-edited instances.

    Content fields go to every non-edited instance. Date/time fields only
    move the template; each instance keeps the day it was generated for.

    Returns:
        Template and instances, ordered by start date
    """
    content = build_update_data(patch)
    template_data = {**content, **build_date_time_data(template, patch, ctx)}
    await tx.update(template.user_id, template.id, template_data)

    if content:
        updated = await tx.update_instances(template.user_id, template.id, content)
        logger.info(f"Series {template.id}: updated {updated} instances")

    return await tx.list_series(template.user_id, template.id)
