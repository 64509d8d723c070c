"""
Task service.

Orchestrates task creation, updates and deletes across the one-time /
template / instance states. Decides which conversion applies to a PATCH
and runs it inside one repository transaction.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pointwise.core.exceptions import NotFoundError, PolicyError
from pointwise.core.logger import setup_logger
from pointwise.interfaces.task_repository import ITaskRepository, ITaskTransaction
from pointwise.interfaces.user_repository import IUserRepository
from pointwise.models.context import ExecutionContext
from pointwise.models.enums import RecurrenceChoice, TaskState, UpdateScope
from pointwise.models.patch import TaskPatch
from pointwise.models.recurrence import build_pattern
from pointwise.models.task import (
    Task,
    TaskCreate,
    TaskDeleteResult,
    TaskSeries,
    TaskUpdateResult,
)
from pointwise.services import task_conversion_service as conversions
from pointwise.services.recurring_buffer_service import RecurringBufferService
from pointwise.utils.datetime_utils import merge_local_date_and_time, now_utc

logger = setup_logger(__name__)

PATTERN_FIELDS = ("recurrence_days", "recurrence_month_days", "times_of_day")


class TaskService:
    """Service for task lifecycle operations."""

    def __init__(
        self,
        task_repo: ITaskRepository,
        user_repo: IUserRepository,
        buffer_service: Optional[RecurringBufferService] = None,
    ):
        self.task_repo = task_repo
        self.user_repo = user_repo
        self.buffer_service = buffer_service or RecurringBufferService(task_repo, user_repo)

    async def build_context(self, user_id: str, now: Optional[datetime] = None) -> ExecutionContext:
        """Execution context for one request of this user."""
        time_zone = await self.buffer_service.resolve_time_zone(user_id)
        return ExecutionContext(now=now or now_utc(), time_zone=time_zone)

    async def get_task(self, user_id: str, task_id: UUID) -> Task:
        task = await self.task_repo.get(user_id, task_id)
        if not task:
            raise NotFoundError(f"Task {task_id} not found")
        return task

    async def list_tasks(
        self,
        user_id: str,
        include_templates: bool = True,
        start_after: Optional[datetime] = None,
        start_before: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Task]:
        return await self.task_repo.list(
            user_id,
            include_templates=include_templates,
            start_after=start_after,
            start_before=start_before,
            limit=limit,
            offset=offset,
        )

    async def get_series(self, user_id: str, task_id: UUID) -> TaskSeries:
        """Template and instances of the series a task belongs to."""
        task = await self.get_task(user_id, task_id)
        template_id = task.source_recurring_task_id if task.is_instance else task.id
        if task.state == TaskState.ONE_TIME:
            raise NotFoundError(f"Task {task_id} is not part of a recurring series")

        async with self.task_repo.transaction() as tx:
            rows = await tx.list_series(user_id, template_id)
        template = next((row for row in rows if row.id == template_id), None)
        if template is None:
            raise NotFoundError(f"Recurring template {template_id} not found")
        return TaskSeries(
            template=template,
            instances=[row for row in rows if row.id != template_id],
        )

    async def create_task(
        self, user_id: str, data: TaskCreate, ctx: ExecutionContext
    ) -> Task:
        """
        Create a one-time task, or a template plus its first instance.

        Raises:
            ValidationError: If the requested recurrence pattern is not valid
        """
        start_at = (
            merge_local_date_and_time(data.start_date, data.start_time, ctx.time_zone)
            if data.start_date
            else None
        )
        due_at = (
            merge_local_date_and_time(data.due_date, data.due_time, ctx.time_zone)
            if data.due_date
            else None
        )

        kind = data.recurrence.to_kind()
        if kind is None:
            return await self.task_repo.create(user_id, data, start_at=start_at, due_at=due_at)

        pattern = build_pattern(
            kind,
            start_date=data.start_date or ctx.today,
            times_of_day=data.times_of_day
            or [data.start_time or conversions.DEFAULT_TIME_OF_DAY],
            days_of_week=data.recurrence_days,
            days_of_month=data.recurrence_month_days,
        )
        template = await self.task_repo.create(
            user_id, data, recurrence_pattern=pattern, start_at=start_at, due_at=due_at
        )
        logger.info(f"Created recurring template {template.id} ({pattern.kind})")
        await self._seed_series(template, ctx)
        return template

    async def update_task(
        self,
        user_id: str,
        task_id: UUID,
        patch: TaskPatch,
        scope: UpdateScope,
        ctx: ExecutionContext,
    ) -> TaskUpdateResult:
        """
        Apply a PATCH to a task.

        Raises:
            NotFoundError: If the task does not exist
            PolicyError: If the change is not allowed in the task's state
            ValidationError: If a requested pattern is not valid
            InfrastructureError: If the transaction fails (nothing is committed)
        """
        seed_series = False
        async with self.task_repo.transaction() as tx:
            task = await tx.get(user_id, task_id)
            if not task:
                raise NotFoundError(f"Task {task_id} not found")

            result, seed_series = await self._apply_update(tx, task, patch, scope, ctx)

        if seed_series:
            await self._seed_series(result.task, ctx)
        return result

    async def _seed_series(self, template: Task, ctx: ExecutionContext) -> None:
        """
        Materialize the first instance of a new or re-patterned series.

        Runs after the template change has committed. A failure is logged and
        left to the next buffer run, which bootstraps series without instances.
        """
        try:
            await self.buffer_service.process_series(template, ctx)
        except Exception as e:
            logger.error(f"Seeding series {template.id} failed: {e}")

    async def _apply_update(
        self,
        tx: ITaskTransaction,
        task: Task,
        patch: TaskPatch,
        scope: UpdateScope,
        ctx: ExecutionContext,
    ) -> tuple[TaskUpdateResult, bool]:
        recurrence: Optional[RecurrenceChoice] = patch.value("recurrence")
        pattern_fields_set = any(patch.is_set(name) for name in PATTERN_FIELDS)
        state = task.state

        if state in (TaskState.INSTANCE, TaskState.EDITED_INSTANCE):
            if patch.touches_recurrence:
                raise PolicyError("Recurrence can only be changed on the series template")
            if scope == UpdateScope.SERIES:
                template = await tx.get(task.user_id, task.source_recurring_task_id)
                if template is None:
                    raise NotFoundError(
                        f"Recurring template {task.source_recurring_task_id} not found"
                    )
                series = await conversions.update_series_tasks(tx, template, patch, ctx)
                updated = next((row for row in series if row.id == task.id), task)
                return TaskUpdateResult(task=updated, series=series), False
            updated = await conversions.update_single_task(tx, task, patch, ctx)
            return TaskUpdateResult(task=updated), False

        if state == TaskState.ONE_TIME:
            if recurrence is not None and recurrence != RecurrenceChoice.NONE:
                template = await conversions.convert_to_recurring(tx, task, patch, ctx)
                return TaskUpdateResult(task=template), True
            updated = await conversions.update_single_task(tx, task, patch, ctx)
            return TaskUpdateResult(task=updated), False

        # TEMPLATE
        if recurrence == RecurrenceChoice.NONE:
            updated = await conversions.convert_to_one_time(tx, task, patch, ctx)
            return TaskUpdateResult(task=updated), False

        if recurrence is not None or pattern_fields_set:
            pattern = conversions.build_pattern_from_patch(task, patch, ctx)
            if pattern != task.recurrence_pattern:
                series = await conversions.update_recurrence_pattern(tx, task, patch, ctx)
                template = next(row for row in series if row.id == task.id)
                return TaskUpdateResult(task=template, series=series), True

        if scope == UpdateScope.SERIES:
            series = await conversions.update_series_tasks(tx, task, patch, ctx)
            template = next(row for row in series if row.id == task.id)
            return TaskUpdateResult(task=template, series=series), False

        updated = await conversions.update_single_task(tx, task, patch, ctx)
        return TaskUpdateResult(task=updated), False

    async def delete_task(
        self, user_id: str, task_id: UUID, scope: UpdateScope = UpdateScope.SINGLE
    ) -> TaskDeleteResult:
        """
        Delete a task.

        A template, or an instance with series scope, takes the whole series
        with it; the deletes share one transaction.
        """
        async with self.task_repo.transaction() as tx:
            task = await tx.get(user_id, task_id)
            if not task:
                raise NotFoundError(f"Task {task_id} not found")

            template_id = None
            if task.state == TaskState.TEMPLATE:
                template_id = task.id
            elif task.is_instance and scope == UpdateScope.SERIES:
                template_id = task.source_recurring_task_id

            if template_id is None:
                await tx.delete(user_id, task_id)
                return TaskDeleteResult(deleted_ids=[task_id])

            series = await tx.list_series(user_id, template_id)
            await tx.delete_instances(user_id, template_id)
            await tx.delete(user_id, template_id)

        logger.info(f"Deleted series {template_id} ({len(series)} rows)")
        return TaskDeleteResult(deleted_ids=[row.id for row in series])
