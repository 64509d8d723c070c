"""
Tests for TaskService orchestration.
"""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import pytest

from pointwise.core.exceptions import (
    InfrastructureError,
    NotFoundError,
    PolicyError,
    ValidationError,
)
from pointwise.models.context import ExecutionContext
from pointwise.models.enums import TaskState, UpdateScope
from pointwise.models.patch import TaskPatch
from pointwise.models.task import TaskCreate, TaskUpdateRequest
from pointwise.services.recurring_buffer_service import RecurringBufferService
from pointwise.services.task_service import TaskService

UTC = timezone.utc


def _patch(**body) -> TaskPatch:
    return TaskPatch.from_request(TaskUpdateRequest.model_validate(body))


@pytest.fixture
def service(task_repo, user_repo):
    return TaskService(
        task_repo,
        user_repo,
        buffer_service=RecurringBufferService(task_repo, user_repo, default_time_zone="UTC"),
    )


@pytest.fixture
def ctx(fixed_now):
    return ExecutionContext(now=fixed_now, time_zone="UTC")


async def _create_weekly(service, user_id, ctx):
    return await service.create_task(
        user_id,
        TaskCreate.model_validate(
            {
                "title": "Stretch",
                "startDate": "2025-03-01",
                "startTime": "07:00",
                "recurrence": "weekly",
                "recurrenceDays": [1, 3],
            }
        ),
        ctx,
    )


class TestCreateTask:
    @pytest.mark.asyncio
    async def test_one_time_task(self, service, test_user_id, ctx):
        task = await service.create_task(
            test_user_id,
            TaskCreate(title="Dentist", due_date=date(2025, 3, 20), due_time="15:30"),
            ctx,
        )
        assert task.state == TaskState.ONE_TIME
        assert task.due_at == datetime(2025, 3, 20, 15, 30, tzinfo=UTC)
        assert task.start_at is None

    @pytest.mark.asyncio
    async def test_recurring_task_seeds_first_instance(self, service, test_user_id, ctx):
        template = await _create_weekly(service, test_user_id, ctx)

        assert template.is_template
        assert template.recurrence_pattern.times_of_day == ["07:00"]

        series = await service.get_series(test_user_id, template.id)
        assert [row.recurrence_instance_key for row in series.instances] == ["2025-03-19T07:00"]

    @pytest.mark.asyncio
    async def test_invalid_pattern_is_rejected(self, service, test_user_id, ctx):
        with pytest.raises(ValidationError):
            await service.create_task(
                test_user_id, TaskCreate(title="Stretch", recurrence="weekly"), ctx
            )

    @pytest.mark.asyncio
    async def test_seeding_failure_keeps_template(self, task_repo, user_repo, test_user_id, ctx):
        buffer_service = AsyncMock(spec=RecurringBufferService)
        buffer_service.process_series.side_effect = InfrastructureError("db down")
        service = TaskService(task_repo, user_repo, buffer_service=buffer_service)

        template = await _create_weekly(service, test_user_id, ctx)

        assert template.is_template
        assert await task_repo.get(test_user_id, template.id) is not None
        buffer_service.process_series.assert_awaited_once()


class TestUpdateTask:
    @pytest.mark.asyncio
    async def test_one_time_to_recurring_seeds_series(self, service, test_user_id, ctx):
        task = await service.create_task(test_user_id, TaskCreate(title="Water plants"), ctx)

        result = await service.update_task(
            test_user_id,
            task.id,
            _patch(recurrence="daily", timesOfDay=["08:00"]),
            UpdateScope.SINGLE,
            ctx,
        )

        assert result.task.is_template
        series = await service.get_series(test_user_id, task.id)
        assert len(series.instances) == 1
        assert series.instances[0].start_at == datetime(2025, 3, 18, 8, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_repatterned_series_refills_before_edited_instance(
        self, service, test_user_id, ctx, fixed_now
    ):
        daily = await service.create_task(
            test_user_id,
            TaskCreate.model_validate(
                {
                    "title": "Stretch",
                    "startDate": "2025-03-01",
                    "startTime": "07:00",
                    "recurrence": "daily",
                }
            ),
            ctx,
        )
        await service.buffer_service.run(now=fixed_now)
        series = await service.get_series(test_user_id, daily.id)
        last = max(series.instances, key=lambda row: row.start_date)
        assert last.start_date == date(2025, 4, 15)
        await service.update_task(
            test_user_id, last.id, _patch(title="Long stretch"), UpdateScope.SINGLE, ctx
        )

        await service.update_task(
            test_user_id,
            daily.id,
            _patch(recurrence="weekly", recurrenceDays=[1, 3]),
            UpdateScope.SINGLE,
            ctx,
        )
        for _ in range(3):
            await service.buffer_service.run(now=fixed_now)

        series = await service.get_series(test_user_id, daily.id)
        regenerated = [row.start_date for row in series.instances if not row.is_edited_instance]
        assert date(2025, 3, 19) in regenerated
        assert date(2025, 3, 24) in regenerated
        assert date(2025, 4, 14) in regenerated
        # Python weekday(): Monday=0, Wednesday=2
        assert {day.weekday() for day in regenerated} == {0, 2}
        edited = [row for row in series.instances if row.is_edited_instance]
        assert [(row.start_date, row.title) for row in edited] == [
            (date(2025, 4, 15), "Long stretch")
        ]

    @pytest.mark.asyncio
    async def test_instance_cannot_change_recurrence(self, service, test_user_id, ctx):
        template = await _create_weekly(service, test_user_id, ctx)
        series = await service.get_series(test_user_id, template.id)

        with pytest.raises(PolicyError):
            await service.update_task(
                test_user_id,
                series.instances[0].id,
                _patch(recurrence="daily"),
                UpdateScope.SINGLE,
                ctx,
            )

    @pytest.mark.asyncio
    async def test_pattern_fields_without_kind(self, service, test_user_id, ctx):
        template = await _create_weekly(service, test_user_id, ctx)

        with pytest.raises(PolicyError):
            await service.update_task(
                test_user_id, template.id, _patch(recurrenceDays=[5]), UpdateScope.SINGLE, ctx
            )

    @pytest.mark.asyncio
    async def test_series_edit_from_instance(self, service, test_user_id, ctx):
        template = await _create_weekly(service, test_user_id, ctx)
        instance = (await service.get_series(test_user_id, template.id)).instances[0]

        result = await service.update_task(
            test_user_id, instance.id, _patch(title="Yoga"), UpdateScope.SERIES, ctx
        )

        assert result.task.id == instance.id
        assert result.task.title == "Yoga"
        assert not result.task.is_edited_instance
        assert {row.title for row in result.series} == {"Yoga"}

    @pytest.mark.asyncio
    async def test_unchanged_pattern_is_a_plain_edit(self, service, test_user_id, ctx):
        template = await _create_weekly(service, test_user_id, ctx)

        result = await service.update_task(
            test_user_id,
            template.id,
            _patch(recurrence="weekly", title="Stretch more"),
            UpdateScope.SINGLE,
            ctx,
        )

        assert result.series == []
        assert result.task.title == "Stretch more"
        series = await service.get_series(test_user_id, template.id)
        assert len(series.instances) == 1

    @pytest.mark.asyncio
    async def test_missing_task(self, service, test_user_id, ctx):
        template = await _create_weekly(service, test_user_id, ctx)
        with pytest.raises(NotFoundError):
            await service.update_task(
                "other_user", template.id, _patch(title="x"), UpdateScope.SINGLE, ctx
            )


class TestDeleteTask:
    @pytest.mark.asyncio
    async def test_series_delete_from_instance(self, service, task_repo, test_user_id, ctx):
        template = await _create_weekly(service, test_user_id, ctx)
        instance = (await service.get_series(test_user_id, template.id)).instances[0]

        result = await service.delete_task(test_user_id, instance.id, UpdateScope.SERIES)

        assert set(result.deleted_ids) == {template.id, instance.id}
        assert await task_repo.list(test_user_id) == []

    @pytest.mark.asyncio
    async def test_single_instance_delete_keeps_template(self, service, task_repo, test_user_id, ctx):
        template = await _create_weekly(service, test_user_id, ctx)
        instance = (await service.get_series(test_user_id, template.id)).instances[0]

        result = await service.delete_task(test_user_id, instance.id)

        assert result.deleted_ids == [instance.id]
        assert await task_repo.get(test_user_id, template.id) is not None

    @pytest.mark.asyncio
    async def test_get_series_of_one_time_task(self, service, test_user_id, ctx):
        task = await service.create_task(test_user_id, TaskCreate(title="Once"), ctx)
        with pytest.raises(NotFoundError):
            await service.get_series(test_user_id, task.id)
