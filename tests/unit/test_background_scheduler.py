"""
Tests for the in-process recurring job scheduler.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from pointwise.models.buffer import BufferRunSummary
from pointwise.services.background_scheduler import BackgroundScheduler
from pointwise.services.recurring_buffer_service import RecurringBufferService

NOW = datetime(2025, 3, 17, 0, 15, tzinfo=timezone.utc)


@pytest.fixture
def buffer_service():
    service = AsyncMock(spec=RecurringBufferService)
    service.run.return_value = BufferRunSummary(timestamp=NOW, processed=3, generated=7)
    return service


@pytest.mark.asyncio
async def test_start_is_disabled_in_test_environment(buffer_service):
    scheduler = BackgroundScheduler(buffer_service)

    await scheduler.start()

    assert not scheduler.is_running
    buffer_service.run.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_records_summary(buffer_service):
    scheduler = BackgroundScheduler(buffer_service)

    summary = await scheduler.run_recurring_generation(NOW)

    assert summary.generated == 7
    assert scheduler.last_summary is summary
    buffer_service.run.assert_awaited_once_with(NOW)


@pytest.mark.asyncio
async def test_overlapping_run_is_skipped(buffer_service):
    release = asyncio.Event()

    async def slow_run(now=None):
        await release.wait()
        return BufferRunSummary(timestamp=NOW)

    buffer_service.run.side_effect = slow_run
    scheduler = BackgroundScheduler(buffer_service)

    first = asyncio.create_task(scheduler.run_recurring_generation())
    await asyncio.sleep(0)

    assert await scheduler.run_recurring_generation() is None

    release.set()
    assert (await first) is not None
    assert buffer_service.run.await_count == 1
