"""
Background scheduler service for periodic jobs.

Runs the recurring buffer job once a day in-process, plus a catch-up run
at startup. Uses APScheduler so that no external scheduler is needed in
local deployments; the HTTP batch trigger remains available for
externally scheduled environments.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from pointwise.core.config import get_settings
from pointwise.core.logger import logger
from pointwise.models.buffer import BufferRunSummary
from pointwise.services.recurring_buffer_service import RecurringBufferService

RECURRING_JOB_ID = "recurring_buffer_generation"


class BackgroundScheduler:
    """
    Background scheduler for periodic jobs.

    Features:
    - Daily recurring buffer generation (RECURRING_JOB_HOUR:RECURRING_JOB_MINUTE UTC)
    - Startup catch-up run, so a missed daily run is made up on restart
    """

    def __init__(self, buffer_service: RecurringBufferService):
        self._buffer_service = buffer_service
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._last_run: Optional[datetime] = None
        self._last_summary: Optional[BufferRunSummary] = None
        self._running = asyncio.Lock()

    @property
    def last_summary(self) -> Optional[BufferRunSummary]:
        return self._last_summary

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def start(self):
        """Start the scheduler and queue a catch-up run."""
        settings = get_settings()

        # Only run scheduler in non-test environments
        if settings.is_test:
            logger.info("Background scheduler disabled in test environment")
            return
        if not settings.RECURRING_JOB_ENABLED:
            logger.info("Background scheduler disabled by RECURRING_JOB_ENABLED")
            return

        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._scheduler.add_job(
            self.run_recurring_generation,
            CronTrigger(
                hour=settings.RECURRING_JOB_HOUR,
                minute=settings.RECURRING_JOB_MINUTE,
                timezone="UTC",
            ),
            id=RECURRING_JOB_ID,
            name="Recurring Task Buffer Generation",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info(
            "Background scheduler started:\n"
            f"  - Recurring buffer generation: daily "
            f"{settings.RECURRING_JOB_HOUR:02d}:{settings.RECURRING_JOB_MINUTE:02d} UTC"
        )

        # Catch up in background (non-blocking)
        asyncio.create_task(self._run_catch_up_background())

    async def stop(self):
        """Stop the scheduler."""
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Background scheduler stopped")

    async def _run_catch_up_background(self):
        try:
            logger.info("Starting startup recurring buffer run...")
            await self.run_recurring_generation()
        except Exception as e:
            logger.error(f"Startup recurring buffer run failed: {e}")

    async def run_recurring_generation(
        self, now: Optional[datetime] = None
    ) -> Optional[BufferRunSummary]:
        """
        Run the buffer job once.

        Overlapping runs in this process are skipped; the storage layer
        ignores duplicates from runs in other processes.
        """
        if self._running.locked():
            logger.info("Recurring buffer run already in progress, skipping")
            return None

        async with self._running:
            summary = await self._buffer_service.run(now)
            self._last_run = summary.timestamp
            self._last_summary = summary
            if summary.errors:
                logger.warning(
                    f"Recurring buffer run finished with {len(summary.errors)} failed series"
                )
            return summary


# Global scheduler instance
_scheduler: Optional[BackgroundScheduler] = None


async def get_background_scheduler() -> BackgroundScheduler:
    """Get the global background scheduler instance."""
    global _scheduler
    if _scheduler is None:
        from pointwise.api.deps import get_task_repository, get_user_repository

        _scheduler = BackgroundScheduler(
            buffer_service=RecurringBufferService(
                task_repo=get_task_repository(),
                user_repo=get_user_repository(),
            )
        )
    return _scheduler


async def start_background_scheduler():
    """Start the global background scheduler."""
    scheduler = await get_background_scheduler()
    await scheduler.start()


async def stop_background_scheduler():
    """Stop the global background scheduler."""
    global _scheduler
    if _scheduler:
        await _scheduler.stop()
        _scheduler = None
