"""
Background scheduler service for periodic jobs.

Runs the nightly overdue sweep: every active placement that ended before now
and was never completed is re-placed from today onward.
Uses APScheduler for in-process scheduling without external dependencies.
"""

from __future__ import annotations

import asyncio
import random
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from plancal.core.config import get_settings
from plancal.core.logger import setup_logger
from plancal.interfaces.task_schedule_repository import ITaskScheduleRepository
from plancal.services.reschedule_service import RescheduleService
from plancal.utils.datetime_utils import now_utc

logger = setup_logger(__name__)


class OverdueSweepScheduler:
    """
    Background scheduler for the overdue sweep.

    Features:
    - Daily overdue rescheduling (OVERDUE_SWEEP_CRON_HOUR:00 UTC)
    - Staggered per-user processing to avoid load spikes
    """

    def __init__(
        self,
        task_schedule_repo: ITaskScheduleRepository,
        reschedule_service: RescheduleService,
    ):
        self._task_schedule_repo = task_schedule_repo
        self._reschedule_service = reschedule_service
        self._scheduler: Optional[AsyncIOScheduler] = None

    async def start(self):
        """Start the scheduler."""
        settings = get_settings()

        if settings.ENVIRONMENT == "test":
            logger.info("Background scheduler disabled in test environment")
            return
        if not settings.OVERDUE_SWEEP_ENABLED:
            logger.info("Overdue sweep disabled by configuration")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_overdue_sweep,
            CronTrigger(hour=settings.OVERDUE_SWEEP_CRON_HOUR, minute=0),
            id="overdue_sweep",
            name="Overdue Schedule Sweep",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            f"Background scheduler started: overdue sweep daily at "
            f"{settings.OVERDUE_SWEEP_CRON_HOUR:02d}:00"
        )

    async def stop(self):
        """Stop the scheduler."""
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Background scheduler stopped")

    async def run_overdue_sweep(self, now: Optional[datetime] = None, jitter: bool = True) -> int:
        """
        Reschedule overdue placements for every user that has any.

        Returns:
            Number of placements moved
        """
        now = now or now_utc()
        logger.info("Starting overdue schedule sweep...")
        user_ids = await self._task_schedule_repo.list_users_with_active_schedules(now.date())

        moved = 0
        for user_id in user_ids:
            try:
                result = await self._reschedule_service.reschedule_overdue(user_id, now=now)
                moved += len(result.rescheduled)
                if result.locked_plan_ids:
                    logger.info(
                        f"Skipped {len(result.locked_plan_ids)} locked plans for user {user_id}"
                    )
            except Exception as e:
                logger.error(f"Overdue sweep failed for user {user_id}: {e}")
            if jitter:
                await asyncio.sleep(random.uniform(0.2, 0.8))

        logger.info(f"Overdue sweep completed: {moved} placements moved for {len(user_ids)} users")
        return moved


# Global scheduler instance
_scheduler: Optional[OverdueSweepScheduler] = None


async def get_background_scheduler() -> OverdueSweepScheduler:
    """Get the global background scheduler instance."""
    global _scheduler
    if _scheduler is None:
        from plancal.api.deps import get_reschedule_service, get_task_schedule_repository

        _scheduler = OverdueSweepScheduler(
            task_schedule_repo=get_task_schedule_repository(),
            reschedule_service=get_reschedule_service(),
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
