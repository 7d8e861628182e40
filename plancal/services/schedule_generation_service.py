"""
Plan schedule generation.

Wires availability, workday policy and placement together for one plan and
persists the resulting placements.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional
from uuid import UUID

from plancal.core.exceptions import NotFoundError
from plancal.core.logger import setup_logger
from plancal.interfaces.plan_lock import IPlanLock
from plancal.interfaces.plan_repository import IPlanRepository
from plancal.interfaces.task_repository import ITaskRepository
from plancal.interfaces.task_schedule_repository import ITaskScheduleRepository
from plancal.models.plan import DEFAULT_PLAN_DAYS, Plan
from plancal.models.schedule import ScheduleGenerationResult
from plancal.models.task import Task
from plancal.models.workday import UsageSignal, WorkdaySettings
from plancal.services.availability_service import AvailabilityService
from plancal.services.placement_service import PlacementService
from plancal.services.plan_locking import plan_lock_held
from plancal.services.workday_policy_service import (
    WorkdayPolicyService,
    build_day_windows,
    detect_usage_signal,
    with_weekend_override,
)
from plancal.utils.datetime_utils import get_user_today, now_utc

logger = setup_logger(__name__)


class ScheduleGenerationService:
    def __init__(
        self,
        plan_repo: IPlanRepository,
        task_repo: ITaskRepository,
        task_schedule_repo: ITaskScheduleRepository,
        workday_policy: WorkdayPolicyService,
        availability: AvailabilityService,
        placement: Optional[PlacementService] = None,
        default_plan_days: int = DEFAULT_PLAN_DAYS,
        plan_lock: Optional[IPlanLock] = None,
    ):
        self._plan_repo = plan_repo
        self._task_repo = task_repo
        self._task_schedule_repo = task_schedule_repo
        self._workday_policy = workday_policy
        self._availability = availability
        self._placement = placement or PlacementService()
        self._default_plan_days = default_plan_days
        self._plan_lock = plan_lock

    async def generate_for_plan(
        self,
        user_id: str,
        plan_id: UUID,
        usage_signal: Optional[UsageSignal] = None,
        settings: Optional[WorkdaySettings] = None,
        now: Optional[datetime] = None,
        replace_existing: bool = True,
        plan: Optional[Plan] = None,
        tasks: Optional[list[Task]] = None,
        lock_holder: Optional[str] = None,
    ) -> ScheduleGenerationResult:
        """
        Place a plan's tasks and persist the placements under the plan lock.

        Args:
            user_id: Owner user ID
            plan_id: Plan to schedule
            usage_signal: Working pattern; detected from the goal text when None
            settings: Workday settings; loaded when None
            now: Reference instant (nothing is placed before it)
            replace_existing: Delete the plan's current placements first
            plan: Already loaded plan, skips the lookup
            tasks: Already loaded tasks, skips the lookup
            lock_holder: Token of the plan lock when the caller already holds it

        Raises:
            NotFoundError: If the plan doesn't exist
            ConflictError: If another request holds the plan lock
        """
        async with plan_lock_held(self._plan_lock, plan_id, "schedule", holder=lock_holder):
            return await self._generate_locked(
                user_id, plan_id, usage_signal, settings, now, replace_existing, plan, tasks
            )

    async def _generate_locked(
        self,
        user_id: str,
        plan_id: UUID,
        usage_signal: Optional[UsageSignal],
        settings: Optional[WorkdaySettings],
        now: Optional[datetime],
        replace_existing: bool,
        plan: Optional[Plan],
        tasks: Optional[list[Task]],
    ) -> ScheduleGenerationResult:
        now = now or now_utc()
        if plan is None:
            plan = await self._plan_repo.get(user_id, plan_id)
            if not plan:
                raise NotFoundError(f"Plan {plan_id} not found", code="PLAN_NOT_FOUND")
        if tasks is None:
            tasks = await self._task_repo.list_by_plan(user_id, plan_id)
        if settings is None:
            settings = await self._workday_policy.get_settings(user_id)
        if usage_signal is None:
            usage_signal = detect_usage_signal(plan.goal_text)

        today = get_user_today(settings.timezone, now)
        start_date = max(plan.start_date, today)
        end_date = plan.resolved_end_date(self._default_plan_days)
        settings = with_weekend_override(settings, plan.start_date, end_date)
        busy_end = end_date
        if any(task.is_indefinite for task in tasks):
            busy_end = max(
                end_date,
                start_date + timedelta(days=self._placement.indefinite_horizon_days),
            )

        if replace_existing:
            removed = await self._task_schedule_repo.delete_by_plan(user_id, plan_id)
            logger.info(f"Removed {removed} existing placements for plan {plan_id}")

        busy_by_date = await self._availability.get_busy_by_date(
            user_id,
            start_date,
            busy_end,
            settings.timezone,
            exclude_plan_id=plan_id,
        )

        def windows_for(day: date):
            return build_day_windows(settings, day, usage_signal, now=now)

        placement = self._placement.place(tasks, start_date, end_date, windows_for, busy_by_date)
        schedules = await self._task_schedule_repo.create_many(
            user_id,
            [placed.to_schedule_create(plan_id) for placed in placement.placements],
        )
        logger.info(
            f"Scheduled plan {plan_id}: {len(schedules)} placements, "
            f"{len(placement.unscheduled)} unscheduled"
        )
        return ScheduleGenerationResult(
            plan_id=plan_id,
            start_date=start_date,
            end_date=end_date,
            schedules=schedules,
            unscheduled=placement.unscheduled,
            skipped_occurrences=placement.skipped_occurrences,
            open_ended_task_ids=placement.open_ended_task_ids,
        )
