"""
Reschedule manager.

Moves are append-only: a new row is created with origin
``rescheduled(from=<old id>)`` and the old row is kept as history.
"""

from __future__ import annotations

from contextlib import AsyncExitStack
from datetime import date, datetime, time, timedelta
from typing import Optional
from uuid import UUID

from plancal.core.exceptions import BusinessLogicError, ConflictError, NotFoundError, ValidationError
from plancal.core.logger import setup_logger
from plancal.interfaces.plan_lock import IPlanLock
from plancal.interfaces.task_repository import ITaskRepository
from plancal.interfaces.task_schedule_repository import ITaskScheduleRepository
from plancal.models.schedule import (
    OverdueRescheduleResult,
    RescheduledPlacement,
    ScheduleCompletion,
    TaskSchedule,
    TaskScheduleCreate,
)
from plancal.services.availability_service import AvailabilityService
from plancal.services.placement_service import PlacementItem, PlacementService, is_valid_duration
from plancal.services.plan_locking import plan_lock_held
from plancal.services.workday_policy_service import WorkdayPolicyService, build_day_windows
from plancal.utils.datetime_utils import get_user_today, now_utc, time_to_minutes, to_local_datetime
from plancal.utils.interval_utils import TimeInterval

logger = setup_logger(__name__)

DEFAULT_OVERDUE_HORIZON_DAYS = 14
OVERDUE_REASON = "overdue"


class RescheduleService:
    """Service for moving placements and walking their history."""

    def __init__(
        self,
        task_schedule_repo: ITaskScheduleRepository,
        task_repo: ITaskRepository,
        workday_policy: WorkdayPolicyService,
        availability: AvailabilityService,
        placement: Optional[PlacementService] = None,
        overdue_horizon_days: int = DEFAULT_OVERDUE_HORIZON_DAYS,
        plan_lock: Optional[IPlanLock] = None,
    ):
        self._task_schedule_repo = task_schedule_repo
        self._task_repo = task_repo
        self._workday_policy = workday_policy
        self._availability = availability
        self._placement = placement or PlacementService()
        self._overdue_horizon_days = overdue_horizon_days
        self._plan_lock = plan_lock

    async def _get_active(self, user_id: str, schedule_id: UUID) -> TaskSchedule:
        schedule = await self._task_schedule_repo.get(user_id, schedule_id)
        if not schedule:
            raise NotFoundError(f"Schedule {schedule_id} not found")
        if await self._task_schedule_repo.has_successor(user_id, schedule_id):
            raise ConflictError(
                f"Schedule {schedule_id} was already rescheduled",
                details={"schedule_id": str(schedule_id)},
            )
        return schedule

    async def move_schedule(
        self,
        user_id: str,
        schedule_id: UUID,
        new_date: date,
        new_start: time,
        new_end: time,
        reason: Optional[str] = None,
    ) -> TaskSchedule:
        """
        Move a placement to a new slot.

        The old slot is freed, the new interval is checked against every other
        busy interval of the user, then a new row linked to the old one is
        appended.

        Raises:
            NotFoundError: If the schedule doesn't exist
            ConflictError: If it was already moved, the slot is busy or the
                plan is locked by another request
            ValidationError: If the interval is malformed
        """
        current = await self._task_schedule_repo.get(user_id, schedule_id)
        if not current:
            raise NotFoundError(f"Schedule {schedule_id} not found")
        async with plan_lock_held(self._plan_lock, current.plan_id, "move"):
            return await self._move_locked(user_id, schedule_id, new_date, new_start, new_end, reason)

    async def _move_locked(
        self,
        user_id: str,
        schedule_id: UUID,
        new_date: date,
        new_start: time,
        new_end: time,
        reason: Optional[str],
    ) -> TaskSchedule:
        schedule = await self._get_active(user_id, schedule_id)

        start_minutes = time_to_minutes(new_start)
        end_minutes = time_to_minutes(new_end)
        if end_minutes <= start_minutes:
            raise ValidationError("New end time must be after new start time")
        duration = end_minutes - start_minutes

        task = await self._task_repo.get(user_id, schedule.task_id)
        if task is not None:
            resized = task.model_copy(update={"duration_minutes": duration})
            if not is_valid_duration(resized):
                raise ValidationError(
                    f"Duration {duration} minutes is outside the allowed range",
                    details={"duration_minutes": duration},
                )

        settings = await self._workday_policy.get_settings(user_id)
        busy_by_date = await self._availability.get_busy_by_date(
            user_id,
            new_date,
            new_date,
            settings.timezone,
            exclude_schedule_ids={schedule_id},
        )
        requested = TimeInterval(start_minutes, end_minutes)
        for busy in busy_by_date.get(new_date, []):
            if requested.overlaps(busy):
                raise ConflictError(
                    "Requested slot overlaps existing commitments",
                    details={
                        "date": new_date.isoformat(),
                        "busy_start_minutes": busy.start_minutes,
                        "busy_end_minutes": busy.end_minutes,
                    },
                )

        created = await self._task_schedule_repo.create(
            user_id,
            TaskScheduleCreate(
                task_id=schedule.task_id,
                plan_id=schedule.plan_id,
                date=new_date,
                start_time=new_start,
                end_time=new_end,
                duration_minutes=duration,
                origin=RescheduledPlacement(from_schedule_id=schedule_id, reason=reason),
            ),
        )
        logger.info(f"Moved schedule {schedule_id} -> {created.id} ({new_date} {new_start}-{new_end})")
        return created

    async def get_chain(self, user_id: str, schedule_id: UUID) -> list[TaskSchedule]:
        """
        Walk ``rescheduled_from`` links back to the original placement.

        Returns:
            Rows from ``schedule_id`` (first) to the original placement (last)

        Raises:
            NotFoundError: If ``schedule_id`` doesn't exist
            BusinessLogicError: If a link is dangling or loops
        """
        chain: list[TaskSchedule] = []
        seen: set[UUID] = set()
        current_id: Optional[UUID] = schedule_id
        while current_id is not None:
            if current_id in seen:
                raise BusinessLogicError(
                    f"Reschedule chain of {schedule_id} contains a cycle",
                    details={"schedule_id": str(current_id)},
                )
            seen.add(current_id)
            schedule = await self._task_schedule_repo.get(user_id, current_id)
            if schedule is None:
                if not chain:
                    raise NotFoundError(f"Schedule {schedule_id} not found")
                raise BusinessLogicError(
                    f"Reschedule chain of {schedule_id} references missing schedule {current_id}"
                )
            chain.append(schedule)
            current_id = schedule.rescheduled_from
        return chain

    async def mark_completed(self, user_id: str, schedule_id: UUID) -> ScheduleCompletion:
        schedule = await self._task_schedule_repo.get(user_id, schedule_id)
        if not schedule:
            raise NotFoundError(f"Schedule {schedule_id} not found")
        return await self._task_schedule_repo.record_completion(user_id, schedule_id)

    async def list_overdue(
        self,
        user_id: str,
        now: Optional[datetime] = None,
        plan_id: Optional[UUID] = None,
    ) -> list[TaskSchedule]:
        """
        Active, uncompleted placements that ended before ``now`` (user's local time).
        """
        now = now or now_utc()
        settings = await self._workday_policy.get_settings(user_id)
        local_now = to_local_datetime(now, settings.timezone)
        today = local_now.date()
        now_minutes = local_now.hour * 60 + local_now.minute

        candidates = [
            schedule
            for schedule in await self._task_schedule_repo.list_active(
                user_id, end_date=today, plan_id=plan_id
            )
            if schedule.date < today or schedule.end_minutes <= now_minutes
        ]
        completed = await self._task_schedule_repo.list_completed_ids(
            user_id, [schedule.id for schedule in candidates]
        )
        return [schedule for schedule in candidates if schedule.id not in completed]

    async def reschedule_overdue(
        self,
        user_id: str,
        plan_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> OverdueRescheduleResult:
        """
        Re-place every overdue placement from now onward.

        Each new row is chained to the overdue row it replaces. Recurring tasks
        are re-placed once per overdue occurrence, without replication.

        Every affected plan is locked first. Without ``plan_id``, plans locked
        by another request are skipped and reported in ``locked_plan_ids``.

        Raises:
            ConflictError: If ``plan_id`` is given and that plan is locked
        """
        now = now or now_utc()
        overdue = await self.list_overdue(user_id, now=now, plan_id=plan_id)
        if not overdue:
            return OverdueRescheduleResult()

        locked_plan_ids: list[UUID] = []
        held: set[UUID] = set()
        async with AsyncExitStack() as stack:
            for overdue_plan_id in sorted({schedule.plan_id for schedule in overdue}, key=str):
                try:
                    await stack.enter_async_context(
                        plan_lock_held(self._plan_lock, overdue_plan_id, "overdue")
                    )
                except ConflictError:
                    if plan_id is not None:
                        raise
                    logger.warning(f"Plan {overdue_plan_id} is locked, skipping its overdue placements")
                    locked_plan_ids.append(overdue_plan_id)
                    continue
                held.add(overdue_plan_id)
            result = await self._reschedule_locked(user_id, plan_id, held, now)
        return result.model_copy(update={"locked_plan_ids": locked_plan_ids})

    async def _reschedule_locked(
        self,
        user_id: str,
        plan_id: Optional[UUID],
        held: set[UUID],
        now: datetime,
    ) -> OverdueRescheduleResult:
        # Re-read under the locks: rows may have been replaced since the first listing
        overdue = [
            schedule
            for schedule in await self.list_overdue(user_id, now=now, plan_id=plan_id)
            if schedule.plan_id in held
        ]
        if not overdue:
            return OverdueRescheduleResult()

        settings = await self._workday_policy.get_settings(user_id)
        items: list[PlacementItem] = []
        for schedule in overdue:
            task = await self._task_repo.get(user_id, schedule.task_id)
            if task is None:
                logger.warning(f"Overdue schedule {schedule.id} has no task, skipping")
                continue
            items.append(
                PlacementItem(
                    task=task.model_copy(
                        update={"duration_minutes": schedule.duration_minutes, "is_indefinite": False}
                    ),
                    rescheduled_from=schedule.id,
                    replicate=False,
                )
            )

        start_date = get_user_today(settings.timezone, now)
        end_date = start_date + timedelta(days=self._overdue_horizon_days)
        busy_by_date = await self._availability.get_busy_by_date(
            user_id,
            start_date,
            end_date,
            settings.timezone,
            exclude_schedule_ids={schedule.id for schedule in overdue},
        )

        def windows_for(day: date):
            return build_day_windows(settings, day, now=now)

        placement = self._placement.place_items(
            items, start_date, end_date, windows_for, busy_by_date
        )
        plan_by_schedule = {schedule.id: schedule.plan_id for schedule in overdue}
        creates = []
        for placed in placement.placements:
            create = placed.to_schedule_create(plan_by_schedule[placed.rescheduled_from])
            create.origin = RescheduledPlacement(
                from_schedule_id=placed.rescheduled_from, reason=OVERDUE_REASON
            )
            creates.append(create)
        rescheduled = await self._task_schedule_repo.create_many(user_id, creates)
        logger.info(
            f"Rescheduled {len(rescheduled)} overdue placements for user {user_id}, "
            f"{len(placement.unscheduled)} could not be placed"
        )
        return OverdueRescheduleResult(rescheduled=rescheduled, unscheduled=placement.unscheduled)
