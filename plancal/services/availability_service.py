"""
Availability resolution.

Turns existing task placements and external calendar events into a canonical
busy set: per local date, a sorted list of non-overlapping minute intervals.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from plancal.core.logger import setup_logger
from plancal.interfaces.calendar_provider import ICalendarProvider
from plancal.interfaces.task_schedule_repository import ITaskScheduleRepository
from plancal.models.enums import BusySource
from plancal.models.schedule import BusySlot, TaskSchedule
from plancal.utils.datetime_utils import MINUTES_PER_DAY, local_to_utc, to_local_datetime
from plancal.utils.interval_utils import TimeInterval, merge_intervals

logger = setup_logger(__name__)


def split_at_midnight(
    start: datetime, end: datetime, user_timezone: str
) -> list[tuple[date, TimeInterval]]:
    """
    Split an instant range into per-local-date minute intervals.

    Args:
        start: Range start (any timezone, naive taken as UTC)
        end: Range end
        user_timezone: IANA timezone used for the local calendar

    Returns:
        (date, interval) pairs in chronological order; empty for empty ranges
    """
    local_start = to_local_datetime(start, user_timezone)
    local_end = to_local_datetime(end, user_timezone)
    if local_end <= local_start:
        return []

    pieces: list[tuple[date, TimeInterval]] = []
    day = local_start.date()
    tz = ZoneInfo(user_timezone)
    while True:
        day_start = datetime.combine(day, time(0, 0), tzinfo=tz)
        next_day_start = datetime.combine(day + timedelta(days=1), time(0, 0), tzinfo=tz)
        piece_start = max(local_start, day_start)
        piece_end = min(local_end, next_day_start)
        if piece_end > piece_start:
            start_minutes = int((piece_start - day_start).total_seconds() // 60)
            end_minutes = min(
                MINUTES_PER_DAY,
                -int(-(piece_end - day_start).total_seconds() // 60),
            )
            pieces.append((day, TimeInterval(start_minutes, end_minutes)))
        if local_end <= next_day_start:
            break
        day += timedelta(days=1)
    return pieces


def resolve_busy_by_date(
    busy_slots: Iterable[BusySlot],
    start_date: date,
    end_date: date,
    user_timezone: str,
) -> dict[date, list[TimeInterval]]:
    """
    Build the canonical busy set for a date range.

    Slots are split at local midnight, pieces outside [start_date, end_date]
    are dropped and each date's intervals are merged. Dates without busy time
    are absent from the result.
    """
    by_date: dict[date, list[TimeInterval]] = defaultdict(list)
    for slot in busy_slots:
        for day, interval in split_at_midnight(slot.start, slot.end, user_timezone):
            if start_date <= day <= end_date:
                by_date[day].append(interval)
    return {day: merge_intervals(intervals) for day, intervals in sorted(by_date.items())}


def schedule_to_busy_slot(schedule: TaskSchedule, user_timezone: str) -> BusySlot:
    return BusySlot(
        start=local_to_utc(schedule.date, schedule.start_minutes, user_timezone),
        end=local_to_utc(schedule.date, schedule.end_minutes, user_timezone),
        source=BusySource.TASK_SCHEDULE,
        reference_id=str(schedule.id),
    )


class AvailabilityService:
    """Loads busy time for a user from placements and the calendar collaborator."""

    def __init__(
        self,
        task_schedule_repo: ITaskScheduleRepository,
        calendar_provider: Optional[ICalendarProvider] = None,
    ):
        self._task_schedule_repo = task_schedule_repo
        self._calendar_provider = calendar_provider

    async def collect_busy_slots(
        self,
        user_id: str,
        start_date: date,
        end_date: date,
        user_timezone: str,
        exclude_plan_id: Optional[UUID] = None,
        exclude_schedule_ids: Optional[set[UUID]] = None,
    ) -> list[BusySlot]:
        excluded = exclude_schedule_ids or set()
        # One day of slack on each side catches rows that cross midnight in UTC
        schedules = await self._task_schedule_repo.list_active(
            user_id,
            start_date=start_date - timedelta(days=1),
            end_date=end_date + timedelta(days=1),
            exclude_plan_id=exclude_plan_id,
        )
        slots = [
            schedule_to_busy_slot(schedule, user_timezone)
            for schedule in schedules
            if schedule.id not in excluded
        ]

        if self._calendar_provider:
            range_start = local_to_utc(start_date, 0, user_timezone)
            range_end = local_to_utc(end_date, MINUTES_PER_DAY, user_timezone)
            events = await self._calendar_provider.get_busy_intervals(
                user_id, range_start, range_end
            )
            slots.extend(
                BusySlot(start=event.start, end=event.end, source=BusySource.CALENDAR_EVENT)
                for event in events
            )

        logger.debug(
            f"Collected {len(slots)} busy slots for user {user_id} "
            f"between {start_date} and {end_date}"
        )
        return slots

    async def get_busy_by_date(
        self,
        user_id: str,
        start_date: date,
        end_date: date,
        user_timezone: str,
        exclude_plan_id: Optional[UUID] = None,
        exclude_schedule_ids: Optional[set[UUID]] = None,
    ) -> dict[date, list[TimeInterval]]:
        slots = await self.collect_busy_slots(
            user_id,
            start_date,
            end_date,
            user_timezone,
            exclude_plan_id=exclude_plan_id,
            exclude_schedule_ids=exclude_schedule_ids,
        )
        return resolve_busy_by_date(slots, start_date, end_date, user_timezone)
