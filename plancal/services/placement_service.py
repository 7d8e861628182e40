"""
Placement engine: deterministic first-fit assignment of tasks to free time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Optional
from uuid import UUID

from plancal.core.logger import setup_logger
from plancal.models.enums import UnscheduledReason
from plancal.models.schedule import (
    PlacedTask,
    PlacementResult,
    SkippedOccurrence,
    UnscheduledTask,
)
from plancal.models.task import (
    MAX_TASK_DURATION_MINUTES,
    MIN_TASK_DURATION_MINUTES,
    Task,
)
from plancal.models.workday import DayWindows
from plancal.utils.datetime_utils import MINUTES_PER_DAY
from plancal.utils.interval_utils import TimeInterval, merge_intervals, subtract_intervals

logger = setup_logger(__name__)

WindowsProvider = Callable[[date], DayWindows]


@dataclass
class PlacementItem:
    """A task to place, optionally replacing an earlier placement."""

    task: Task
    rescheduled_from: Optional[UUID] = None
    replicate: bool = True


def is_valid_duration(task: Task) -> bool:
    if task.is_calendar_event:
        return 0 < task.duration_minutes <= MINUTES_PER_DAY
    return MIN_TASK_DURATION_MINUTES <= task.duration_minutes <= MAX_TASK_DURATION_MINUTES


def placement_order_key(task: Task) -> tuple[int, int]:
    """Most important first (priority 1 before 4), then idx."""
    return (task.priority, task.idx)


def _date_range(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


class PlacementService:
    """
    First-fit scheduler.

    For fixed tasks, windows and busy intervals the output is always the same:
    tasks are visited in a total order, dates chronologically and free
    intervals by start time.
    """

    def __init__(self, indefinite_horizon_days: int = 60):
        """
        Initialize placement service.

        Args:
            indefinite_horizon_days: How far past the start date an indefinite
                task may be placed when the plan range has no room
        """
        self.indefinite_horizon_days = indefinite_horizon_days

    def place(
        self,
        tasks: list[Task],
        start_date: date,
        end_date: date,
        windows_for: WindowsProvider,
        busy_by_date: dict[date, list[TimeInterval]],
    ) -> PlacementResult:
        """
        Place tasks into free time.

        Args:
            tasks: Tasks to place (any order; sorted by priority then idx)
            start_date: First date considered
            end_date: Last date considered (indefinite tasks may go further)
            windows_for: Returns the available windows of a date
            busy_by_date: Merged busy intervals per date

        Returns:
            PlacementResult with placements, unscheduled tasks and skipped
            recurring dates
        """
        return self.place_items(
            [PlacementItem(task=task) for task in tasks],
            start_date,
            end_date,
            windows_for,
            busy_by_date,
        )

    def place_items(
        self,
        items: list[PlacementItem],
        start_date: date,
        end_date: date,
        windows_for: WindowsProvider,
        busy_by_date: dict[date, list[TimeInterval]],
    ) -> PlacementResult:
        free_by_date: dict[date, list[TimeInterval]] = {}

        def free_for(day: date) -> list[TimeInterval]:
            if day not in free_by_date:
                day_windows = windows_for(day)
                if not day_windows.eligible:
                    free_by_date[day] = []
                else:
                    busy = merge_intervals(busy_by_date.get(day, []))
                    free_by_date[day] = subtract_intervals(day_windows.windows, busy)
            return free_by_date[day]

        result = PlacementResult()
        ordered = sorted(items, key=lambda item: placement_order_key(item.task))

        for item in ordered:
            task = item.task
            if not is_valid_duration(task):
                logger.warning(
                    f"Task {task.id} has invalid duration {task.duration_minutes}, not placed"
                )
                result.unscheduled.append(
                    UnscheduledTask(task_id=task.id, reason=UnscheduledReason.INVALID_DURATION)
                )
                continue

            last_date = end_date
            if task.is_indefinite:
                last_date = max(end_date, start_date + timedelta(days=self.indefinite_horizon_days))

            first: Optional[PlacedTask] = None
            for day in _date_range(start_date, last_date):
                start_minutes = self._take_first_fit(free_for(day), task.duration_minutes)
                if start_minutes is not None:
                    first = PlacedTask(
                        task_id=task.id,
                        date=day,
                        start_minutes=start_minutes,
                        end_minutes=start_minutes + task.duration_minutes,
                        rescheduled_from=item.rescheduled_from,
                    )
                    break

            if first is None:
                result.unscheduled.append(
                    UnscheduledTask(task_id=task.id, reason=UnscheduledReason.NO_CAPACITY)
                )
                continue

            result.placements.append(first)
            if task.is_indefinite:
                result.open_ended_task_ids.append(task.id)

            if task.is_recurring and item.replicate:
                self._replicate(task, first, end_date, windows_for, free_for, result)

        result.placements.sort(key=lambda placed: (placed.date, placed.start_minutes))
        logger.info(
            f"Placed {len(result.placements)} blocks, "
            f"{len(result.unscheduled)} unscheduled, "
            f"{len(result.skipped_occurrences)} skipped occurrences"
        )
        return result

    def _replicate(
        self,
        task: Task,
        first: PlacedTask,
        end_date: date,
        windows_for: WindowsProvider,
        free_for: Callable[[date], list[TimeInterval]],
        result: PlacementResult,
    ) -> None:
        """Copy a recurring task onto later eligible dates, same start when free."""
        for day in _date_range(first.date + timedelta(days=1), end_date):
            if not windows_for(day).eligible:
                continue
            free = free_for(day)
            start_minutes = self._take_exact(free, first.start_minutes, task.duration_minutes)
            if start_minutes is None:
                start_minutes = self._take_first_fit(free, task.duration_minutes)
            if start_minutes is None:
                result.skipped_occurrences.append(SkippedOccurrence(task_id=task.id, date=day))
                continue
            result.placements.append(
                PlacedTask(
                    task_id=task.id,
                    date=day,
                    start_minutes=start_minutes,
                    end_minutes=start_minutes + task.duration_minutes,
                )
            )

    @staticmethod
    def _take_first_fit(free: list[TimeInterval], duration: int) -> Optional[int]:
        """Consume ``duration`` from the start of the first interval long enough."""
        for index, interval in enumerate(free):
            if interval.length < duration:
                continue
            start = interval.start_minutes
            interval.start_minutes += duration
            if interval.length <= 0:
                free.pop(index)
            return start
        return None

    @staticmethod
    def _take_exact(free: list[TimeInterval], start: int, duration: int) -> Optional[int]:
        """Consume [start, start + duration) if a single free interval contains it."""
        end = start + duration
        for index, interval in enumerate(free):
            if interval.start_minutes <= start and end <= interval.end_minutes:
                pieces = []
                if interval.start_minutes < start:
                    pieces.append(TimeInterval(interval.start_minutes, start))
                if end < interval.end_minutes:
                    pieces.append(TimeInterval(end, interval.end_minutes))
                free[index:index + 1] = pieces
                return start
        return None
