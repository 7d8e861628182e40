"""
Task schedule repository interface.

Rows are append-only: there is no update operation. A row is active while no
other row references it through ``rescheduled_from``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from uuid import UUID

from plancal.models.schedule import ScheduleCompletion, TaskSchedule, TaskScheduleCreate


class ITaskScheduleRepository(ABC):
    """Abstract interface for task schedule persistence."""

    @abstractmethod
    async def get(self, user_id: str, schedule_id: UUID) -> Optional[TaskSchedule]:
        pass

    @abstractmethod
    async def create(self, user_id: str, schedule: TaskScheduleCreate) -> TaskSchedule:
        pass

    @abstractmethod
    async def create_many(
        self, user_id: str, schedules: list[TaskScheduleCreate]
    ) -> list[TaskSchedule]:
        pass

    @abstractmethod
    async def list_active(
        self,
        user_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        plan_id: Optional[UUID] = None,
        exclude_plan_id: Optional[UUID] = None,
    ) -> list[TaskSchedule]:
        """
        List active (not superseded) rows in a date range.

        Returns:
            Rows ordered by date and start time
        """
        pass

    @abstractmethod
    async def has_successor(self, user_id: str, schedule_id: UUID) -> bool:
        """Whether a newer row was rescheduled from this one."""
        pass

    @abstractmethod
    async def delete_by_plan(self, user_id: str, plan_id: UUID) -> int:
        pass

    @abstractmethod
    async def record_completion(self, user_id: str, schedule_id: UUID) -> ScheduleCompletion:
        pass

    @abstractmethod
    async def list_completed_ids(self, user_id: str, schedule_ids: list[UUID]) -> set[UUID]:
        pass

    @abstractmethod
    async def list_users_with_active_schedules(self, before: date) -> list[str]:
        """User ids owning active rows dated on or before ``before``."""
        pass
