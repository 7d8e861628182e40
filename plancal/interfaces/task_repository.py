"""
Task repository interface.

Defines the contract for task persistence operations.
Implementations: SQLite
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from plancal.models.task import Task, TaskCreate


class ITaskRepository(ABC):
    """Abstract interface for task persistence."""

    @abstractmethod
    async def get(self, user_id: str, task_id: UUID) -> Optional[Task]:
        pass

    @abstractmethod
    async def list_by_plan(self, user_id: str, plan_id: UUID) -> list[Task]:
        """
        List a plan's tasks.

        Returns:
            Tasks ordered by idx ascending
        """
        pass

    @abstractmethod
    async def create_many(
        self, user_id: str, plan_id: UUID, tasks: list[TaskCreate]
    ) -> list[Task]:
        """
        Insert tasks for a plan in one write.

        Raises:
            InfrastructureError: If the write fails (nothing is inserted)
        """
        pass

    @abstractmethod
    async def delete_by_plan(self, user_id: str, plan_id: UUID) -> int:
        """
        Delete every task of a plan.

        Returns:
            Number of deleted rows
        """
        pass
