"""
Plan repository interface.

Defines the contract for plan persistence operations.
Implementations: SQLite
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from plancal.models.plan import Plan, PlanCreate, PlanUpdate


class IPlanRepository(ABC):
    """Abstract interface for plan persistence."""

    @abstractmethod
    async def create(self, user_id: str, plan: PlanCreate) -> Plan:
        """
        Create a new plan.

        Args:
            user_id: Owner user ID
            plan: Plan creation data

        Returns:
            Created plan with generated ID and timestamps
        """
        pass

    @abstractmethod
    async def get(self, user_id: str, plan_id: UUID) -> Optional[Plan]:
        """
        Get a plan by ID.

        Returns:
            Plan if found and owned by the user, None otherwise
        """
        pass

    @abstractmethod
    async def update(self, user_id: str, plan_id: UUID, update: PlanUpdate) -> Plan:
        """
        Update explicitly set fields of a plan.

        Raises:
            NotFoundError: If the plan doesn't exist
        """
        pass
