"""
Per-plan advisory lock interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from uuid import UUID


class IPlanLock(ABC):
    """Single-writer gate for whole-plan mutations."""

    @abstractmethod
    async def acquire(self, plan_id: UUID, holder: str) -> bool:
        """
        Try to take the lock without waiting.

        Returns:
            True if acquired, False if another holder owns an unexpired lock
        """
        pass

    @abstractmethod
    async def release(self, plan_id: UUID, holder: str) -> None:
        """Release the lock if ``holder`` owns it."""
        pass
