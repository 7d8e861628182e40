"""
Workday settings repository interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from plancal.models.workday import WorkdaySettings, WorkdaySettingsUpdate


class IWorkdaySettingsRepository(ABC):
    @abstractmethod
    async def get(self, user_id: str) -> Optional[WorkdaySettings]:
        pass

    @abstractmethod
    async def upsert(self, user_id: str, update: WorkdaySettingsUpdate) -> WorkdaySettings:
        pass
