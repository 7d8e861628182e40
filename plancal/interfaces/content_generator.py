"""
Content generator interface.

Turns a goal into plan metadata and task definitions. This is the expensive,
metered call guarded by credit reservation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from plancal.models.regeneration import GeneratedPlanContent


class IContentGenerator(ABC):
    @abstractmethod
    async def generate(
        self,
        goal_text: str,
        clarifications: Optional[Any] = None,
        timeline_days: Optional[int] = None,
    ) -> GeneratedPlanContent:
        """
        Generate plan content.

        Raises:
            ContentGenerationError: If the generator fails or returns unusable output
        """
        pass
