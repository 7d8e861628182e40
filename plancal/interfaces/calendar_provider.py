"""
Calendar provider interface.

Supplies busy intervals from the user's external calendars.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from plancal.models.schedule import CalendarBusyInterval


class ICalendarProvider(ABC):
    @abstractmethod
    async def get_busy_intervals(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[CalendarBusyInterval]:
        """
        Get busy intervals overlapping [start, end).

        Args:
            user_id: Owner user ID
            start: Range start (UTC)
            end: Range end (UTC)
        """
        pass

    @abstractmethod
    async def add_event(
        self, user_id: str, start: datetime, end: datetime, summary: Optional[str] = None
    ) -> CalendarBusyInterval:
        """Record a busy interval pushed by a calendar sync."""
        pass
