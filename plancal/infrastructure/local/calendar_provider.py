"""
Calendar provider backed by locally synced calendar events.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, select

from plancal.infrastructure.local.database import CalendarEventORM, get_session_factory
from plancal.interfaces.calendar_provider import ICalendarProvider
from plancal.models.schedule import CalendarBusyInterval
from plancal.utils.datetime_utils import ensure_utc


class SqliteCalendarProvider(ICalendarProvider):
    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    async def add_event(
        self, user_id: str, start: datetime, end: datetime, summary: Optional[str] = None
    ) -> CalendarBusyInterval:
        """Store a busy interval (used by sync jobs and tests)."""
        async with self._session_factory() as session:
            orm = CalendarEventORM(
                user_id=user_id,
                start_at=ensure_utc(start).replace(tzinfo=None),
                end_at=ensure_utc(end).replace(tzinfo=None),
                summary=summary,
            )
            session.add(orm)
            await session.commit()
            return CalendarBusyInterval(start=ensure_utc(start), end=ensure_utc(end), summary=summary)

    async def get_busy_intervals(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[CalendarBusyInterval]:
        range_start = ensure_utc(start).replace(tzinfo=None)
        range_end = ensure_utc(end).replace(tzinfo=None)
        async with self._session_factory() as session:
            result = await session.execute(
                select(CalendarEventORM)
                .where(
                    and_(
                        CalendarEventORM.user_id == user_id,
                        CalendarEventORM.start_at < range_end,
                        CalendarEventORM.end_at > range_start,
                    )
                )
                .order_by(CalendarEventORM.start_at)
            )
            return [
                CalendarBusyInterval(
                    start=ensure_utc(orm.start_at),
                    end=ensure_utc(orm.end_at),
                    summary=orm.summary,
                )
                for orm in result.scalars().all()
            ]
