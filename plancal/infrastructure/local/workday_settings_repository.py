"""
SQLite implementation of workday settings repository.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import select

from plancal.infrastructure.local.database import WorkdaySettingsORM, get_session_factory
from plancal.interfaces.workday_settings_repository import IWorkdaySettingsRepository
from plancal.models.workday import WorkdaySettings, WorkdaySettingsUpdate


class SqliteWorkdaySettingsRepository(IWorkdaySettingsRepository):
    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: WorkdaySettingsORM) -> WorkdaySettings:
        return WorkdaySettings(
            user_id=orm.user_id,
            start_hour=orm.start_hour,
            end_hour=orm.end_hour,
            lunch_start_hour=orm.lunch_start_hour,
            lunch_end_hour=orm.lunch_end_hour,
            allow_weekends=bool(orm.allow_weekends),
            timezone=orm.timezone,
            evening_buffer_minutes=orm.evening_buffer_minutes,
            created_at=orm.created_at,
            updated_at=orm.updated_at,
        )

    async def get(self, user_id: str) -> Optional[WorkdaySettings]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(WorkdaySettingsORM).where(WorkdaySettingsORM.user_id == user_id)
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def upsert(self, user_id: str, update: WorkdaySettingsUpdate) -> WorkdaySettings:
        async with self._session_factory() as session:
            result = await session.execute(
                select(WorkdaySettingsORM).where(WorkdaySettingsORM.user_id == user_id)
            )
            orm = result.scalar_one_or_none()
            now = datetime.utcnow()
            values = update.model_dump(exclude_unset=True)
            if orm:
                for field, value in values.items():
                    setattr(orm, field, value)
                orm.updated_at = now
            else:
                defaults = WorkdaySettings(user_id=user_id)
                data = defaults.model_dump(exclude={"user_id", "created_at", "updated_at"})
                data.update(values)
                orm = WorkdaySettingsORM(user_id=user_id, created_at=now, updated_at=now, **data)
                session.add(orm)
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)
