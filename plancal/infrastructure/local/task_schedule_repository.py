"""
SQLite implementation of task schedule repository.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, delete, exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased

from plancal.core.exceptions import ConflictError
from plancal.infrastructure.local.database import (
    ScheduleCompletionORM,
    TaskScheduleORM,
    get_session_factory,
)
from plancal.interfaces.task_schedule_repository import ITaskScheduleRepository
from plancal.models.schedule import (
    OriginalPlacement,
    RescheduledPlacement,
    ScheduleCompletion,
    TaskSchedule,
    TaskScheduleCreate,
)


def _active_clause():
    successor = aliased(TaskScheduleORM)
    return ~exists().where(successor.rescheduled_from == TaskScheduleORM.id)


class SqliteTaskScheduleRepository(ITaskScheduleRepository):
    """SQLite implementation of task schedule repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: TaskScheduleORM) -> TaskSchedule:
        if orm.rescheduled_from:
            origin = RescheduledPlacement(
                from_schedule_id=UUID(orm.rescheduled_from),
                reason=orm.reschedule_reason,
            )
        else:
            origin = OriginalPlacement()
        return TaskSchedule(
            id=UUID(orm.id),
            user_id=orm.user_id,
            plan_id=UUID(orm.plan_id),
            task_id=UUID(orm.task_id),
            date=orm.schedule_date,
            start_time=orm.start_time,
            end_time=orm.end_time,
            duration_minutes=orm.duration_minutes,
            origin=origin,
            created_at=orm.created_at,
        )

    def _model_to_orm(self, user_id: str, schedule: TaskScheduleCreate, now: datetime) -> TaskScheduleORM:
        origin = schedule.origin
        return TaskScheduleORM(
            id=str(uuid4()),
            user_id=user_id,
            plan_id=str(schedule.plan_id),
            task_id=str(schedule.task_id),
            schedule_date=schedule.date,
            start_time=schedule.start_time,
            end_time=schedule.end_time,
            duration_minutes=schedule.duration_minutes,
            rescheduled_from=(
                str(origin.from_schedule_id) if isinstance(origin, RescheduledPlacement) else None
            ),
            reschedule_reason=(
                origin.reason if isinstance(origin, RescheduledPlacement) else None
            ),
            created_at=now,
        )

    async def get(self, user_id: str, schedule_id: UUID) -> Optional[TaskSchedule]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TaskScheduleORM).where(
                    and_(
                        TaskScheduleORM.id == str(schedule_id),
                        TaskScheduleORM.user_id == user_id,
                    )
                )
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def create(self, user_id: str, schedule: TaskScheduleCreate) -> TaskSchedule:
        created = await self.create_many(user_id, [schedule])
        return created[0]

    async def create_many(
        self, user_id: str, schedules: list[TaskScheduleCreate]
    ) -> list[TaskSchedule]:
        if not schedules:
            return []
        async with self._session_factory() as session:
            now = datetime.utcnow()
            orms = [self._model_to_orm(user_id, schedule, now) for schedule in schedules]
            session.add_all(orms)
            try:
                await session.commit()
            except IntegrityError as exc:
                # rescheduled_from is unique: a row can only be replaced once
                await session.rollback()
                raise ConflictError("Schedule was already rescheduled") from exc
            return [self._orm_to_model(orm) for orm in orms]

    async def list_active(
        self,
        user_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        plan_id: Optional[UUID] = None,
        exclude_plan_id: Optional[UUID] = None,
    ) -> list[TaskSchedule]:
        async with self._session_factory() as session:
            conditions = [TaskScheduleORM.user_id == user_id, _active_clause()]
            if start_date:
                conditions.append(TaskScheduleORM.schedule_date >= start_date)
            if end_date:
                conditions.append(TaskScheduleORM.schedule_date <= end_date)
            if plan_id:
                conditions.append(TaskScheduleORM.plan_id == str(plan_id))
            if exclude_plan_id:
                conditions.append(TaskScheduleORM.plan_id != str(exclude_plan_id))

            result = await session.execute(
                select(TaskScheduleORM)
                .where(and_(*conditions))
                .order_by(TaskScheduleORM.schedule_date, TaskScheduleORM.start_time)
            )
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def has_successor(self, user_id: str, schedule_id: UUID) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TaskScheduleORM.id).where(
                    and_(
                        TaskScheduleORM.user_id == user_id,
                        TaskScheduleORM.rescheduled_from == str(schedule_id),
                    )
                )
            )
            return result.first() is not None

    async def delete_by_plan(self, user_id: str, plan_id: UUID) -> int:
        async with self._session_factory() as session:
            ids_result = await session.execute(
                select(TaskScheduleORM.id).where(
                    and_(
                        TaskScheduleORM.plan_id == str(plan_id),
                        TaskScheduleORM.user_id == user_id,
                    )
                )
            )
            schedule_ids = [row[0] for row in ids_result.all()]
            if not schedule_ids:
                return 0
            await session.execute(
                delete(ScheduleCompletionORM).where(
                    ScheduleCompletionORM.schedule_id.in_(schedule_ids)
                )
            )
            result = await session.execute(
                delete(TaskScheduleORM).where(TaskScheduleORM.id.in_(schedule_ids))
            )
            await session.commit()
            return result.rowcount or 0

    async def record_completion(self, user_id: str, schedule_id: UUID) -> ScheduleCompletion:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ScheduleCompletionORM).where(
                    ScheduleCompletionORM.schedule_id == str(schedule_id)
                )
            )
            orm = result.scalar_one_or_none()
            if not orm:
                orm = ScheduleCompletionORM(
                    schedule_id=str(schedule_id),
                    user_id=user_id,
                    completed_at=datetime.utcnow(),
                )
                session.add(orm)
                await session.commit()
                await session.refresh(orm)
            return ScheduleCompletion(
                schedule_id=UUID(orm.schedule_id),
                user_id=orm.user_id,
                completed_at=orm.completed_at,
            )

    async def list_completed_ids(self, user_id: str, schedule_ids: list[UUID]) -> set[UUID]:
        if not schedule_ids:
            return set()
        async with self._session_factory() as session:
            result = await session.execute(
                select(ScheduleCompletionORM.schedule_id).where(
                    and_(
                        ScheduleCompletionORM.user_id == user_id,
                        ScheduleCompletionORM.schedule_id.in_([str(sid) for sid in schedule_ids]),
                    )
                )
            )
            return {UUID(row[0]) for row in result.all()}

    async def list_users_with_active_schedules(self, before: date) -> list[str]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TaskScheduleORM.user_id)
                .where(and_(TaskScheduleORM.schedule_date <= before, _active_clause()))
                .distinct()
            )
            return sorted(row[0] for row in result.all())
