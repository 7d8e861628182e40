"""
SQLite implementation of Task repository.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, delete, select
from sqlalchemy.exc import SQLAlchemyError

from plancal.core.exceptions import InfrastructureError
from plancal.core.logger import setup_logger
from plancal.infrastructure.local.database import TaskORM, get_session_factory
from plancal.interfaces.task_repository import ITaskRepository
from plancal.models.task import Task, TaskCreate

logger = setup_logger(__name__)


class SqliteTaskRepository(ITaskRepository):
    """SQLite implementation of task repository."""

    def __init__(self, session_factory=None):
        """
        Initialize repository.

        Args:
            session_factory: Optional session factory (for testing)
        """
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: TaskORM) -> Task:
        """Convert ORM object to Pydantic model."""
        return Task(
            id=UUID(orm.id),
            plan_id=UUID(orm.plan_id),
            user_id=orm.user_id,
            idx=orm.idx,
            name=orm.name,
            details=orm.details,
            duration_minutes=orm.duration_minutes,
            priority=orm.priority,
            is_recurring=bool(orm.is_recurring),
            is_indefinite=bool(orm.is_indefinite),
            is_calendar_event=bool(orm.is_calendar_event),
            created_at=orm.created_at,
        )

    async def get(self, user_id: str, task_id: UUID) -> Optional[Task]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TaskORM).where(
                    and_(TaskORM.id == str(task_id), TaskORM.user_id == user_id)
                )
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def list_by_plan(self, user_id: str, plan_id: UUID) -> list[Task]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TaskORM)
                .where(and_(TaskORM.plan_id == str(plan_id), TaskORM.user_id == user_id))
                .order_by(TaskORM.idx)
            )
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def create_many(
        self, user_id: str, plan_id: UUID, tasks: list[TaskCreate]
    ) -> list[Task]:
        if not tasks:
            return []
        async with self._session_factory() as session:
            now = datetime.utcnow()
            orms = [
                TaskORM(
                    id=str(uuid4()),
                    plan_id=str(plan_id),
                    user_id=user_id,
                    idx=task.idx,
                    name=task.name,
                    details=task.details,
                    duration_minutes=task.duration_minutes,
                    priority=task.priority,
                    is_recurring=task.is_recurring,
                    is_indefinite=task.is_indefinite,
                    is_calendar_event=task.is_calendar_event,
                    created_at=now,
                )
                for task in tasks
            ]
            session.add_all(orms)
            try:
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error(f"Task insert failed for plan {plan_id}: {exc}")
                raise InfrastructureError(f"Failed to insert tasks for plan {plan_id}") from exc
            return sorted(
                (self._orm_to_model(orm) for orm in orms),
                key=lambda task: task.idx,
            )

    async def delete_by_plan(self, user_id: str, plan_id: UUID) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(TaskORM).where(
                    and_(TaskORM.plan_id == str(plan_id), TaskORM.user_id == user_id)
                )
            )
            await session.commit()
            return result.rowcount or 0
