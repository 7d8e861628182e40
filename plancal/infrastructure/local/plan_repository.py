"""
SQLite implementation of Plan repository.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, select

from plancal.core.exceptions import NotFoundError
from plancal.infrastructure.local.database import PlanORM, get_session_factory
from plancal.interfaces.plan_repository import IPlanRepository
from plancal.models.enums import PlanStatus
from plancal.models.plan import Plan, PlanCreate, PlanUpdate


class SqlitePlanRepository(IPlanRepository):
    """SQLite implementation of plan repository."""

    def __init__(self, session_factory=None):
        """
        Initialize repository.

        Args:
            session_factory: Optional session factory (for testing)
        """
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: PlanORM) -> Plan:
        """Convert ORM object to Pydantic model."""
        return Plan(
            id=UUID(orm.id),
            user_id=orm.user_id,
            goal_text=orm.goal_text,
            clarifications=orm.clarifications,
            start_date=orm.start_date,
            end_date=orm.end_date,
            status=PlanStatus(orm.status),
            summary_data=orm.summary_data or {},
            created_at=orm.created_at,
            updated_at=orm.updated_at,
        )

    async def create(self, user_id: str, plan: PlanCreate) -> Plan:
        async with self._session_factory() as session:
            now = datetime.utcnow()
            orm = PlanORM(
                id=str(uuid4()),
                user_id=user_id,
                goal_text=plan.goal_text,
                clarifications=plan.clarifications,
                start_date=plan.start_date,
                end_date=plan.end_date,
                status=plan.status.value,
                summary_data=plan.summary_data,
                created_at=now,
                updated_at=now,
            )
            session.add(orm)
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def get(self, user_id: str, plan_id: UUID) -> Optional[Plan]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PlanORM).where(
                    and_(PlanORM.id == str(plan_id), PlanORM.user_id == user_id)
                )
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def update(self, user_id: str, plan_id: UUID, update: PlanUpdate) -> Plan:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PlanORM).where(
                    and_(PlanORM.id == str(plan_id), PlanORM.user_id == user_id)
                )
            )
            orm = result.scalar_one_or_none()

            if not orm:
                raise NotFoundError(f"Plan {plan_id} not found")

            for field, value in update.model_dump(exclude_unset=True).items():
                if hasattr(value, "value"):  # Enum
                    value = value.value
                setattr(orm, field, value)

            orm.updated_at = datetime.utcnow()
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)
