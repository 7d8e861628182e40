"""
SQLite implementation of the per-plan advisory lock.

The lock is a row keyed by plan id, so it holds across processes sharing the
database. Locks past their expiry can be taken over by a new holder.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import and_, delete, update
from sqlalchemy.exc import IntegrityError

from plancal.core.logger import setup_logger
from plancal.infrastructure.local.database import PlanLockORM, get_session_factory
from plancal.interfaces.plan_lock import IPlanLock

logger = setup_logger(__name__)


class SqlitePlanLock(IPlanLock):
    def __init__(self, session_factory=None, ttl_seconds: int = 300):
        self._session_factory = session_factory or get_session_factory()
        self._ttl = timedelta(seconds=ttl_seconds)

    async def acquire(self, plan_id: UUID, holder: str) -> bool:
        now = datetime.utcnow()
        async with self._session_factory() as session:
            session.add(
                PlanLockORM(
                    plan_id=str(plan_id),
                    holder=holder,
                    acquired_at=now,
                    expires_at=now + self._ttl,
                )
            )
            try:
                await session.commit()
                return True
            except IntegrityError:
                await session.rollback()

            result = await session.execute(
                update(PlanLockORM)
                .where(and_(PlanLockORM.plan_id == str(plan_id), PlanLockORM.expires_at < now))
                .values(holder=holder, acquired_at=now, expires_at=now + self._ttl)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            if result.rowcount == 1:
                logger.warning(f"Took over expired lock on plan {plan_id}")
                return True
            return False

    async def release(self, plan_id: UUID, holder: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                delete(PlanLockORM).where(
                    and_(PlanLockORM.plan_id == str(plan_id), PlanLockORM.holder == holder)
                )
            )
            await session.commit()
