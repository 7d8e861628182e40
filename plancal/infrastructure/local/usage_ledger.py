"""
SQLite implementation of the credit ledger.

Each verb is a single conditional UPDATE on the balance row plus a ledger
insert in the same transaction, so concurrent callers (in this or another
process) cannot both pass the quota check.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError

from plancal.core.exceptions import BusinessLogicError, UsageLimitExceededError
from plancal.core.logger import setup_logger
from plancal.infrastructure.local.database import (
    UsageBalanceORM,
    UsageLedgerORM,
    get_session_factory,
)
from plancal.interfaces.usage_ledger import IUsageLedger
from plancal.models.enums import LedgerAction, UsageMetric
from plancal.models.usage import UsageBalance, UsageLedgerEntry

logger = setup_logger(__name__)


class SqliteUsageLedger(IUsageLedger):
    """SQLite implementation of the usage ledger."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _balance_to_model(self, orm: UsageBalanceORM) -> UsageBalance:
        return UsageBalance(
            user_id=orm.user_id,
            metric=UsageMetric(orm.metric),
            allocation=orm.allocation,
            used=orm.used,
            reserved=orm.reserved,
            updated_at=orm.updated_at,
        )

    def _entry_to_model(self, orm: UsageLedgerORM) -> UsageLedgerEntry:
        return UsageLedgerEntry(
            id=UUID(orm.id),
            user_id=orm.user_id,
            metric=UsageMetric(orm.metric),
            action=LedgerAction(orm.action),
            amount=orm.amount,
            balance_after=orm.balance_after,
            reference=orm.reference,
            reason=orm.reason,
            created_at=orm.created_at,
        )

    @staticmethod
    def _balance_filter(user_id: str, metric: UsageMetric):
        return and_(UsageBalanceORM.user_id == user_id, UsageBalanceORM.metric == metric.value)

    async def _select_balance(self, session, user_id: str, metric: UsageMetric) -> Optional[UsageBalanceORM]:
        result = await session.execute(
            select(UsageBalanceORM).where(self._balance_filter(user_id, metric))
        )
        return result.scalar_one_or_none()

    async def get_balance(self, user_id: str, metric: UsageMetric) -> Optional[UsageBalance]:
        async with self._session_factory() as session:
            orm = await self._select_balance(session, user_id, metric)
            return self._balance_to_model(orm) if orm else None

    async def ensure_balance(
        self, user_id: str, metric: UsageMetric, allocation: int
    ) -> UsageBalance:
        async with self._session_factory() as session:
            orm = await self._select_balance(session, user_id, metric)
            if orm:
                return self._balance_to_model(orm)
            orm = UsageBalanceORM(
                id=str(uuid4()),
                user_id=user_id,
                metric=metric.value,
                allocation=allocation,
                used=0,
                reserved=0,
                updated_at=datetime.utcnow(),
            )
            session.add(orm)
            try:
                await session.commit()
            except IntegrityError:
                # Another request created the row first
                await session.rollback()
                orm = await self._select_balance(session, user_id, metric)
                return self._balance_to_model(orm)
            await session.refresh(orm)
            return self._balance_to_model(orm)

    async def _reference_actions(
        self, session, user_id: str, metric: UsageMetric, reference: str
    ) -> dict[LedgerAction, int]:
        """Ledger actions already recorded for ``reference``, with their amounts."""
        result = await session.execute(
            select(UsageLedgerORM.action, UsageLedgerORM.amount).where(
                and_(
                    UsageLedgerORM.user_id == user_id,
                    UsageLedgerORM.metric == metric.value,
                    UsageLedgerORM.reference == reference,
                )
            )
        )
        return {LedgerAction(action): amount for action, amount in result.all()}

    @staticmethod
    def _settle_error(
        action: LedgerAction, amount: int, reference: str, recorded: dict[LedgerAction, int]
    ) -> Optional[BusinessLogicError]:
        """
        Check a commit or release against what the reference already recorded.

        Returns:
            None when the settle may proceed or was already applied,
            otherwise the error to raise
        """
        if LedgerAction.RESERVE not in recorded:
            return BusinessLogicError(
                f"Cannot {action.value}: no reservation {reference}",
                details={"reference": reference},
            )
        if recorded[LedgerAction.RESERVE] != amount:
            return BusinessLogicError(
                f"Cannot {action.value} {amount}: reservation {reference} holds "
                f"{recorded[LedgerAction.RESERVE]}",
                details={"reference": reference},
            )
        other = LedgerAction.RELEASE if action == LedgerAction.COMMIT else LedgerAction.COMMIT
        if other in recorded:
            return BusinessLogicError(
                f"Cannot {action.value}: reservation {reference} was already "
                f"settled by {other.value}",
                details={"reference": reference},
            )
        return None

    async def _apply(
        self,
        user_id: str,
        metric: UsageMetric,
        action: LedgerAction,
        amount: int,
        reference: str,
        reason: Optional[str] = None,
    ) -> UsageBalance:
        """
        Apply one verb atomically.

        Commits and releases settle the reservation recorded under
        ``reference``: repeating the same settle is a no-op, settling an
        unknown or already oppositely settled reference is an error.
        """
        if amount <= 0:
            raise BusinessLogicError(f"Credit amount must be positive, got {amount}")

        if action == LedgerAction.RESERVE:
            guard = (
                UsageBalanceORM.allocation - UsageBalanceORM.used - UsageBalanceORM.reserved
            ) >= amount
            values = {"reserved": UsageBalanceORM.reserved + amount}
        elif action == LedgerAction.COMMIT:
            guard = UsageBalanceORM.reserved >= amount
            values = {
                "reserved": UsageBalanceORM.reserved - amount,
                "used": UsageBalanceORM.used + amount,
            }
        else:
            guard = UsageBalanceORM.reserved >= amount
            values = {"reserved": UsageBalanceORM.reserved - amount}

        async with self._session_factory() as session:
            now = datetime.utcnow()
            result = await session.execute(
                update(UsageBalanceORM)
                .where(and_(self._balance_filter(user_id, metric), guard))
                .values(updated_at=now, **values)
                .execution_options(synchronize_session=False)
            )
            updated = result.rowcount == 1
            # The UPDATE holds the write lock, so this read sees every settled entry
            recorded = await self._reference_actions(session, user_id, metric, reference)

            if action == LedgerAction.RESERVE:
                if updated and recorded:
                    await session.rollback()
                    raise BusinessLogicError(
                        f"Reservation reference {reference} is already in use",
                        details={"reference": reference},
                    )
            else:
                error = self._settle_error(action, amount, reference, recorded)
                if error is None and action in recorded:
                    await session.rollback()
                    logger.info(f"Credit {action.value} ref={reference} already applied, skipping")
                    orm = await self._select_balance(session, user_id, metric)
                    return self._balance_to_model(orm)
                if error is not None:
                    await session.rollback()
                    raise error

            if not updated:
                await session.rollback()
                orm = await self._select_balance(session, user_id, metric)
                current = self._balance_to_model(orm) if orm else None
                if action == LedgerAction.RESERVE:
                    remaining = current.available if current else 0
                    raise UsageLimitExceededError(metric.value, remaining)
                raise BusinessLogicError(
                    f"Cannot {action.value} {amount} {metric.value}: nothing reserved",
                    details={"reference": reference},
                )

            orm = await self._select_balance(session, user_id, metric)
            await session.refresh(orm)
            balance = self._balance_to_model(orm)
            session.add(
                UsageLedgerORM(
                    id=str(uuid4()),
                    user_id=user_id,
                    metric=metric.value,
                    action=action.value,
                    amount=amount,
                    balance_after=balance.available,
                    reference=reference,
                    reason=reason,
                    created_at=now,
                )
            )
            await session.commit()
            logger.info(
                f"Credit {action.value} user={user_id} metric={metric.value} "
                f"amount={amount} available={balance.available} ref={reference}"
            )
            return balance

    async def reserve(
        self, user_id: str, metric: UsageMetric, amount: int, reference: str
    ) -> UsageBalance:
        return await self._apply(user_id, metric, LedgerAction.RESERVE, amount, reference)

    async def commit(
        self, user_id: str, metric: UsageMetric, amount: int, reference: str
    ) -> UsageBalance:
        return await self._apply(user_id, metric, LedgerAction.COMMIT, amount, reference)

    async def release(
        self,
        user_id: str,
        metric: UsageMetric,
        amount: int,
        reference: str,
        reason: Optional[str] = None,
    ) -> UsageBalance:
        return await self._apply(
            user_id, metric, LedgerAction.RELEASE, amount, reference, reason=reason
        )

    async def list_entries(
        self, user_id: str, metric: UsageMetric, limit: int = 50
    ) -> list[UsageLedgerEntry]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UsageLedgerORM)
                .where(
                    and_(
                        UsageLedgerORM.user_id == user_id,
                        UsageLedgerORM.metric == metric.value,
                    )
                )
                .order_by(UsageLedgerORM.created_at.desc())
                .limit(limit)
            )
            return [self._entry_to_model(orm) for orm in result.scalars().all()]
