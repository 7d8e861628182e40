"""
Credit reservation around metered operations.

reserve -> (expensive call) -> commit on success / release on failure. All
state lives in the shared ledger so the quota holds across service instances.
"""

from __future__ import annotations

from typing import Optional
from uuid import uuid4

from plancal.core.logger import setup_logger
from plancal.interfaces.usage_ledger import IUsageLedger
from plancal.models.enums import UsageMetric
from plancal.models.usage import CreditReservation, UsageBalance

logger = setup_logger(__name__)


class CreditService:
    def __init__(
        self,
        ledger: IUsageLedger,
        enforcement_enabled: bool = True,
        default_allocation: int = 10,
    ):
        self._ledger = ledger
        self._enforcement_enabled = enforcement_enabled
        self._default_allocation = default_allocation

    async def get_balance(
        self, user_id: str, metric: UsageMetric = UsageMetric.API_CREDITS
    ) -> UsageBalance:
        return await self._ledger.ensure_balance(user_id, metric, self._default_allocation)

    async def reserve(
        self,
        user_id: str,
        amount: int = 1,
        reference: Optional[str] = None,
        metric: UsageMetric = UsageMetric.API_CREDITS,
    ) -> CreditReservation:
        """
        Reserve credits.

        Raises:
            UsageLimitExceededError: If the balance cannot cover ``amount``
        """
        reference = reference or f"reservation:{uuid4()}"
        if not self._enforcement_enabled:
            return CreditReservation(
                user_id=user_id, metric=metric, amount=amount, reference=reference, bypassed=True
            )

        await self._ledger.ensure_balance(user_id, metric, self._default_allocation)
        balance = await self._ledger.reserve(user_id, metric, amount, reference)
        return CreditReservation(
            user_id=user_id,
            metric=metric,
            amount=amount,
            reference=reference,
            remaining=balance.available,
        )

    async def commit(self, reservation: CreditReservation) -> None:
        if reservation.bypassed:
            return
        await self._ledger.commit(
            reservation.user_id, reservation.metric, reservation.amount, reservation.reference
        )

    async def release(self, reservation: CreditReservation, reason: Optional[str] = None) -> None:
        if reservation.bypassed:
            return
        await self._ledger.release(
            reservation.user_id,
            reservation.metric,
            reservation.amount,
            reservation.reference,
            reason=reason,
        )
