"""
Usage ledger interface.

The ledger is the single source of truth for credit balances. Every verb must
be atomic with respect to concurrent callers on any service instance.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from plancal.models.enums import UsageMetric
from plancal.models.usage import UsageBalance, UsageLedgerEntry


class IUsageLedger(ABC):
    """Abstract interface for the shared credit ledger."""

    @abstractmethod
    async def get_balance(self, user_id: str, metric: UsageMetric) -> Optional[UsageBalance]:
        pass

    @abstractmethod
    async def ensure_balance(
        self, user_id: str, metric: UsageMetric, allocation: int
    ) -> UsageBalance:
        """Create the balance row with ``allocation`` if it does not exist yet."""
        pass

    @abstractmethod
    async def reserve(
        self, user_id: str, metric: UsageMetric, amount: int, reference: str
    ) -> UsageBalance:
        """
        Atomically move ``amount`` from available to reserved.

        Raises:
            UsageLimitExceededError: If available < amount (nothing changes)
            BusinessLogicError: If ``reference`` was already used
        """
        pass

    @abstractmethod
    async def commit(
        self, user_id: str, metric: UsageMetric, amount: int, reference: str
    ) -> UsageBalance:
        """
        Atomically move the reservation recorded under ``reference`` to used.

        Repeating a commit of the same reference is a no-op.

        Raises:
            BusinessLogicError: If ``reference`` holds no reservation of
                ``amount`` or was already released
        """
        pass

    @abstractmethod
    async def release(
        self,
        user_id: str,
        metric: UsageMetric,
        amount: int,
        reference: str,
        reason: Optional[str] = None,
    ) -> UsageBalance:
        """
        Atomically return the reservation recorded under ``reference``.

        Repeating a release of the same reference is a no-op.

        Raises:
            BusinessLogicError: If ``reference`` holds no reservation of
                ``amount`` or was already committed
        """
        pass

    @abstractmethod
    async def list_entries(
        self, user_id: str, metric: UsageMetric, limit: int = 50
    ) -> list[UsageLedgerEntry]:
        pass
