"""
Credit ledger models.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, computed_field

from plancal.models.enums import LedgerAction, UsageMetric


class UsageBalance(BaseModel):
    """Current balance for one user and metric."""

    user_id: str
    metric: UsageMetric
    allocation: int
    used: int = 0
    reserved: int = 0
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def available(self) -> int:
        return max(self.allocation - self.used - self.reserved, 0)


class UsageLedgerEntry(BaseModel):
    """Append-only record of one reserve/commit/release."""

    id: UUID
    user_id: str
    metric: UsageMetric
    action: LedgerAction
    amount: int
    balance_after: int
    reference: str
    reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CreditReservation(BaseModel):
    """Handle returned by a successful reserve."""

    user_id: str
    metric: UsageMetric = UsageMetric.API_CREDITS
    amount: int = Field(1, gt=0)
    reference: str
    remaining: Optional[int] = None
    # True when enforcement is disabled and no ledger row was written
    bypassed: bool = False
