"""
Plan model definitions.
"""

from datetime import date, datetime, timedelta
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from plancal.models.enums import PlanStatus
from plancal.models.task import TaskCreate

DEFAULT_PLAN_DAYS = 21


class PlanBase(BaseModel):
    goal_text: str = Field(..., min_length=1, max_length=5000)
    clarifications: Optional[Any] = None
    start_date: date
    end_date: Optional[date] = None
    status: PlanStatus = PlanStatus.ACTIVE
    summary_data: dict[str, Any] = Field(default_factory=dict)


class PlanCreate(PlanBase):
    """Schema for creating a plan."""

    pass


class PlanUpdate(BaseModel):
    """
    Partial plan update.

    Only explicitly set fields are written, so ``end_date=None`` clears it.
    """

    goal_text: Optional[str] = Field(None, min_length=1, max_length=5000)
    clarifications: Optional[Any] = None
    end_date: Optional[date] = None
    status: Optional[PlanStatus] = None
    summary_data: Optional[dict[str, Any]] = None


class Plan(PlanBase):
    """Complete plan model."""

    id: UUID
    user_id: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    def resolved_end_date(self, default_days: int = DEFAULT_PLAN_DAYS) -> date:
        """End date, or start + default_days when the plan has none."""
        return self.end_date or self.start_date + timedelta(days=default_days)


class PlanSnapshot(BaseModel):
    """Mutable plan fields and task list captured before regeneration."""

    plan_id: UUID
    goal_text: str
    clarifications: Optional[Any] = None
    end_date: Optional[date] = None
    status: PlanStatus
    summary_data: dict[str, Any] = Field(default_factory=dict)
    tasks: list[TaskCreate] = Field(default_factory=list)

    def to_plan_update(self) -> PlanUpdate:
        return PlanUpdate(
            goal_text=self.goal_text,
            clarifications=self.clarifications,
            end_date=self.end_date,
            status=self.status,
            summary_data=self.summary_data,
        )
