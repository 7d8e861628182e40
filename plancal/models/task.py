"""
Task model definitions.

Tasks are produced by content generation and consumed, never reordered, by
the placement engine.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

MIN_TASK_DURATION_MINUTES = 5
MAX_TASK_DURATION_MINUTES = 360
DEFAULT_TASK_DURATION_MINUTES = 60
DEFAULT_TASK_PRIORITY = 3
VALID_PRIORITIES = (1, 2, 3, 4)


class TaskBase(BaseModel):
    """Base task fields."""

    idx: int = Field(..., gt=0, description="Order index within the plan")
    name: str = Field(..., min_length=1, max_length=500)
    details: Optional[str] = Field(None, max_length=5000)
    duration_minutes: int = Field(
        DEFAULT_TASK_DURATION_MINUTES,
        ge=1,
        le=24 * 60,
        description="5-360 unless is_calendar_event",
    )
    priority: int = Field(DEFAULT_TASK_PRIORITY, ge=1, le=4, description="1 = most important")
    is_recurring: bool = False
    is_indefinite: bool = False
    is_calendar_event: bool = Field(
        False, description="Imported calendar event; duration bounds do not apply"
    )


class TaskCreate(TaskBase):
    """Schema for inserting a task into a plan."""

    pass


class Task(TaskBase):
    """Complete task model."""

    id: UUID
    plan_id: UUID
    user_id: str
    created_at: datetime

    class Config:
        from_attributes = True

    def to_create(self) -> TaskCreate:
        return TaskCreate(**self.model_dump(include=set(TaskBase.model_fields)))
