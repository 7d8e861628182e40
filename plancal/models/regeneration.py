"""
Plan regeneration request/response models and generated content.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from plancal.models.plan import Plan
from plancal.models.task import Task


class RegenerationRequest(BaseModel):
    """Body of a regenerate call. Missing fields fall back to the plan's values."""

    goal_text: Optional[str] = Field(None, max_length=5000)
    clarifications: Optional[Any] = None
    timeline_days: Optional[int] = Field(None, ge=1, le=365)


class GeneratedTask(BaseModel):
    """Task as returned by the content generator, before validation."""

    name: str = ""
    details: Optional[str] = None
    duration_minutes: Optional[int] = None
    priority: Optional[int] = None
    is_recurring: bool = False
    is_indefinite: bool = False


class GeneratedPlanContent(BaseModel):
    goal_title: str = ""
    plan_summary: str = ""
    timeline_days: Optional[int] = Field(None, ge=1, le=365)
    tasks: list[GeneratedTask] = Field(default_factory=list)


class RegenerationResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    plan: Plan
    tasks: list[Task] = Field(default_factory=list)
    schedule_generation_success: bool = Field(
        ..., serialization_alias="scheduleGenerationSuccess"
    )
