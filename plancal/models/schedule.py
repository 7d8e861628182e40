"""
Schedule models: persisted placements, provenance and placement outputs.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Annotated, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from plancal.models.enums import BusySource, UnscheduledReason
from plancal.utils.datetime_utils import minutes_to_time, time_to_minutes


class OriginalPlacement(BaseModel):
    """Row created directly by the placement engine."""

    kind: Literal["original"] = "original"


class RescheduledPlacement(BaseModel):
    """Row created by moving an earlier row."""

    kind: Literal["rescheduled"] = "rescheduled"
    from_schedule_id: UUID
    reason: Optional[str] = Field(None, max_length=500)


ScheduleOrigin = Annotated[
    Union[OriginalPlacement, RescheduledPlacement],
    Field(discriminator="kind"),
]


class TaskScheduleCreate(BaseModel):
    """A placement to persist."""

    task_id: UUID
    plan_id: UUID
    date: date
    start_time: time
    end_time: time
    duration_minutes: int = Field(..., gt=0)
    origin: ScheduleOrigin = Field(default_factory=OriginalPlacement)


class TaskSchedule(TaskScheduleCreate):
    """
    Persisted placement.

    Rows are never edited. A move appends a new row whose origin points back
    at the row it replaces; the replaced row stays as history.
    """

    id: UUID
    user_id: str
    created_at: datetime

    class Config:
        from_attributes = True

    @property
    def rescheduled_from(self) -> Optional[UUID]:
        if isinstance(self.origin, RescheduledPlacement):
            return self.origin.from_schedule_id
        return None

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        # end_time cannot express 24:00, so the interval is derived from the duration
        return self.start_minutes + self.duration_minutes


class ScheduleCompletion(BaseModel):
    schedule_id: UUID
    user_id: str
    completed_at: datetime


class BusySlot(BaseModel):
    """An instant range during which the user is already committed."""

    start: datetime
    end: datetime
    source: BusySource
    reference_id: Optional[str] = None


class CalendarBusyInterval(BaseModel):
    """Busy interval returned by the calendar collaborator."""

    start: datetime
    end: datetime
    summary: Optional[str] = None


class PlacedTask(BaseModel):
    """One placement decided by the engine, not yet persisted."""

    task_id: UUID
    date: date
    start_minutes: int
    end_minutes: int
    rescheduled_from: Optional[UUID] = None

    @property
    def duration_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    def to_schedule_create(self, plan_id: UUID) -> TaskScheduleCreate:
        origin: Union[OriginalPlacement, RescheduledPlacement] = OriginalPlacement()
        if self.rescheduled_from:
            origin = RescheduledPlacement(from_schedule_id=self.rescheduled_from)
        return TaskScheduleCreate(
            task_id=self.task_id,
            plan_id=plan_id,
            date=self.date,
            start_time=minutes_to_time(self.start_minutes),
            end_time=minutes_to_time(self.end_minutes),
            duration_minutes=self.duration_minutes,
            origin=origin,
        )


class UnscheduledTask(BaseModel):
    """Unscheduled task with reason."""

    task_id: UUID
    reason: UnscheduledReason


class SkippedOccurrence(BaseModel):
    """A recurring task date that had no room."""

    task_id: UUID
    date: date


class PlacementResult(BaseModel):
    placements: list[PlacedTask] = Field(default_factory=list)
    unscheduled: list[UnscheduledTask] = Field(default_factory=list)
    skipped_occurrences: list[SkippedOccurrence] = Field(default_factory=list)
    open_ended_task_ids: list[UUID] = Field(default_factory=list)


class ScheduleGenerationResult(BaseModel):
    """Persisted outcome of scheduling a plan."""

    plan_id: UUID
    start_date: date
    end_date: date
    schedules: list[TaskSchedule] = Field(default_factory=list)
    unscheduled: list[UnscheduledTask] = Field(default_factory=list)
    skipped_occurrences: list[SkippedOccurrence] = Field(default_factory=list)
    open_ended_task_ids: list[UUID] = Field(default_factory=list)


class ScheduleGenerationRequest(BaseModel):
    """Optional hint describing when the user works on the plan (e.g. "2 hours each evening")."""

    usage_text: Optional[str] = Field(None, max_length=2000)


class CalendarEventCreate(BaseModel):
    start: datetime
    end: datetime
    summary: Optional[str] = Field(None, max_length=500)


class ScheduleMoveRequest(BaseModel):
    """Request to move a placement."""

    date: date
    start_time: time
    end_time: time
    reason: Optional[str] = Field(None, max_length=500)


class OverdueRescheduleRequest(BaseModel):
    plan_id: Optional[UUID] = None


class OverdueRescheduleResult(BaseModel):
    rescheduled: list[TaskSchedule] = Field(default_factory=list)
    unscheduled: list[UnscheduledTask] = Field(default_factory=list)
    locked_plan_ids: list[UUID] = Field(default_factory=list)
