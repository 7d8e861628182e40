"""
Schedules API endpoints.

Moves, reschedule history, completion and the overdue sweep for one user.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, status

from plancal.api.deps import CurrentUser, Reschedules
from plancal.models.schedule import (
    OverdueRescheduleRequest,
    OverdueRescheduleResult,
    ScheduleCompletion,
    ScheduleMoveRequest,
    TaskSchedule,
)

router = APIRouter()


@router.post("/reschedule-overdue", response_model=OverdueRescheduleResult)
async def reschedule_overdue(
    user: CurrentUser,
    service: Reschedules,
    payload: Optional[OverdueRescheduleRequest] = None,
):
    plan_id = payload.plan_id if payload else None
    return await service.reschedule_overdue(user, plan_id=plan_id)


@router.post("/{schedule_id}/move", response_model=TaskSchedule, status_code=status.HTTP_201_CREATED)
async def move_schedule(
    schedule_id: UUID,
    payload: ScheduleMoveRequest,
    user: CurrentUser,
    service: Reschedules,
):
    """Move a placement. The old row is kept and linked from the new one."""
    return await service.move_schedule(
        user,
        schedule_id,
        payload.date,
        payload.start_time,
        payload.end_time,
        reason=payload.reason,
    )


@router.get("/{schedule_id}/chain", response_model=list[TaskSchedule])
async def get_schedule_chain(
    schedule_id: UUID,
    user: CurrentUser,
    service: Reschedules,
):
    return await service.get_chain(user, schedule_id)


@router.post("/{schedule_id}/complete", response_model=ScheduleCompletion)
async def complete_schedule(
    schedule_id: UUID,
    user: CurrentUser,
    service: Reschedules,
):
    return await service.mark_completed(user, schedule_id)
