"""
Plans API endpoints.

Plan creation, task loading, schedule generation and regeneration.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, status

from plancal.api.deps import (
    CurrentUser,
    PlanRepo,
    Regeneration,
    ScheduleGeneration,
    TaskRepo,
    TaskScheduleRepo,
)
from plancal.core.exceptions import NotFoundError, ValidationError
from plancal.models.plan import Plan, PlanCreate
from plancal.models.regeneration import RegenerationRequest, RegenerationResult
from plancal.models.schedule import (
    ScheduleGenerationRequest,
    ScheduleGenerationResult,
    TaskSchedule,
)
from plancal.models.task import Task, TaskCreate
from plancal.services.workday_policy_service import detect_usage_signal

router = APIRouter()


async def _get_plan_or_404(repo: PlanRepo, user_id: str, plan_id: UUID) -> Plan:
    plan = await repo.get(user_id, plan_id)
    if not plan:
        raise NotFoundError(f"Plan {plan_id} not found", code="PLAN_NOT_FOUND")
    return plan


@router.post("", response_model=Plan, status_code=status.HTTP_201_CREATED)
async def create_plan(
    payload: PlanCreate,
    user: CurrentUser,
    repo: PlanRepo,
):
    return await repo.create(user, payload)


@router.get("/{plan_id}", response_model=Plan)
async def get_plan(
    plan_id: UUID,
    user: CurrentUser,
    repo: PlanRepo,
):
    return await _get_plan_or_404(repo, user, plan_id)


@router.get("/{plan_id}/tasks", response_model=list[Task])
async def list_plan_tasks(
    plan_id: UUID,
    user: CurrentUser,
    plan_repo: PlanRepo,
    task_repo: TaskRepo,
):
    await _get_plan_or_404(plan_repo, user, plan_id)
    return await task_repo.list_by_plan(user, plan_id)


@router.post("/{plan_id}/tasks", response_model=list[Task], status_code=status.HTTP_201_CREATED)
async def add_plan_tasks(
    plan_id: UUID,
    payload: list[TaskCreate],
    user: CurrentUser,
    plan_repo: PlanRepo,
    task_repo: TaskRepo,
):
    """Append tasks to a plan. Each ``idx`` must be unused within the plan."""
    await _get_plan_or_404(plan_repo, user, plan_id)
    existing = {task.idx for task in await task_repo.list_by_plan(user, plan_id)}
    indexes = [task.idx for task in payload]
    if len(set(indexes)) != len(indexes) or existing.intersection(indexes):
        raise ValidationError("Task idx values must be unique within a plan")
    return await task_repo.create_many(user, plan_id, payload)


@router.post("/{plan_id}/regenerate", response_model=RegenerationResult)
async def regenerate_plan(
    plan_id: UUID,
    user: CurrentUser,
    service: Regeneration,
    payload: Optional[RegenerationRequest] = None,
):
    """
    Regenerate the plan's content and schedule.

    Structural failures are rolled back and reported as
    ``{error, message, details?}`` with the reserved credit released.
    """
    return await service.regenerate(user, plan_id, payload)


@router.post("/{plan_id}/schedule", response_model=ScheduleGenerationResult)
async def schedule_plan(
    plan_id: UUID,
    user: CurrentUser,
    service: ScheduleGeneration,
    payload: Optional[ScheduleGenerationRequest] = None,
):
    usage_signal = None
    if payload and payload.usage_text:
        usage_signal = detect_usage_signal(payload.usage_text)
    return await service.generate_for_plan(user, plan_id, usage_signal=usage_signal)


@router.get("/{plan_id}/schedules", response_model=list[TaskSchedule])
async def list_plan_schedules(
    plan_id: UUID,
    user: CurrentUser,
    plan_repo: PlanRepo,
    schedule_repo: TaskScheduleRepo,
):
    await _get_plan_or_404(plan_repo, user, plan_id)
    return await schedule_repo.list_active(user, plan_id=plan_id)
