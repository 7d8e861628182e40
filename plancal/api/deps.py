"""
Dependency injection for API endpoints.

This module provides FastAPI dependencies that wire repositories and
services to the local SQLite infrastructure.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header

from plancal.core.config import get_settings
from plancal.core.exceptions import AuthenticationError
from plancal.interfaces.calendar_provider import ICalendarProvider
from plancal.interfaces.content_generator import IContentGenerator
from plancal.interfaces.plan_lock import IPlanLock
from plancal.interfaces.plan_repository import IPlanRepository
from plancal.interfaces.task_repository import ITaskRepository
from plancal.interfaces.task_schedule_repository import ITaskScheduleRepository
from plancal.interfaces.usage_ledger import IUsageLedger
from plancal.interfaces.workday_settings_repository import IWorkdaySettingsRepository
from plancal.services.availability_service import AvailabilityService
from plancal.services.credit_service import CreditService
from plancal.services.placement_service import PlacementService
from plancal.services.regeneration_service import PlanRegenerationService
from plancal.services.reschedule_service import RescheduleService
from plancal.services.schedule_generation_service import ScheduleGenerationService
from plancal.services.workday_policy_service import WorkdayPolicyService


# ===========================================
# Repository Dependencies
# ===========================================


@lru_cache()
def get_plan_repository() -> IPlanRepository:
    """Get plan repository instance."""
    from plancal.infrastructure.local.plan_repository import SqlitePlanRepository
    return SqlitePlanRepository()


@lru_cache()
def get_task_repository() -> ITaskRepository:
    """Get task repository instance."""
    from plancal.infrastructure.local.task_repository import SqliteTaskRepository
    return SqliteTaskRepository()


@lru_cache()
def get_task_schedule_repository() -> ITaskScheduleRepository:
    """Get task schedule repository instance."""
    from plancal.infrastructure.local.task_schedule_repository import SqliteTaskScheduleRepository
    return SqliteTaskScheduleRepository()


@lru_cache()
def get_workday_settings_repository() -> IWorkdaySettingsRepository:
    """Get workday settings repository instance."""
    from plancal.infrastructure.local.workday_settings_repository import (
        SqliteWorkdaySettingsRepository,
    )
    return SqliteWorkdaySettingsRepository()


@lru_cache()
def get_usage_ledger() -> IUsageLedger:
    """Get usage ledger instance."""
    from plancal.infrastructure.local.usage_ledger import SqliteUsageLedger
    return SqliteUsageLedger()


@lru_cache()
def get_plan_lock() -> IPlanLock:
    """Get plan lock instance."""
    settings = get_settings()
    from plancal.infrastructure.local.plan_lock import SqlitePlanLock
    return SqlitePlanLock(ttl_seconds=settings.PLAN_LOCK_TTL_SECONDS)


@lru_cache()
def get_calendar_provider() -> ICalendarProvider:
    """Get calendar provider instance."""
    from plancal.infrastructure.local.calendar_provider import SqliteCalendarProvider
    return SqliteCalendarProvider()


@lru_cache()
def get_content_generator() -> IContentGenerator:
    """Get content generator instance."""
    from plancal.infrastructure.local.litellm_content_generator import LiteLLMContentGenerator
    return LiteLLMContentGenerator()


# ===========================================
# Service Dependencies
# ===========================================


@lru_cache()
def get_workday_policy_service() -> WorkdayPolicyService:
    return WorkdayPolicyService(get_workday_settings_repository())


@lru_cache()
def get_credit_service() -> CreditService:
    settings = get_settings()
    return CreditService(
        get_usage_ledger(),
        enforcement_enabled=settings.CREDIT_ENFORCEMENT_ENABLED,
        default_allocation=settings.DEFAULT_CREDIT_ALLOCATION,
    )


@lru_cache()
def get_availability_service() -> AvailabilityService:
    return AvailabilityService(get_task_schedule_repository(), get_calendar_provider())


@lru_cache()
def get_placement_service() -> PlacementService:
    return PlacementService(indefinite_horizon_days=get_settings().INDEFINITE_HORIZON_DAYS)


@lru_cache()
def get_schedule_generation_service() -> ScheduleGenerationService:
    return ScheduleGenerationService(
        plan_repo=get_plan_repository(),
        task_repo=get_task_repository(),
        task_schedule_repo=get_task_schedule_repository(),
        workday_policy=get_workday_policy_service(),
        availability=get_availability_service(),
        placement=get_placement_service(),
        default_plan_days=get_settings().DEFAULT_PLAN_DAYS,
        plan_lock=get_plan_lock(),
    )


@lru_cache()
def get_reschedule_service() -> RescheduleService:
    return RescheduleService(
        task_schedule_repo=get_task_schedule_repository(),
        task_repo=get_task_repository(),
        workday_policy=get_workday_policy_service(),
        availability=get_availability_service(),
        placement=get_placement_service(),
        plan_lock=get_plan_lock(),
    )


@lru_cache()
def get_regeneration_service() -> PlanRegenerationService:
    settings = get_settings()
    return PlanRegenerationService(
        plan_repo=get_plan_repository(),
        task_repo=get_task_repository(),
        task_schedule_repo=get_task_schedule_repository(),
        workday_policy=get_workday_policy_service(),
        content_generator=get_content_generator(),
        credit_service=get_credit_service(),
        plan_lock=get_plan_lock(),
        schedule_generation=get_schedule_generation_service(),
        credit_cost=settings.REGENERATION_CREDIT_COST,
        default_plan_days=settings.DEFAULT_PLAN_DAYS,
    )


# ===========================================
# User Authentication
# ===========================================


async def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """
    Get the current user id.

    Mock auth: the bearer token is the user id itself.
    """
    if not authorization:
        raise AuthenticationError("Authorization header required")

    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Invalid scheme")
    except ValueError:
        raise AuthenticationError("Invalid authorization header format")

    return token


# ===========================================
# Type Aliases for Dependency Injection
# ===========================================

PlanRepo = Annotated[IPlanRepository, Depends(get_plan_repository)]
TaskRepo = Annotated[ITaskRepository, Depends(get_task_repository)]
TaskScheduleRepo = Annotated[ITaskScheduleRepository, Depends(get_task_schedule_repository)]
WorkdayPolicy = Annotated[WorkdayPolicyService, Depends(get_workday_policy_service)]
Credits = Annotated[CreditService, Depends(get_credit_service)]
UsageLedger = Annotated[IUsageLedger, Depends(get_usage_ledger)]
ScheduleGeneration = Annotated[ScheduleGenerationService, Depends(get_schedule_generation_service)]
Reschedules = Annotated[RescheduleService, Depends(get_reschedule_service)]
Regeneration = Annotated[PlanRegenerationService, Depends(get_regeneration_service)]
CurrentUser = Annotated[str, Depends(get_current_user)]
CalendarProvider = Annotated[ICalendarProvider, Depends(get_calendar_provider)]
