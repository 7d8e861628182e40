"""
Workday settings API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter

from plancal.api.deps import CurrentUser, WorkdayPolicy
from plancal.models.workday import WorkdaySettings, WorkdaySettingsUpdate

router = APIRouter()


@router.get("/workday-settings", response_model=WorkdaySettings)
async def get_workday_settings(
    user: CurrentUser,
    service: WorkdayPolicy,
):
    return await service.get_settings(user)


@router.put("/workday-settings", response_model=WorkdaySettings)
async def update_workday_settings(
    payload: WorkdaySettingsUpdate,
    user: CurrentUser,
    service: WorkdayPolicy,
):
    return await service.update_settings(user, payload)
