"""
Calendar events API endpoints.

Receives busy intervals pushed by an external calendar sync.
"""

from __future__ import annotations

from fastapi import APIRouter, status

from plancal.api.deps import CalendarProvider, CurrentUser
from plancal.core.exceptions import ValidationError
from plancal.models.schedule import CalendarBusyInterval, CalendarEventCreate

router = APIRouter()


@router.post("", response_model=CalendarBusyInterval, status_code=status.HTTP_201_CREATED)
async def add_calendar_event(
    payload: CalendarEventCreate,
    user: CurrentUser,
    provider: CalendarProvider,
):
    if payload.end <= payload.start:
        raise ValidationError("Event end must be after its start")
    return await provider.add_event(user, payload.start, payload.end, payload.summary)
