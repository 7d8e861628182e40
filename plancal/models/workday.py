"""
Workday preference models and derived per-day windows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from plancal.models.enums import TimeOfDay, WindowMode
from plancal.utils.interval_utils import TimeInterval

DEFAULT_WORKDAY_START_HOUR = 9
DEFAULT_WORKDAY_END_HOUR = 17
DEFAULT_LUNCH_START_HOUR = 12
DEFAULT_LUNCH_END_HOUR = 13
DEFAULT_EVENING_BUFFER_MINUTES = 30


class WorkdaySettings(BaseModel):
    """
    Stored workday preferences for a user.

    Lunch is disabled when either lunch bound is None.
    """

    user_id: str
    start_hour: int = Field(DEFAULT_WORKDAY_START_HOUR, ge=0, le=23)
    end_hour: int = Field(DEFAULT_WORKDAY_END_HOUR, ge=1, le=24)
    lunch_start_hour: Optional[int] = Field(DEFAULT_LUNCH_START_HOUR, ge=0, le=23)
    lunch_end_hour: Optional[int] = Field(DEFAULT_LUNCH_END_HOUR, ge=1, le=24)
    allow_weekends: bool = True
    timezone: str = "UTC"
    evening_buffer_minutes: int = Field(DEFAULT_EVENING_BUFFER_MINUTES, ge=0, le=240)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def has_lunch(self) -> bool:
        return self.lunch_start_hour is not None and self.lunch_end_hour is not None


class WorkdaySettingsUpdate(BaseModel):
    start_hour: Optional[int] = Field(None, ge=0, le=23)
    end_hour: Optional[int] = Field(None, ge=1, le=24)
    lunch_start_hour: Optional[int] = Field(None, ge=0, le=23)
    lunch_end_hour: Optional[int] = Field(None, ge=1, le=24)
    allow_weekends: Optional[bool] = None
    timezone: Optional[str] = None
    evening_buffer_minutes: Optional[int] = Field(None, ge=0, le=240)


def default_workday_settings(user_id: str) -> WorkdaySettings:
    return WorkdaySettings(user_id=user_id)


class UsageSignal(BaseModel):
    """Working pattern detected from the goal text."""

    time_of_day: Optional[TimeOfDay] = None
    hours_per_day: Optional[float] = Field(None, gt=0, le=24)
    # Explicit "after 7pm" style start, in minutes since midnight
    start_mention_minutes: Optional[int] = Field(None, ge=0, le=24 * 60)
    workday_end_hour: Optional[int] = Field(None, ge=12, le=23)

    @property
    def wants_evening(self) -> bool:
        return self.time_of_day == TimeOfDay.EVENING and bool(self.hours_per_day)


class EveningWindow(BaseModel):
    start_minutes: int
    end_minutes: int
    feasible: bool


@dataclass
class DayWindows:
    """Available windows for one date before busy time is removed."""

    day: date
    eligible: bool
    mode: WindowMode = WindowMode.DAYTIME
    windows: list[TimeInterval] = field(default_factory=list)
