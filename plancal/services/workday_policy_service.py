"""
Workday policy: turns preferences into concrete per-day windows.

Also reads working-pattern hints ("evenings, 2 hours a day", "my workday ends
at 6pm") out of free goal text.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from plancal.core.exceptions import ValidationError
from plancal.core.logger import setup_logger
from plancal.interfaces.workday_settings_repository import IWorkdaySettingsRepository
from plancal.models.enums import TimeOfDay, WindowMode
from plancal.models.workday import (
    DEFAULT_EVENING_BUFFER_MINUTES,
    DayWindows,
    EveningWindow,
    UsageSignal,
    WorkdaySettings,
    WorkdaySettingsUpdate,
    default_workday_settings,
)
from plancal.utils.datetime_utils import MINUTES_PER_DAY, to_local_datetime
from plancal.utils.interval_utils import TimeInterval, clip_intervals, subtract_intervals

logger = setup_logger(__name__)

_EVENING_PATTERN = re.compile(
    r"\b(evenings?|after work|at night|nights|after dinner|after the kids)\b", re.IGNORECASE
)
_MORNING_PATTERN = re.compile(r"\b(mornings?|before work|early)\b", re.IGNORECASE)
_AFTERNOON_PATTERN = re.compile(r"\b(afternoons?|lunch ?breaks?)\b", re.IGNORECASE)
_HOURS_PATTERN = re.compile(
    r"(\d+(?:\.\d+)?)\s*(?:hours?|hrs?|h)\s*"
    r"(?:available|per day|a day|each day|every day|daily|per evening|each evening|a night)",
    re.IGNORECASE,
)
_MINUTES_PATTERN = re.compile(
    r"(\d+)\s*(?:minutes?|mins?)\s*(?:per day|a day|each day|every day|daily)",
    re.IGNORECASE,
)
_CLOCK = r"(\d{1,2})(?::(\d{2}))?\s*(am|pm|a\.m\.|p\.m\.)?"
_WORKDAY_END_PATTERNS = [
    re.compile(
        r"(?:work|workday|work day|job|shift)\s+(?:ends?|finish(?:es)?|is over|gets out)\s+(?:at\s+|around\s+)?"
        + _CLOCK,
        re.IGNORECASE,
    ),
    re.compile(r"work(?:ing)?\s+(?:until|till|to)\s+" + _CLOCK, re.IGNORECASE),
    re.compile(r"(?:get|come|am)\s+(?:home|off(?: work)?)\s+(?:at|around|by)\s+" + _CLOCK, re.IGNORECASE),
]
_AFTER_PATTERN = re.compile(r"\bafter\s+" + _CLOCK, re.IGNORECASE)


def _clock_to_minutes(hour_text: str, minute_text: Optional[str], meridiem: Optional[str]) -> Optional[int]:
    """Parse a clock mention, assuming PM when no meridiem is given for hours 1-11."""
    hour = int(hour_text)
    minute = int(minute_text) if minute_text else 0
    if hour > 23 or minute > 59:
        return None
    suffix = (meridiem or "").replace(".", "").lower()
    if suffix == "am":
        if hour == 12:
            hour = 0
    elif suffix == "pm" or 1 <= hour < 12:
        if hour < 12:
            hour += 12
    return hour * 60 + minute


def extract_workday_end_hour(text: Optional[str]) -> Optional[int]:
    """
    Find "my workday ends at 6pm" style mentions.

    Returns:
        Hour in 12-23, or None when nothing usable is mentioned
    """
    if not text:
        return None
    for pattern in _WORKDAY_END_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        minutes = _clock_to_minutes(*match.groups())
        if minutes is None:
            continue
        hour = minutes // 60
        if 12 <= hour <= 23:
            return hour
    return None


def extract_evening_start_mention(text: Optional[str]) -> Optional[int]:
    """Find "after 7pm" style mentions, in minutes since midnight (afternoon or later)."""
    if not text:
        return None
    for match in _AFTER_PATTERN.finditer(text):
        minutes = _clock_to_minutes(*match.groups())
        if minutes is not None and minutes >= 12 * 60:
            return minutes
    return None


def detect_usage_signal(text: Optional[str]) -> Optional[UsageSignal]:
    """
    Detect a working pattern from goal text.

    Returns:
        UsageSignal, or None when the text carries no hint at all
    """
    if not text:
        return None

    time_of_day: Optional[TimeOfDay] = None
    if _EVENING_PATTERN.search(text):
        time_of_day = TimeOfDay.EVENING
    elif _MORNING_PATTERN.search(text):
        time_of_day = TimeOfDay.MORNING
    elif _AFTERNOON_PATTERN.search(text):
        time_of_day = TimeOfDay.AFTERNOON

    hours_per_day: Optional[float] = None
    hours_match = _HOURS_PATTERN.search(text)
    if hours_match:
        hours_per_day = float(hours_match.group(1))
    else:
        minutes_match = _MINUTES_PATTERN.search(text)
        if minutes_match:
            hours_per_day = int(minutes_match.group(1)) / 60
    if hours_per_day is not None and not 0 < hours_per_day <= 24:
        hours_per_day = None

    start_mention = extract_evening_start_mention(text)
    workday_end = extract_workday_end_hour(text)
    if start_mention is not None and time_of_day is None:
        time_of_day = TimeOfDay.EVENING

    if time_of_day is None and hours_per_day is None and workday_end is None:
        return None
    return UsageSignal(
        time_of_day=time_of_day,
        hours_per_day=hours_per_day,
        start_mention_minutes=start_mention,
        workday_end_hour=workday_end,
    )


def calculate_evening_window(
    workday_end_hour: int,
    hours_per_day: float,
    buffer_minutes: int = DEFAULT_EVENING_BUFFER_MINUTES,
    mention_minutes: Optional[int] = None,
) -> EveningWindow:
    """
    Derive the evening window.

    start = max(workday end + buffer, explicit mention), end = start + hours.
    The start is clamped to 24:00; an end past 24:00 makes the window infeasible.
    """
    start = workday_end_hour * 60 + buffer_minutes
    if mention_minutes is not None:
        start = max(start, mention_minutes)
    start = min(start, MINUTES_PER_DAY)
    end = start + int(round(hours_per_day * 60))
    feasible = end <= MINUTES_PER_DAY and end > start
    return EveningWindow(start_minutes=start, end_minutes=min(end, MINUTES_PER_DAY), feasible=feasible)


def validate_workday_settings(settings: WorkdaySettings) -> None:
    """
    Raises:
        ValidationError: If hours are out of order
    """
    if settings.start_hour >= settings.end_hour:
        raise ValidationError(
            "Workday start must be before workday end",
            details={"start_hour": settings.start_hour, "end_hour": settings.end_hour},
        )
    if (settings.lunch_start_hour is None) != (settings.lunch_end_hour is None):
        raise ValidationError("Lunch start and end must both be set or both be empty")
    if settings.has_lunch and settings.lunch_start_hour >= settings.lunch_end_hour:
        raise ValidationError(
            "Lunch start must be before lunch end",
            details={
                "lunch_start_hour": settings.lunch_start_hour,
                "lunch_end_hour": settings.lunch_end_hour,
            },
        )


def build_daytime_windows(settings: WorkdaySettings) -> list[TimeInterval]:
    """Workday window minus lunch, at most two sub-windows."""
    start = settings.start_hour * 60
    end = settings.end_hour * 60
    if end <= start:
        return []
    base = [TimeInterval(start, end)]
    if not settings.has_lunch:
        return base
    lunch = TimeInterval(settings.lunch_start_hour * 60, settings.lunch_end_hour * 60)
    if lunch.end_minutes <= lunch.start_minutes:
        return base
    return subtract_intervals(base, [lunch])


def is_day_eligible(settings: WorkdaySettings, day: date) -> bool:
    return settings.allow_weekends or day.weekday() < 5


def with_weekend_override(
    settings: WorkdaySettings, plan_start: date, plan_end: date
) -> WorkdaySettings:
    """
    Allow weekends for single-day plans and plans starting on a weekend.

    Without this such plans would have no eligible day at all.
    """
    if settings.allow_weekends:
        return settings
    if plan_start == plan_end or plan_start.weekday() >= 5:
        logger.info(f"Allowing weekends for plan running {plan_start} to {plan_end}")
        return settings.model_copy(update={"allow_weekends": True})
    return settings


def apply_now_buffer(minutes: int) -> int:
    """
    Round the current minute of day up to the next placeable slot.

    :30 and later go to the next hour, :15-:29 to half past, :10-:14 to
    quarter past, :05-:09 to ten past, anything earlier to five past.
    """
    hour, minute = divmod(minutes, 60)
    if minute >= 30:
        buffered = (hour + 1) * 60
    elif minute >= 15:
        buffered = hour * 60 + 30
    elif minute >= 10:
        buffered = hour * 60 + 15
    elif minute >= 5:
        buffered = hour * 60 + 10
    else:
        buffered = hour * 60 + 5
    return min(buffered, MINUTES_PER_DAY)


def build_day_windows(
    settings: WorkdaySettings,
    day: date,
    usage_signal: Optional[UsageSignal] = None,
    now: Optional[datetime] = None,
) -> DayWindows:
    """
    Candidate windows for one date.

    When an evening signal yields a feasible window it replaces the daytime
    window. When ``now`` falls on ``day`` (user's local date), anything before
    the buffered current time (see ``apply_now_buffer``) is dropped.
    """
    if not is_day_eligible(settings, day):
        return DayWindows(day=day, eligible=False)

    mode = WindowMode.DAYTIME
    windows = build_daytime_windows(settings)
    if usage_signal and usage_signal.wants_evening:
        evening = calculate_evening_window(
            workday_end_hour=usage_signal.workday_end_hour or settings.end_hour,
            hours_per_day=usage_signal.hours_per_day,
            buffer_minutes=settings.evening_buffer_minutes,
            mention_minutes=usage_signal.start_mention_minutes,
        )
        if evening.feasible:
            mode = WindowMode.EVENING
            windows = [TimeInterval(evening.start_minutes, evening.end_minutes)]

    if now is not None:
        local_now = to_local_datetime(now, settings.timezone)
        if local_now.date() == day:
            windows = clip_intervals(
                windows, apply_now_buffer(local_now.hour * 60 + local_now.minute)
            )
        elif local_now.date() > day:
            windows = []

    return DayWindows(day=day, eligible=True, mode=mode, windows=windows)


class WorkdayPolicyService:
    """Loads and stores workday settings, applying defaults and validation."""

    def __init__(self, settings_repo: IWorkdaySettingsRepository):
        self._settings_repo = settings_repo

    async def get_settings(self, user_id: str) -> WorkdaySettings:
        settings = await self._settings_repo.get(user_id)
        if settings:
            return settings
        return default_workday_settings(user_id)

    async def update_settings(
        self, user_id: str, update: WorkdaySettingsUpdate
    ) -> WorkdaySettings:
        current = await self.get_settings(user_id)
        changes = update.model_dump(exclude_unset=True)
        for required in ("start_hour", "end_hour", "allow_weekends", "timezone", "evening_buffer_minutes"):
            if required in changes and changes[required] is None:
                raise ValidationError(f"{required} cannot be empty")
        merged = current.model_copy(update=changes)
        validate_workday_settings(merged)
        if "timezone" in changes:
            _validate_timezone(changes["timezone"])
        logger.info(f"Updating workday settings for user {user_id}: {changes}")
        return await self._settings_repo.upsert(user_id, update)


def _validate_timezone(name: str) -> None:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(f"Unknown timezone: {name}") from exc
