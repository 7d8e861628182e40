"""
Enum definitions for the application.

These enums are used across models and provide type-safe status values.
"""

from enum import Enum


class PlanStatus(str, Enum):
    """Plan lifecycle status."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class BusySource(str, Enum):
    """Where a busy interval comes from."""

    TASK_SCHEDULE = "task_schedule"
    CALENDAR_EVENT = "calendar_event"


class TimeOfDay(str, Enum):
    """Preferred working time detected from the goal text."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


class WindowMode(str, Enum):
    """Which window a day's availability was derived from."""

    DAYTIME = "daytime"
    EVENING = "evening"


class UnscheduledReason(str, Enum):
    """Why the placement engine could not place a task."""

    NO_CAPACITY = "no_capacity"
    INVALID_DURATION = "invalid_duration"


class UsageMetric(str, Enum):
    """Metered resources."""

    API_CREDITS = "api_credits"


class LedgerAction(str, Enum):
    """Credit ledger verbs."""

    RESERVE = "reserve"
    COMMIT = "commit"
    RELEASE = "release"


class RegenerationErrorCode(str, Enum):
    """
    Error codes surfaced by plan regeneration.

    PLAN_UPDATE_FAILED, TASK_DELETION_FAILED and TASK_INSERTION_FAILED are
    only reported after the plan has been restored and the credit released.
    SCHEDULE_GENERATION_FAILED is soft and reported through the result flag.
    """

    VALIDATION_ERROR = "VALIDATION_ERROR"
    PLAN_NOT_FOUND = "PLAN_NOT_FOUND"
    CONFLICT = "CONFLICT"
    USAGE_LIMIT_EXCEEDED = "USAGE_LIMIT_EXCEEDED"
    SETTINGS_FETCH_FAILED = "SETTINGS_FETCH_FAILED"
    PLAN_UPDATE_FAILED = "PLAN_UPDATE_FAILED"
    TASK_DELETION_FAILED = "TASK_DELETION_FAILED"
    TASK_INSERTION_FAILED = "TASK_INSERTION_FAILED"
    SCHEDULE_GENERATION_FAILED = "SCHEDULE_GENERATION_FAILED"
    REGENERATION_FAILED = "REGENERATION_FAILED"
