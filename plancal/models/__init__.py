"""Pydantic models (schemas) for the application."""

from plancal.models.enums import (
    BusySource,
    LedgerAction,
    PlanStatus,
    RegenerationErrorCode,
    TimeOfDay,
    UnscheduledReason,
    UsageMetric,
    WindowMode,
)
from plancal.models.plan import Plan, PlanCreate, PlanSnapshot, PlanUpdate
from plancal.models.regeneration import (
    GeneratedPlanContent,
    GeneratedTask,
    RegenerationRequest,
    RegenerationResult,
)
from plancal.models.schedule import (
    BusySlot,
    OriginalPlacement,
    PlacementResult,
    RescheduledPlacement,
    TaskSchedule,
    TaskScheduleCreate,
)
from plancal.models.task import Task, TaskCreate
from plancal.models.usage import CreditReservation, UsageBalance, UsageLedgerEntry
from plancal.models.workday import UsageSignal, WorkdaySettings, WorkdaySettingsUpdate

__all__ = [
    "BusySlot",
    "BusySource",
    "CreditReservation",
    "GeneratedPlanContent",
    "GeneratedTask",
    "LedgerAction",
    "OriginalPlacement",
    "PlacementResult",
    "Plan",
    "PlanCreate",
    "PlanSnapshot",
    "PlanStatus",
    "PlanUpdate",
    "RegenerationErrorCode",
    "RegenerationRequest",
    "RegenerationResult",
    "RescheduledPlacement",
    "Task",
    "TaskCreate",
    "TaskSchedule",
    "TaskScheduleCreate",
    "TimeOfDay",
    "UnscheduledReason",
    "UsageBalance",
    "UsageLedgerEntry",
    "UsageMetric",
    "UsageSignal",
    "WindowMode",
    "WorkdaySettings",
    "WorkdaySettingsUpdate",
]
