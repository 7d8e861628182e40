"""Abstract interfaces for infrastructure abstraction."""

from plancal.interfaces.calendar_provider import ICalendarProvider
from plancal.interfaces.content_generator import IContentGenerator
from plancal.interfaces.plan_lock import IPlanLock
from plancal.interfaces.plan_repository import IPlanRepository
from plancal.interfaces.task_repository import ITaskRepository
from plancal.interfaces.task_schedule_repository import ITaskScheduleRepository
from plancal.interfaces.usage_ledger import IUsageLedger
from plancal.interfaces.workday_settings_repository import IWorkdaySettingsRepository

__all__ = [
    "ICalendarProvider",
    "IContentGenerator",
    "IPlanLock",
    "IPlanRepository",
    "ITaskRepository",
    "ITaskScheduleRepository",
    "IUsageLedger",
    "IWorkdaySettingsRepository",
]
