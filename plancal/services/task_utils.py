"""
Task-related utility functions.
"""

from __future__ import annotations

from plancal.core.exceptions import ValidationError
from plancal.models.regeneration import GeneratedTask
from plancal.models.task import (
    DEFAULT_TASK_DURATION_MINUTES,
    DEFAULT_TASK_PRIORITY,
    MAX_TASK_DURATION_MINUTES,
    MIN_TASK_DURATION_MINUTES,
    VALID_PRIORITIES,
    TaskCreate,
)


def clamp_duration(minutes: int | None) -> int:
    """Missing or zero durations become the default, others are clamped to 5-360."""
    value = minutes or DEFAULT_TASK_DURATION_MINUTES
    return max(MIN_TASK_DURATION_MINUTES, min(MAX_TASK_DURATION_MINUTES, value))


def normalize_priority(priority: int | None) -> int:
    return priority if priority in VALID_PRIORITIES else DEFAULT_TASK_PRIORITY


def normalize_generated_tasks(generated: list[GeneratedTask]) -> list[TaskCreate]:
    """
    Turn generator output into insertable tasks with idx starting at 1.

    Raises:
        ValidationError: If a task name is empty after trimming
    """
    tasks: list[TaskCreate] = []
    for position, item in enumerate(generated, start=1):
        name = (item.name or "").strip()
        if not name:
            raise ValidationError(
                f"Generated task #{position} has an empty name",
                details={"idx": position},
            )
        tasks.append(
            TaskCreate(
                idx=position,
                name=name[:500],
                details=(item.details or "").strip()[:5000] or None,
                duration_minutes=clamp_duration(item.duration_minutes),
                priority=normalize_priority(item.priority),
                is_recurring=item.is_recurring,
                is_indefinite=item.is_indefinite,
            )
        )
    return tasks
