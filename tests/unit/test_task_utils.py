"""
Unit tests for generated-task normalization.
"""

import pytest

from plancal.core.exceptions import ValidationError
from plancal.models.regeneration import GeneratedTask
from plancal.services.task_utils import clamp_duration, normalize_generated_tasks, normalize_priority


def test_clamp_duration():
    assert clamp_duration(None) == 60
    assert clamp_duration(0) == 60
    assert clamp_duration(2) == 5
    assert clamp_duration(500) == 360
    assert clamp_duration(45) == 45


def test_normalize_priority():
    assert normalize_priority(1) == 1
    assert normalize_priority(0) == 3
    assert normalize_priority(None) == 3


def test_generated_tasks_indexed_from_one_and_trimmed():
    tasks = normalize_generated_tasks(
        [
            GeneratedTask(name="  Warm up ", details="  ", duration_minutes=10),
            GeneratedTask(name="Main set", details="Intervals", priority=1, is_recurring=True),
        ]
    )
    assert [(t.idx, t.name, t.details) for t in tasks] == [
        (1, "Warm up", None),
        (2, "Main set", "Intervals"),
    ]
    assert tasks[1].is_recurring is True


def test_blank_name_rejected():
    with pytest.raises(ValidationError):
        normalize_generated_tasks([GeneratedTask(name="ok"), GeneratedTask(name=" ")])
