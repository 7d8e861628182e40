"""
Unit tests for the overdue sweep scheduler.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from plancal.models.schedule import OverdueRescheduleResult
from plancal.services.background_scheduler import OverdueSweepScheduler

NOW = datetime(2025, 3, 11, 3, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_sweep_visits_every_user():
    repo = AsyncMock()
    repo.list_users_with_active_schedules.return_value = ["alice", "bob"]
    reschedules = AsyncMock()
    reschedules.reschedule_overdue.return_value = OverdueRescheduleResult()

    scheduler = OverdueSweepScheduler(repo, reschedules)
    moved = await scheduler.run_overdue_sweep(now=NOW, jitter=False)

    assert moved == 0
    repo.list_users_with_active_schedules.assert_awaited_once_with(NOW.date())
    assert [call.args[0] for call in reschedules.reschedule_overdue.await_args_list] == ["alice", "bob"]


@pytest.mark.asyncio
async def test_one_user_failing_does_not_stop_the_sweep():
    repo = AsyncMock()
    repo.list_users_with_active_schedules.return_value = ["alice", "bob"]
    reschedules = AsyncMock()
    reschedules.reschedule_overdue.side_effect = [RuntimeError("boom"), OverdueRescheduleResult()]

    scheduler = OverdueSweepScheduler(repo, reschedules)
    await scheduler.run_overdue_sweep(now=NOW, jitter=False)

    assert reschedules.reschedule_overdue.await_count == 2


@pytest.mark.asyncio
async def test_start_is_noop_in_test_environment():
    scheduler = OverdueSweepScheduler(AsyncMock(), AsyncMock())
    await scheduler.start()
    assert scheduler._scheduler is None
    await scheduler.stop()
