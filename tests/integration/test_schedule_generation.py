"""
Integration tests for plan scheduling with real repositories.
"""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from plancal.core.exceptions import ConflictError
from plancal.infrastructure.local.calendar_provider import SqliteCalendarProvider
from plancal.infrastructure.local.plan_lock import SqlitePlanLock
from plancal.infrastructure.local.plan_repository import SqlitePlanRepository
from plancal.infrastructure.local.task_repository import SqliteTaskRepository
from plancal.infrastructure.local.task_schedule_repository import SqliteTaskScheduleRepository
from plancal.infrastructure.local.workday_settings_repository import SqliteWorkdaySettingsRepository
from plancal.models.plan import PlanCreate
from plancal.models.task import TaskCreate
from plancal.models.workday import WorkdaySettingsUpdate
from plancal.services.availability_service import AvailabilityService
from plancal.services.placement_service import PlacementService
from plancal.services.schedule_generation_service import ScheduleGenerationService
from plancal.services.workday_policy_service import WorkdayPolicyService

MONDAY = date(2025, 3, 10)
FRIDAY = date(2025, 3, 14)
SATURDAY = date(2025, 3, 15)
NOW = datetime(2025, 3, 10, 7, 0, tzinfo=timezone.utc)


@pytest.fixture
async def env(session_factory):
    plan_repo = SqlitePlanRepository(session_factory)
    task_repo = SqliteTaskRepository(session_factory)
    schedule_repo = SqliteTaskScheduleRepository(session_factory)
    calendar = SqliteCalendarProvider(session_factory)
    policy = WorkdayPolicyService(SqliteWorkdaySettingsRepository(session_factory))
    service = ScheduleGenerationService(
        plan_repo=plan_repo,
        task_repo=task_repo,
        task_schedule_repo=schedule_repo,
        workday_policy=policy,
        availability=AvailabilityService(schedule_repo, calendar),
        placement=PlacementService(indefinite_horizon_days=10),
    )
    return plan_repo, task_repo, schedule_repo, calendar, policy, service


async def _plan(plan_repo, task_repo, user_id, tasks, goal="Learn to paint", days=0):
    plan = await plan_repo.create(
        user_id,
        PlanCreate(goal_text=goal, start_date=MONDAY, end_date=MONDAY + timedelta(days=days)),
    )
    await task_repo.create_many(user_id, plan.id, tasks)
    return plan


@pytest.mark.asyncio
async def test_calendar_event_pushes_task_later(env, test_user_id):
    plan_repo, task_repo, schedule_repo, calendar, _, service = env
    await calendar.add_event(
        test_user_id,
        datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc),
        datetime(2025, 3, 10, 10, 0, tzinfo=timezone.utc),
        "Team sync",
    )
    plan = await _plan(
        plan_repo, task_repo, test_user_id, [TaskCreate(idx=1, name="Sketch", priority=1)]
    )

    result = await service.generate_for_plan(test_user_id, plan.id, now=NOW)

    assert [(s.date, s.start_time, s.end_time) for s in result.schedules] == [
        (MONDAY, time(10), time(11))
    ]
    stored = await schedule_repo.list_active(test_user_id, plan_id=plan.id)
    assert [s.id for s in stored] == [s.id for s in result.schedules]


@pytest.mark.asyncio
async def test_other_plans_count_as_busy(env, test_user_id):
    plan_repo, task_repo, _, _, _, service = env
    first = await _plan(plan_repo, task_repo, test_user_id, [TaskCreate(idx=1, name="A", duration_minutes=180)])
    second = await _plan(plan_repo, task_repo, test_user_id, [TaskCreate(idx=1, name="B", duration_minutes=60)])

    await service.generate_for_plan(test_user_id, first.id, now=NOW)
    result = await service.generate_for_plan(test_user_id, second.id, now=NOW)

    assert result.schedules[0].start_time == time(13)


@pytest.mark.asyncio
async def test_regenerating_schedule_replaces_previous_rows(env, test_user_id):
    plan_repo, task_repo, schedule_repo, _, _, service = env
    plan = await _plan(plan_repo, task_repo, test_user_id, [TaskCreate(idx=1, name="A")])

    await service.generate_for_plan(test_user_id, plan.id, now=NOW)
    await service.generate_for_plan(test_user_id, plan.id, now=NOW)

    stored = await schedule_repo.list_active(test_user_id, plan_id=plan.id)
    assert len(stored) == 1
    assert stored[0].start_time == time(9)


@pytest.mark.asyncio
async def test_evening_goal_text_uses_evening_window(env, test_user_id):
    plan_repo, task_repo, _, _, _, service = env
    plan = await _plan(
        plan_repo,
        task_repo,
        test_user_id,
        [TaskCreate(idx=1, name="Practice", duration_minutes=90)],
        goal="Learn guitar in the evenings, 3 hours a day",
    )

    result = await service.generate_for_plan(test_user_id, plan.id, now=NOW)

    assert result.schedules[0].start_time == time(17, 30)


@pytest.mark.asyncio
async def test_user_timezone_applies(env, test_user_id):
    plan_repo, task_repo, _, calendar, policy, service = env
    await policy.update_settings(test_user_id, WorkdaySettingsUpdate(timezone="Asia/Tokyo"))
    # 00:00-01:00 UTC is 09:00-10:00 in Tokyo
    await calendar.add_event(
        test_user_id,
        datetime(2025, 3, 10, 0, 0, tzinfo=timezone.utc),
        datetime(2025, 3, 10, 1, 0, tzinfo=timezone.utc),
    )
    plan = await _plan(plan_repo, task_repo, test_user_id, [TaskCreate(idx=1, name="A")])

    result = await service.generate_for_plan(
        test_user_id, plan.id, now=datetime(2025, 3, 9, 20, 0, tzinfo=timezone.utc)
    )

    assert (result.schedules[0].date, result.schedules[0].start_time) == (MONDAY, time(10))


@pytest.mark.asyncio
async def test_open_ended_task_reported(env, test_user_id):
    plan_repo, task_repo, _, calendar, _, service = env
    await calendar.add_event(
        test_user_id,
        datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc),
        datetime(2025, 3, 10, 17, 0, tzinfo=timezone.utc),
    )
    plan = await _plan(
        plan_repo,
        task_repo,
        test_user_id,
        [TaskCreate(idx=1, name="Keep journaling", is_indefinite=True)],
    )

    result = await service.generate_for_plan(test_user_id, plan.id, now=NOW)

    assert result.schedules[0].date == MONDAY + timedelta(days=1)
    assert result.open_ended_task_ids == [result.schedules[0].task_id]


@pytest.mark.asyncio
async def test_placement_starts_after_buffered_now(env, test_user_id):
    plan_repo, task_repo, _, _, _, service = env
    plan = await _plan(plan_repo, task_repo, test_user_id, [TaskCreate(idx=1, name="A")])

    result = await service.generate_for_plan(
        test_user_id, plan.id, now=datetime(2025, 3, 10, 10, 20, tzinfo=timezone.utc)
    )

    assert result.schedules[0].start_time == time(10, 30)


@pytest.mark.asyncio
async def test_plan_starting_on_weekend_uses_weekend_days(env, test_user_id):
    plan_repo, task_repo, _, _, policy, service = env
    await policy.update_settings(test_user_id, WorkdaySettingsUpdate(allow_weekends=False))
    plan = await plan_repo.create(
        test_user_id,
        PlanCreate(goal_text="Garden makeover", start_date=SATURDAY, end_date=SATURDAY + timedelta(days=2)),
    )
    await task_repo.create_many(test_user_id, plan.id, [TaskCreate(idx=1, name="Dig beds")])

    result = await service.generate_for_plan(test_user_id, plan.id, now=NOW)

    assert (result.schedules[0].date, result.schedules[0].start_time) == (SATURDAY, time(9))


@pytest.mark.asyncio
async def test_weekday_plan_still_skips_weekend(env, test_user_id):
    plan_repo, task_repo, _, calendar, policy, service = env
    await policy.update_settings(test_user_id, WorkdaySettingsUpdate(allow_weekends=False))
    await calendar.add_event(
        test_user_id,
        datetime(2025, 3, 14, 9, 0, tzinfo=timezone.utc),
        datetime(2025, 3, 14, 17, 0, tzinfo=timezone.utc),
        "Offsite",
    )
    plan = await plan_repo.create(
        test_user_id,
        PlanCreate(goal_text="Garden makeover", start_date=FRIDAY, end_date=FRIDAY + timedelta(days=3)),
    )
    await task_repo.create_many(test_user_id, plan.id, [TaskCreate(idx=1, name="Dig beds")])

    result = await service.generate_for_plan(test_user_id, plan.id, now=NOW)

    assert result.schedules[0].date == FRIDAY + timedelta(days=3)


@pytest.mark.asyncio
async def test_schedule_conflicts_while_plan_locked(env, session_factory, test_user_id):
    plan_repo, task_repo, schedule_repo, calendar, policy, _ = env
    lock = SqlitePlanLock(session_factory)
    service = ScheduleGenerationService(
        plan_repo=plan_repo,
        task_repo=task_repo,
        task_schedule_repo=schedule_repo,
        workday_policy=policy,
        availability=AvailabilityService(schedule_repo, calendar),
        plan_lock=lock,
    )
    plan = await _plan(plan_repo, task_repo, test_user_id, [TaskCreate(idx=1, name="A")])
    await lock.acquire(plan.id, "regenerate:other")

    with pytest.raises(ConflictError):
        await service.generate_for_plan(test_user_id, plan.id, now=NOW)
    assert await schedule_repo.list_active(test_user_id, plan_id=plan.id) == []

    result = await service.generate_for_plan(
        test_user_id, plan.id, now=NOW, lock_holder="regenerate:other"
    )
    assert len(result.schedules) == 1

    await lock.release(plan.id, "regenerate:other")
    await service.generate_for_plan(test_user_id, plan.id, now=NOW)
    assert await lock.acquire(plan.id, "after") is True
