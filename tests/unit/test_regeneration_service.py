"""
Unit tests for plan regeneration: the saga, credits and the plan lock.

Repositories are the real SQLite implementations; the content generator is
an AsyncMock. Failures are injected by wrapping single repository methods.
"""

import asyncio
from datetime import date, datetime, time, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from plancal.core.exceptions import (
    ConflictError,
    NotFoundError,
    RegenerationError,
    UsageLimitExceededError,
    ValidationError,
)
from plancal.infrastructure.local.plan_lock import SqlitePlanLock
from plancal.infrastructure.local.plan_repository import SqlitePlanRepository
from plancal.infrastructure.local.task_repository import SqliteTaskRepository
from plancal.infrastructure.local.task_schedule_repository import SqliteTaskScheduleRepository
from plancal.infrastructure.local.usage_ledger import SqliteUsageLedger
from plancal.infrastructure.local.workday_settings_repository import SqliteWorkdaySettingsRepository
from plancal.models.enums import UsageMetric
from plancal.models.plan import PlanCreate, PlanUpdate
from plancal.models.regeneration import GeneratedPlanContent, GeneratedTask, RegenerationRequest
from plancal.models.schedule import TaskScheduleCreate
from plancal.models.task import TaskCreate
from plancal.services.availability_service import AvailabilityService
from plancal.services.credit_service import CreditService
from plancal.services.regeneration_service import PlanRegenerationService
from plancal.services.schedule_generation_service import ScheduleGenerationService
from plancal.services.workday_policy_service import WorkdayPolicyService

MONDAY = date(2025, 3, 10)
NOW = datetime(2025, 3, 10, 8, 0, tzinfo=timezone.utc)

ORIGINAL_TASKS = [
    TaskCreate(idx=1, name="Buy running shoes", duration_minutes=30, priority=2),
    TaskCreate(idx=2, name="Easy 5k", duration_minutes=45, priority=1, is_recurring=True),
]

GENERATED = GeneratedPlanContent(
    goal_title="Half marathon",
    plan_summary="Build up weekly mileage.",
    timeline_days=14,
    tasks=[
        GeneratedTask(name="Long run", duration_minutes=120, priority=1),
        GeneratedTask(name="Stretching", duration_minutes=20, priority=3, is_recurring=True),
        GeneratedTask(name="  Plan race day  ", details="Logistics", duration_minutes=None, priority=9),
    ],
)


def _fail_once(real, error):
    """Run the real method, then raise on the first call only (a partial failure)."""
    calls = {"count": 0}

    async def wrapper(*args, **kwargs):
        calls["count"] += 1
        result = await real(*args, **kwargs)
        if calls["count"] == 1:
            raise error
        return result

    return wrapper


def _fail_first_call(real, error):
    calls = {"count": 0}

    async def wrapper(*args, **kwargs):
        calls["count"] += 1
        if calls["count"] == 1:
            raise error
        return await real(*args, **kwargs)

    return wrapper


@pytest.fixture
async def env(session_factory, test_user_id):
    plan_repo = SqlitePlanRepository(session_factory)
    task_repo = SqliteTaskRepository(session_factory)
    schedule_repo = SqliteTaskScheduleRepository(session_factory)
    ledger = SqliteUsageLedger(session_factory)
    lock = SqlitePlanLock(session_factory)
    policy = WorkdayPolicyService(SqliteWorkdaySettingsRepository(session_factory))
    generator = AsyncMock()
    generator.generate.return_value = GENERATED
    credits = CreditService(ledger, default_allocation=5)
    schedule_generation = ScheduleGenerationService(
        plan_repo=plan_repo,
        task_repo=task_repo,
        task_schedule_repo=schedule_repo,
        workday_policy=policy,
        availability=AvailabilityService(schedule_repo),
        plan_lock=lock,
    )

    plan = await plan_repo.create(
        test_user_id,
        PlanCreate(
            goal_text="Run a half marathon",
            clarifications={"experience": "beginner"},
            start_date=MONDAY,
            end_date=MONDAY + timedelta(days=6),
            summary_data={"goal_title": "Running"},
        ),
    )
    tasks = await task_repo.create_many(test_user_id, plan.id, ORIGINAL_TASKS)
    await schedule_repo.create(
        test_user_id,
        TaskScheduleCreate(
            task_id=tasks[0].id,
            plan_id=plan.id,
            date=MONDAY,
            start_time=time(9),
            end_time=time(9, 30),
            duration_minutes=30,
        ),
    )

    env = SimpleNamespace(
        plan=plan,
        plan_repo=plan_repo,
        task_repo=task_repo,
        schedule_repo=schedule_repo,
        ledger=ledger,
        lock=lock,
        policy=policy,
        generator=generator,
        credits=credits,
        schedule_generation=schedule_generation,
    )
    env.service = _service(env)
    return env


def _service(env, **overrides) -> PlanRegenerationService:
    kwargs = dict(
        plan_repo=env.plan_repo,
        task_repo=env.task_repo,
        task_schedule_repo=env.schedule_repo,
        workday_policy=env.policy,
        content_generator=env.generator,
        credit_service=env.credits,
        plan_lock=env.lock,
        schedule_generation=env.schedule_generation,
    )
    kwargs.update(overrides)
    return PlanRegenerationService(**kwargs)


async def _assert_plan_unchanged(env, user_id):
    plan = await env.plan_repo.get(user_id, env.plan.id)
    assert plan.goal_text == env.plan.goal_text
    assert plan.end_date == env.plan.end_date
    assert plan.summary_data == env.plan.summary_data
    tasks = await env.task_repo.list_by_plan(user_id, env.plan.id)
    assert [task.to_create() for task in tasks] == ORIGINAL_TASKS


async def _balance(env, user_id):
    return await env.ledger.get_balance(user_id, UsageMetric.API_CREDITS)


@pytest.mark.asyncio
async def test_regenerate_replaces_content_and_schedule(env, test_user_id):
    result = await env.service.regenerate(test_user_id, env.plan.id, now=NOW)

    assert result.success is True
    assert result.schedule_generation_success is True
    assert [task.name for task in result.tasks] == ["Long run", "Stretching", "Plan race day"]
    assert [task.idx for task in result.tasks] == [1, 2, 3]
    assert result.tasks[2].duration_minutes == 60
    assert result.tasks[2].priority == 3
    assert result.plan.end_date == MONDAY + timedelta(days=13)
    assert result.plan.summary_data["goal_title"] == "Half marathon"
    assert result.plan.summary_data["timeline_days"] == 14

    schedules = await env.schedule_repo.list_active(test_user_id, plan_id=env.plan.id)
    new_task_ids = {task.id for task in result.tasks}
    assert schedules
    assert {s.task_id for s in schedules} <= new_task_ids

    balance = await _balance(env, test_user_id)
    assert (balance.used, balance.reserved) == (1, 0)
    assert await env.lock.acquire(env.plan.id, "after") is True


@pytest.mark.asyncio
async def test_result_serializes_camel_case_flag(env, test_user_id):
    result = await env.service.regenerate(test_user_id, env.plan.id, now=NOW)
    payload = result.model_dump(by_alias=True)
    assert payload["scheduleGenerationSuccess"] is True


@pytest.mark.asyncio
async def test_request_overrides_goal_and_timeline(env, test_user_id):
    request = RegenerationRequest(goal_text="Run a full marathon", timeline_days=30)
    result = await env.service.regenerate(test_user_id, env.plan.id, request, now=NOW)

    env.generator.generate.assert_awaited_once_with(
        "Run a full marathon", {"experience": "beginner"}, 30
    )
    assert result.plan.goal_text == "Run a full marathon"
    assert result.plan.end_date == MONDAY + timedelta(days=29)


@pytest.mark.asyncio
async def test_task_deletion_failure_restores_snapshot_and_releases_credit(env, test_user_id):
    env.task_repo.delete_by_plan = _fail_once(
        env.task_repo.delete_by_plan, RuntimeError("connection reset")
    )

    with pytest.raises(RegenerationError) as exc_info:
        await env.service.regenerate(test_user_id, env.plan.id, now=NOW)

    assert exc_info.value.code == "TASK_DELETION_FAILED"
    assert exc_info.value.status_code == 500
    await _assert_plan_unchanged(env, test_user_id)
    balance = await _balance(env, test_user_id)
    assert (balance.used, balance.reserved, balance.available) == (0, 0, 5)


@pytest.mark.asyncio
async def test_task_insertion_failure_restores_snapshot(env, test_user_id):
    env.generator.generate.return_value = GeneratedPlanContent(
        goal_title="Broken",
        tasks=[GeneratedTask(name="Fine"), GeneratedTask(name="   ")],
    )

    with pytest.raises(RegenerationError) as exc_info:
        await env.service.regenerate(test_user_id, env.plan.id, now=NOW)

    assert exc_info.value.code == "TASK_INSERTION_FAILED"
    await _assert_plan_unchanged(env, test_user_id)
    assert (await _balance(env, test_user_id)).reserved == 0


@pytest.mark.asyncio
async def test_plan_update_failure_leaves_tasks_untouched(env, test_user_id):
    env.plan_repo.update = _fail_first_call(env.plan_repo.update, RuntimeError("disk full"))

    with pytest.raises(RegenerationError) as exc_info:
        await env.service.regenerate(test_user_id, env.plan.id, now=NOW)

    assert exc_info.value.code == "PLAN_UPDATE_FAILED"
    await _assert_plan_unchanged(env, test_user_id)
    assert (await _balance(env, test_user_id)).available == 5


@pytest.mark.asyncio
async def test_settings_failure_releases_credit(env, test_user_id):
    policy = AsyncMock()
    policy.get_settings.side_effect = RuntimeError("settings store down")
    service = _service(env, workday_policy=policy)

    with pytest.raises(RegenerationError) as exc_info:
        await service.regenerate(test_user_id, env.plan.id, now=NOW)

    assert exc_info.value.code == "SETTINGS_FETCH_FAILED"
    env.generator.generate.assert_not_called()
    await _assert_plan_unchanged(env, test_user_id)
    assert (await _balance(env, test_user_id)).reserved == 0


@pytest.mark.asyncio
async def test_generator_failure_reported_as_regeneration_failed(env, test_user_id):
    env.generator.generate.side_effect = RuntimeError("model overloaded")

    with pytest.raises(RegenerationError) as exc_info:
        await env.service.regenerate(test_user_id, env.plan.id, now=NOW)

    assert exc_info.value.code == "REGENERATION_FAILED"
    await _assert_plan_unchanged(env, test_user_id)
    assert (await _balance(env, test_user_id)).available == 5


@pytest.mark.asyncio
async def test_exhausted_quota_rejected_before_any_change(env, test_user_id):
    service = _service(env, credit_service=CreditService(env.ledger, default_allocation=0))

    with pytest.raises(UsageLimitExceededError) as exc_info:
        await service.regenerate(test_user_id, env.plan.id, now=NOW)

    assert exc_info.value.remaining == 0
    env.generator.generate.assert_not_called()
    await _assert_plan_unchanged(env, test_user_id)
    schedules = await env.schedule_repo.list_active(test_user_id, plan_id=env.plan.id)
    assert len(schedules) == 1


@pytest.mark.asyncio
async def test_concurrent_regeneration_gets_conflict(env, test_user_id):
    await env.lock.acquire(env.plan.id, "other-request")

    with pytest.raises(ConflictError):
        await env.service.regenerate(test_user_id, env.plan.id, now=NOW)

    assert await _balance(env, test_user_id) is None
    env.generator.generate.assert_not_called()


@pytest.mark.asyncio
async def test_schedule_failure_is_soft(env, test_user_id):
    failing = AsyncMock()
    failing.generate_for_plan.side_effect = RuntimeError("placement crashed")
    service = _service(env, schedule_generation=failing)

    result = await service.regenerate(test_user_id, env.plan.id, now=NOW)

    assert result.success is True
    assert result.schedule_generation_success is False
    tasks = await env.task_repo.list_by_plan(test_user_id, env.plan.id)
    assert [task.name for task in tasks] == ["Long run", "Stretching", "Plan race day"]
    assert (await _balance(env, test_user_id)).used == 1


@pytest.mark.asyncio
async def test_cancellation_releases_credit_and_lock(env, test_user_id):
    started = asyncio.Event()

    async def slow_generate(*args, **kwargs):
        started.set()
        await asyncio.sleep(10)

    env.generator.generate.side_effect = slow_generate
    task = asyncio.create_task(env.service.regenerate(test_user_id, env.plan.id, now=NOW))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    balance = await _balance(env, test_user_id)
    assert (balance.used, balance.reserved) == (0, 0)
    assert await env.lock.acquire(env.plan.id, "after") is True
    await _assert_plan_unchanged(env, test_user_id)


@pytest.mark.asyncio
async def test_blank_goal_rejected_without_reserving(env, test_user_id):
    with pytest.raises(ValidationError):
        await env.service.regenerate(
            test_user_id, env.plan.id, RegenerationRequest(goal_text="   "), now=NOW
        )
    assert await _balance(env, test_user_id) is None


@pytest.mark.asyncio
async def test_unknown_plan(env, test_user_id):
    with pytest.raises(NotFoundError) as exc_info:
        await env.service.regenerate(test_user_id, uuid4(), now=NOW)
    assert exc_info.value.code == "PLAN_NOT_FOUND"


@pytest.mark.asyncio
async def test_snapshot_taken_after_lock_reflects_last_committed_write(env, test_user_id):
    real_acquire = env.lock.acquire

    async def acquire_after_previous_writer(plan_id, holder):
        # A writer that held the lock just before us commits its change
        await env.plan_repo.update(
            test_user_id, plan_id, PlanUpdate(goal_text="Committed by previous saga")
        )
        return await real_acquire(plan_id, holder)

    env.lock.acquire = acquire_after_previous_writer
    env.task_repo.delete_by_plan = _fail_first_call(
        env.task_repo.delete_by_plan, RuntimeError("connection reset")
    )

    with pytest.raises(RegenerationError) as exc_info:
        await env.service.regenerate(
            test_user_id, env.plan.id, RegenerationRequest(goal_text="Run a full marathon"), now=NOW
        )

    assert exc_info.value.code == "TASK_DELETION_FAILED"
    plan = await env.plan_repo.get(test_user_id, env.plan.id)
    assert plan.goal_text == "Committed by previous saga"


@pytest.mark.asyncio
async def test_schedule_step_runs_under_the_regeneration_lock(env, test_user_id):
    result = await env.service.regenerate(test_user_id, env.plan.id, now=NOW)

    assert result.schedule_generation_success is True
    assert await env.lock.acquire(env.plan.id, "after") is True
