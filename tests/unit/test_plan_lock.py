"""
Unit tests for the per-plan advisory lock.
"""

from uuid import uuid4

import pytest

from plancal.infrastructure.local.plan_lock import SqlitePlanLock


@pytest.mark.asyncio
async def test_second_holder_rejected_until_release(session_factory):
    lock = SqlitePlanLock(session_factory)
    plan_id = uuid4()

    assert await lock.acquire(plan_id, "first") is True
    assert await lock.acquire(plan_id, "second") is False

    await lock.release(plan_id, "first")
    assert await lock.acquire(plan_id, "second") is True


@pytest.mark.asyncio
async def test_release_by_other_holder_is_ignored(session_factory):
    lock = SqlitePlanLock(session_factory)
    plan_id = uuid4()

    await lock.acquire(plan_id, "first")
    await lock.release(plan_id, "intruder")

    assert await lock.acquire(plan_id, "second") is False


@pytest.mark.asyncio
async def test_expired_lock_taken_over(session_factory):
    stale = SqlitePlanLock(session_factory, ttl_seconds=-1)
    plan_id = uuid4()
    await stale.acquire(plan_id, "crashed")

    lock = SqlitePlanLock(session_factory)
    assert await lock.acquire(plan_id, "fresh") is True
    assert await lock.acquire(plan_id, "third") is False


@pytest.mark.asyncio
async def test_locks_are_per_plan(session_factory):
    lock = SqlitePlanLock(session_factory)
    assert await lock.acquire(uuid4(), "a") is True
    assert await lock.acquire(uuid4(), "b") is True
