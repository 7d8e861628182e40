"""
Unit tests for the saga runner.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from plancal.services.saga import Saga, SagaFailed, SagaStep


def _recorder(calls, name, result=None, error=None):
    async def run():
        calls.append(name)
        if error:
            raise error
        return result

    return run


@pytest.mark.asyncio
async def test_runs_steps_in_order_and_collects_results():
    calls = []
    saga = Saga(name="test")
    saga.add_step(SagaStep("a", _recorder(calls, "a", 1)))
    saga.add_step(SagaStep("b", _recorder(calls, "b", 2)))

    results = await saga.run()

    assert calls == ["a", "b"]
    assert results == {"a": 1, "b": 2}
    assert saga.completed_steps == ["a", "b"]


@pytest.mark.asyncio
async def test_failure_compensates_completed_steps_newest_first():
    calls = []
    saga = Saga(name="test")
    saga.add_step(SagaStep("a", _recorder(calls, "a"), _recorder(calls, "undo_a")))
    saga.add_step(SagaStep("b", _recorder(calls, "b"), _recorder(calls, "undo_b")))
    saga.add_step(
        SagaStep(
            "c",
            _recorder(calls, "c", error=RuntimeError("boom")),
            _recorder(calls, "undo_c"),
            error_code="C_FAILED",
        )
    )

    with pytest.raises(SagaFailed) as exc_info:
        await saga.run()

    assert calls == ["a", "b", "c", "undo_b", "undo_a"]
    assert exc_info.value.step == "c"
    assert exc_info.value.error_code == "C_FAILED"
    assert isinstance(exc_info.value.cause, RuntimeError)


@pytest.mark.asyncio
async def test_failed_step_compensated_when_flagged():
    calls = []
    saga = Saga(name="test")
    saga.add_step(SagaStep("a", _recorder(calls, "a"), _recorder(calls, "undo_a")))
    saga.add_step(
        SagaStep(
            "b",
            _recorder(calls, "b", error=RuntimeError("partial")),
            _recorder(calls, "undo_b"),
            compensate_on_failure=True,
        )
    )

    with pytest.raises(SagaFailed):
        await saga.run()

    assert calls == ["a", "b", "undo_b", "undo_a"]


@pytest.mark.asyncio
async def test_compensation_errors_collected_and_remaining_compensations_run():
    calls = []
    saga = Saga(name="test")
    saga.add_step(SagaStep("a", _recorder(calls, "a"), _recorder(calls, "undo_a")))
    saga.add_step(
        SagaStep("b", _recorder(calls, "b"), _recorder(calls, "undo_b", error=RuntimeError("stuck")))
    )
    saga.add_step(SagaStep("c", _recorder(calls, "c", error=RuntimeError("boom"))))

    with pytest.raises(SagaFailed) as exc_info:
        await saga.run()

    assert calls == ["a", "b", "c", "undo_b", "undo_a"]
    assert exc_info.value.compensation_errors == ["b: stuck"]


@pytest.mark.asyncio
async def test_cancellation_compensates_and_propagates():
    undo_a = AsyncMock()
    started = asyncio.Event()

    async def hang():
        started.set()
        await asyncio.sleep(10)

    saga = Saga(name="test")
    saga.add_step(SagaStep("a", AsyncMock(return_value="done"), undo_a))
    saga.add_step(SagaStep("b", hang))

    task = asyncio.create_task(saga.run())
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    undo_a.assert_awaited_once()
