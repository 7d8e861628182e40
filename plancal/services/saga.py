"""
Minimal saga runner: ordered (action, compensation) steps over a store with
no cross-call transactions.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from plancal.core.logger import setup_logger

logger = setup_logger(__name__)

Action = Callable[[], Awaitable[Any]]
Compensation = Callable[[], Awaitable[None]]


@dataclass
class SagaStep:
    """
    One step of a saga.

    Attributes:
        name: Step name used in logs and results
        action: Forward operation
        compensation: Undo for this step, run when a later step fails
        error_code: Code reported when ``action`` fails
        compensate_on_failure: Also run ``compensation`` when this step's own
            action fails (the action may have been partly applied)
    """

    name: str
    action: Action
    compensation: Optional[Compensation] = None
    error_code: str = "SAGA_STEP_FAILED"
    compensate_on_failure: bool = False


class SagaFailed(Exception):
    """Raised after compensation when a step fails."""

    def __init__(self, step: str, error_code: str, cause: BaseException, compensation_errors: list[str]):
        self.step = step
        self.error_code = error_code
        self.cause = cause
        self.compensation_errors = compensation_errors
        super().__init__(f"Saga step '{step}' failed: {cause}")


@dataclass
class Saga:
    name: str
    steps: list[SagaStep] = field(default_factory=list)
    results: dict[str, Any] = field(default_factory=dict)
    _completed: list[SagaStep] = field(default_factory=list, init=False, repr=False)

    def add_step(self, step: SagaStep) -> "Saga":
        self.steps.append(step)
        return self

    @property
    def completed_steps(self) -> list[str]:
        return [step.name for step in self._completed]

    async def run(self) -> dict[str, Any]:
        """
        Run steps strictly in order.

        Raises:
            SagaFailed: After compensating, when a step raises
            asyncio.CancelledError: After compensating, when cancelled mid-step
        """
        for step in self.steps:
            try:
                self.results[step.name] = await step.action()
            except asyncio.CancelledError:
                logger.warning(f"Saga {self.name} cancelled during '{step.name}', compensating")
                await asyncio.shield(self._compensate(step if step.compensate_on_failure else None))
                raise
            except Exception as exc:
                logger.error(f"Saga {self.name} step '{step.name}' failed: {exc}")
                errors = await self._compensate(step if step.compensate_on_failure else None)
                raise SagaFailed(step.name, step.error_code, exc, errors) from exc
            self._completed.append(step)
        return self.results

    async def _compensate(self, failed_step: Optional[SagaStep]) -> list[str]:
        """Run compensations newest first. Errors are logged and collected, never raised."""
        pending = list(reversed(self._completed))
        if failed_step is not None:
            pending.insert(0, failed_step)
        errors: list[str] = []
        for step in pending:
            if step.compensation is None:
                continue
            try:
                await step.compensation()
                logger.info(f"Saga {self.name} compensated '{step.name}'")
            except Exception as exc:
                logger.error(f"Saga {self.name} compensation for '{step.name}' failed: {exc}")
                errors.append(f"{step.name}: {exc}")
        self._completed.clear()
        return errors
