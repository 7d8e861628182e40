"""
Plan regeneration coordinator.

Regeneration rewrites a plan's metadata and its whole task list through
several independent writes, so it runs as a saga:

    snapshot -> reserve credit -> settings -> generate content
    -> update plan -> delete tasks -> insert tasks      (compensated)
    -> delete old placements -> place tasks             (best effort)
    -> commit credit

Structural failures roll the plan back to the snapshot and release the
credit. Placement failures only clear ``schedule_generation_success``.
A per-plan lock keeps concurrent regenerations, and every other writer of
the plan's schedule rows, apart. The lock is passed on to placement.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID, uuid4

from plancal.core.exceptions import (
    ContentGenerationError,
    NotFoundError,
    RegenerationError,
    ValidationError,
)
from plancal.core.logger import setup_logger
from plancal.interfaces.content_generator import IContentGenerator
from plancal.interfaces.plan_lock import IPlanLock
from plancal.interfaces.plan_repository import IPlanRepository
from plancal.interfaces.task_repository import ITaskRepository
from plancal.interfaces.task_schedule_repository import ITaskScheduleRepository
from plancal.models.enums import RegenerationErrorCode
from plancal.models.plan import DEFAULT_PLAN_DAYS, Plan, PlanSnapshot, PlanUpdate
from plancal.models.regeneration import (
    GeneratedPlanContent,
    RegenerationRequest,
    RegenerationResult,
)
from plancal.models.task import Task
from plancal.models.usage import CreditReservation
from plancal.services.credit_service import CreditService
from plancal.services.plan_locking import plan_lock_held
from plancal.services.saga import Saga, SagaFailed, SagaStep
from plancal.services.schedule_generation_service import ScheduleGenerationService
from plancal.services.task_utils import normalize_generated_tasks
from plancal.services.workday_policy_service import WorkdayPolicyService
from plancal.utils.datetime_utils import now_utc

logger = setup_logger(__name__)

_FAILURE_MESSAGES = {
    RegenerationErrorCode.PLAN_UPDATE_FAILED: "Failed to update plan",
    RegenerationErrorCode.TASK_DELETION_FAILED: "Failed to delete old tasks; plan restored",
    RegenerationErrorCode.TASK_INSERTION_FAILED: "Failed to insert new tasks; plan restored",
}


@dataclass
class _Progress:
    structural_done: bool = False


class PlanRegenerationService:
    """Regenerates a plan's content and schedule with rollback on failure."""

    def __init__(
        self,
        plan_repo: IPlanRepository,
        task_repo: ITaskRepository,
        task_schedule_repo: ITaskScheduleRepository,
        workday_policy: WorkdayPolicyService,
        content_generator: IContentGenerator,
        credit_service: CreditService,
        plan_lock: IPlanLock,
        schedule_generation: ScheduleGenerationService,
        credit_cost: int = 1,
        default_plan_days: int = DEFAULT_PLAN_DAYS,
    ):
        self._plan_repo = plan_repo
        self._task_repo = task_repo
        self._task_schedule_repo = task_schedule_repo
        self._workday_policy = workday_policy
        self._content_generator = content_generator
        self._credit_service = credit_service
        self._plan_lock = plan_lock
        self._schedule_generation = schedule_generation
        self._credit_cost = credit_cost
        self._default_plan_days = default_plan_days

    async def regenerate(
        self,
        user_id: str,
        plan_id: UUID,
        request: Optional[RegenerationRequest] = None,
        now: Optional[datetime] = None,
    ) -> RegenerationResult:
        """
        Regenerate a plan.

        Args:
            user_id: Owner user ID
            plan_id: Plan to regenerate
            request: Overrides for goal text, clarifications and timeline
            now: Reference instant for placement

        Returns:
            RegenerationResult with the updated plan and its new tasks

        Raises:
            ValidationError: Malformed request (nothing reserved or changed)
            NotFoundError: Plan doesn't exist
            ConflictError: Another request holds the plan lock
            UsageLimitExceededError: No credit left (nothing changed)
            RegenerationError: A step failed; state was rolled back and the
                credit released before raising
        """
        request = request or RegenerationRequest()
        self._validate_request(request)

        plan = await self._plan_repo.get(user_id, plan_id)
        if not plan:
            raise NotFoundError(
                f"Plan {plan_id} not found", code=RegenerationErrorCode.PLAN_NOT_FOUND.value
            )

        async with plan_lock_held(self._plan_lock, plan_id, "regenerate") as holder:
            return await self._regenerate_locked(user_id, plan_id, request, holder, now or now_utc())

    @staticmethod
    def _validate_request(request: RegenerationRequest) -> None:
        if request.goal_text is not None and not request.goal_text.strip():
            raise ValidationError("goal_text cannot be blank")

    async def _regenerate_locked(
        self,
        user_id: str,
        plan_id: UUID,
        request: RegenerationRequest,
        holder: Optional[str],
        now: datetime,
    ) -> RegenerationResult:
        # Re-read under the lock: the snapshot must reflect the last committed writer
        plan = await self._plan_repo.get(user_id, plan_id)
        if not plan:
            raise NotFoundError(
                f"Plan {plan_id} not found", code=RegenerationErrorCode.PLAN_NOT_FOUND.value
            )
        snapshot = await self._take_snapshot(user_id, plan)
        reservation = await self._credit_service.reserve(
            user_id,
            amount=self._credit_cost,
            reference=f"plan_regeneration:{plan.id}:{holder or uuid4()}",
        )

        progress = _Progress()
        try:
            result = await self._execute(user_id, plan, snapshot, request, progress, now, holder)
        except asyncio.CancelledError:
            logger.warning(f"Regeneration of plan {plan.id} cancelled, settling credit")
            await asyncio.shield(self._settle_after_cancel(reservation, progress))
            raise
        except RegenerationError as exc:
            await self._release_credit(reservation, reason=exc.code)
            raise
        except Exception as exc:
            logger.error(f"Regeneration of plan {plan.id} failed: {exc}")
            await self._release_credit(reservation, reason="error")
            raise RegenerationError(
                "Plan regeneration failed",
                code=RegenerationErrorCode.REGENERATION_FAILED.value,
            ) from exc

        await self._commit_credit(reservation)
        return result

    async def _execute(
        self,
        user_id: str,
        plan: Plan,
        snapshot: PlanSnapshot,
        request: RegenerationRequest,
        progress: _Progress,
        now: datetime,
        holder: Optional[str],
    ) -> RegenerationResult:
        try:
            settings = await self._workday_policy.get_settings(user_id)
        except Exception as exc:
            logger.error(f"Workday settings fetch failed for user {user_id}: {exc}")
            raise RegenerationError(
                "Failed to load workday settings",
                code=RegenerationErrorCode.SETTINGS_FETCH_FAILED.value,
            ) from exc

        goal_text = (request.goal_text or plan.goal_text).strip()
        clarifications = (
            request.clarifications if request.clarifications is not None else plan.clarifications
        )
        content = await self._content_generator.generate(
            goal_text, clarifications, request.timeline_days
        )
        if not content.tasks:
            raise ContentGenerationError("Content generator returned no tasks")

        plan_update = self._build_plan_update(plan, request, content, goal_text, clarifications, now)

        saga = Saga(name=f"regenerate:{plan.id}")
        saga.add_step(
            SagaStep(
                name="update_plan",
                action=lambda: self._plan_repo.update(user_id, plan.id, plan_update),
                compensation=lambda: self._restore_plan(user_id, snapshot),
                error_code=RegenerationErrorCode.PLAN_UPDATE_FAILED.value,
            )
        )
        saga.add_step(
            SagaStep(
                name="delete_tasks",
                action=lambda: self._task_repo.delete_by_plan(user_id, plan.id),
                compensation=lambda: self._restore_tasks(user_id, snapshot),
                error_code=RegenerationErrorCode.TASK_DELETION_FAILED.value,
                compensate_on_failure=True,
            )
        )
        saga.add_step(
            SagaStep(
                name="insert_tasks",
                action=lambda: self._insert_tasks(user_id, plan.id, content),
                compensation=lambda: self._remove_tasks(user_id, plan.id),
                error_code=RegenerationErrorCode.TASK_INSERTION_FAILED.value,
                compensate_on_failure=True,
            )
        )

        try:
            results = await saga.run()
        except SagaFailed as exc:
            code = RegenerationErrorCode(exc.error_code)
            raise RegenerationError(
                _FAILURE_MESSAGES[code],
                code=code.value,
                details={"step": exc.step, "compensation_errors": exc.compensation_errors or None},
            ) from exc
        progress.structural_done = True

        updated_plan: Plan = results["update_plan"]
        tasks: list[Task] = results["insert_tasks"]

        schedules_cleared = True
        try:
            await self._task_schedule_repo.delete_by_plan(user_id, plan.id)
        except Exception as exc:
            schedules_cleared = False
            logger.warning(f"Could not delete old placements of plan {plan.id}: {exc}")

        schedule_generation_success = True
        try:
            await self._schedule_generation.generate_for_plan(
                user_id,
                plan.id,
                settings=settings,
                now=now,
                replace_existing=not schedules_cleared,
                plan=updated_plan,
                tasks=tasks,
                lock_holder=holder,
            )
        except Exception as exc:
            schedule_generation_success = False
            logger.warning(
                f"{RegenerationErrorCode.SCHEDULE_GENERATION_FAILED.value} for plan {plan.id}: {exc}"
            )

        logger.info(
            f"Regenerated plan {plan.id}: {len(tasks)} tasks, "
            f"schedule_generation_success={schedule_generation_success}"
        )
        return RegenerationResult(
            success=True,
            plan=updated_plan,
            tasks=tasks,
            schedule_generation_success=schedule_generation_success,
        )

    def _build_plan_update(
        self,
        plan: Plan,
        request: RegenerationRequest,
        content: GeneratedPlanContent,
        goal_text: str,
        clarifications,
        now: datetime,
    ) -> PlanUpdate:
        timeline_days = request.timeline_days or content.timeline_days or self._current_timeline_days(plan)
        summary_data = dict(plan.summary_data or {})
        summary_data.update(
            {
                "goal_title": content.goal_title,
                "plan_summary": content.plan_summary,
                "timeline_days": timeline_days,
                "regenerated_at": now.isoformat(),
            }
        )
        return PlanUpdate(
            goal_text=goal_text,
            clarifications=clarifications,
            end_date=plan.start_date + timedelta(days=timeline_days - 1),
            summary_data=summary_data,
        )

    def _current_timeline_days(self, plan: Plan) -> int:
        if plan.end_date:
            return max((plan.end_date - plan.start_date).days + 1, 1)
        return self._default_plan_days

    async def _take_snapshot(self, user_id: str, plan: Plan) -> PlanSnapshot:
        tasks = await self._task_repo.list_by_plan(user_id, plan.id)
        return PlanSnapshot(
            plan_id=plan.id,
            goal_text=plan.goal_text,
            clarifications=plan.clarifications,
            end_date=plan.end_date,
            status=plan.status,
            summary_data=plan.summary_data,
            tasks=[task.to_create() for task in sorted(tasks, key=lambda task: task.idx)],
        )

    async def _insert_tasks(
        self, user_id: str, plan_id: UUID, content: GeneratedPlanContent
    ) -> list[Task]:
        return await self._task_repo.create_many(
            user_id, plan_id, normalize_generated_tasks(content.tasks)
        )

    async def _remove_tasks(self, user_id: str, plan_id: UUID) -> None:
        await self._task_repo.delete_by_plan(user_id, plan_id)

    async def _restore_plan(self, user_id: str, snapshot: PlanSnapshot) -> None:
        await self._plan_repo.update(user_id, snapshot.plan_id, snapshot.to_plan_update())

    async def _restore_tasks(self, user_id: str, snapshot: PlanSnapshot) -> None:
        """Put the snapshot's tasks back, one by one if the bulk insert fails."""
        current = await self._task_repo.list_by_plan(user_id, snapshot.plan_id)
        if [task.to_create() for task in current] == snapshot.tasks:
            return
        await self._task_repo.delete_by_plan(user_id, snapshot.plan_id)
        try:
            await self._task_repo.create_many(user_id, snapshot.plan_id, snapshot.tasks)
            return
        except Exception as exc:
            logger.warning(f"Bulk task restore for plan {snapshot.plan_id} failed: {exc}")

        failed = 0
        for task in snapshot.tasks:
            try:
                await self._task_repo.create_many(user_id, snapshot.plan_id, [task])
            except Exception as exc:
                failed += 1
                logger.error(f"Could not restore task idx={task.idx} of plan {snapshot.plan_id}: {exc}")
        if failed:
            raise RegenerationError(
                f"{failed} of {len(snapshot.tasks)} tasks could not be restored",
                details={"plan_id": str(snapshot.plan_id)},
            )

    async def _commit_credit(self, reservation: CreditReservation) -> None:
        try:
            await self._credit_service.commit(reservation)
        except Exception as exc:
            logger.error(f"Credit commit failed for {reservation.reference}: {exc}")

    async def _release_credit(self, reservation: CreditReservation, reason: str) -> None:
        try:
            await self._credit_service.release(reservation, reason=reason)
        except Exception as exc:
            logger.error(f"Credit release failed for {reservation.reference}: {exc}")

    async def _settle_after_cancel(
        self, reservation: CreditReservation, progress: _Progress
    ) -> None:
        if progress.structural_done:
            await self._commit_credit(reservation)
        else:
            await self._release_credit(reservation, reason="cancelled")
