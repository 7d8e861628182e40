"""
Helpers for holding the per-plan lock around writes to a plan's rows.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import UUID, uuid4

from plancal.core.exceptions import ConflictError
from plancal.core.logger import setup_logger
from plancal.interfaces.plan_lock import IPlanLock

logger = setup_logger(__name__)


@asynccontextmanager
async def plan_lock_held(
    plan_lock: Optional[IPlanLock],
    plan_id: UUID,
    purpose: str,
    holder: Optional[str] = None,
) -> AsyncIterator[Optional[str]]:
    """
    Hold the plan lock for the duration of the block.

    Args:
        plan_lock: Lock backend; None disables locking
        plan_id: Plan whose rows are written
        purpose: Prefix of the holder token (shows up in lock rows and logs)
        holder: Token of a lock the caller already owns; nothing is acquired
            or released in that case

    Yields:
        The holder token in effect

    Raises:
        ConflictError: If another holder owns the lock
    """
    if plan_lock is None or holder is not None:
        yield holder
        return

    token = f"{purpose}:{uuid4()}"
    if not await plan_lock.acquire(plan_id, token):
        raise ConflictError(
            "Plan is being modified by another request",
            details={"plan_id": str(plan_id)},
        )
    try:
        yield token
    finally:
        await asyncio.shield(release_plan_lock(plan_lock, plan_id, token))


async def release_plan_lock(plan_lock: IPlanLock, plan_id: UUID, holder: str) -> None:
    """Release the lock. Failures are logged, not raised."""
    try:
        await plan_lock.release(plan_id, holder)
    except Exception as exc:
        logger.error(f"Failed to release lock on plan {plan_id}: {exc}")
