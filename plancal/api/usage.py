"""
Usage API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Query

from plancal.api.deps import Credits, CurrentUser, UsageLedger
from plancal.models.enums import UsageMetric
from plancal.models.usage import UsageBalance, UsageLedgerEntry

router = APIRouter()


@router.get("", response_model=UsageBalance)
async def get_usage(
    user: CurrentUser,
    credits: Credits,
    metric: UsageMetric = UsageMetric.API_CREDITS,
):
    return await credits.get_balance(user, metric)


@router.get("/ledger", response_model=list[UsageLedgerEntry])
async def list_usage_ledger(
    user: CurrentUser,
    ledger: UsageLedger,
    metric: UsageMetric = UsageMetric.API_CREDITS,
    limit: int = Query(50, ge=1, le=500),
):
    return await ledger.list_entries(user, metric, limit=limit)
