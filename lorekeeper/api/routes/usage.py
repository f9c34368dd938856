"""Extraction usage endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field

from lorekeeper.api.dependencies import get_pipeline, get_quota_engine
from lorekeeper.errors import QuotaUnavailable
from lorekeeper.notes import NoteEntityPipeline
from lorekeeper.quota import (
    QuotaEngine,
    UsagePeriod,
    UsageStatus,
    fill_percentage,
    period_summary,
    severity,
)

router = APIRouter()


class UsageResponse(BaseModel):
    """Usage snapshot plus indicator values."""

    status: UsageStatus
    fill_percentage: float
    severity: str  # exceeded, warning, elevated, ok
    periods: dict[str, str]  # period -> "count/limit"


class LimitsUpdate(BaseModel):
    """Operator overrides for one user."""

    custom_limit: Optional[int] = Field(default=None, gt=0)
    is_unlimited: bool = False


def to_response(status: UsageStatus) -> UsageResponse:
    return UsageResponse(
        status=status,
        fill_percentage=fill_percentage(status),
        severity=severity(status),
        periods={p.value: period_summary(status, p) for p in UsagePeriod},
    )


@router.get("/usage", response_model=UsageResponse)
async def get_usage(
    user_id: str = Header(..., alias="X-User-Id"),
    pipeline: NoteEntityPipeline = Depends(get_pipeline),
) -> UsageResponse:
    """Caller's extraction usage. Does not consume quota."""
    try:
        return to_response(await pipeline.get_usage_status(user_id))
    except QuotaUnavailable as e:
        raise HTTPException(status_code=503, detail=e.user_message)


@router.put("/usage/{user_id}/limits", response_model=UsageResponse)
async def update_limits(
    user_id: str,
    update: LimitsUpdate,
    engine: QuotaEngine = Depends(get_quota_engine),
) -> UsageResponse:
    """Set a user's custom daily limit or unlimited access."""
    try:
        status = await engine.set_limits(
            user_id,
            custom_limit=update.custom_limit,
            is_unlimited=update.is_unlimited,
        )
        return to_response(status)
    except QuotaUnavailable as e:
        raise HTTPException(status_code=503, detail=e.user_message)


@router.post("/usage/{user_id}/reset", response_model=UsageResponse)
async def reset_usage(
    user_id: str,
    engine: QuotaEngine = Depends(get_quota_engine),
) -> UsageResponse:
    """Zero all of a user's usage windows."""
    try:
        return to_response(await engine.reset_usage(user_id))
    except QuotaUnavailable as e:
        raise HTTPException(status_code=503, detail=e.user_message)
