from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from app.controllers.common import ERROR_RESPONSES, UtcDatetime, run_in_session
from app.dependencies import rate_limit
from app.services import entitlement as entitlement_service
from app.services import usage_reset
from app.services.access import Principal

router = APIRouter(prefix="/usage", tags=["usage"])


class EntitlementResponse(BaseModel):
    can_analyze: bool
    analyses_remaining: int
    subscription_status: str
    plan_name: str


class IncrementRequest(BaseModel):
    analysis_result_id: uuid.UUID | None = None
    analysis_type: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class IncrementResponse(BaseModel):
    success: bool
    analyses_used: int | None = None
    error: str | None = None


class UsageEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    subscription_id: uuid.UUID | None = None
    analysis_result_id: uuid.UUID | None = None
    analysis_type: str
    analysis_date: UtcDatetime


class ResetRequest(BaseModel):
    now: datetime | None = None
    window_days: int | None = Field(None, gt=0)
    dry_run: bool = False


class ResetResponse(BaseModel):
    reset: int
    dry_run: bool


@router.get("/entitlement", response_model=EntitlementResponse, responses=ERROR_RESPONSES)
async def entitlement(principal: Principal = Depends(rate_limit)):
    result = await run_in_session(
        lambda db: entitlement_service.check_entitlement(db, principal)
    )
    return EntitlementResponse(**result._asdict())


@router.post("/increment", response_model=IncrementResponse, responses=ERROR_RESPONSES)
async def increment(body: IncrementRequest | None = None, principal: Principal = Depends(rate_limit)):
    body = body or IncrementRequest()
    result = await run_in_session(
        lambda db: entitlement_service.increment_usage(
            db,
            principal,
            analysis_result_id=body.analysis_result_id,
            analysis_type=body.analysis_type,
            meta=body.metadata,
        )
    )
    # "no subscription" is a normal outcome, reported in the body
    return IncrementResponse(**result.as_dict())


@router.get("/events", response_model=list[UsageEventResponse], responses=ERROR_RESPONSES)
async def usage_events(
    limit: int = Query(100, ge=1, le=500), principal: Principal = Depends(rate_limit)
):
    events = await run_in_session(
        lambda db: entitlement_service.list_usage_events(db, principal, limit=limit)
    )
    return [UsageEventResponse.model_validate(e) for e in events]


@router.post("/reset", response_model=ResetResponse, responses=ERROR_RESPONSES)
async def reset(body: ResetRequest | None = None, principal: Principal = Depends(rate_limit)):
    body = body or ResetRequest()
    rows = await run_in_session(
        lambda db: usage_reset.reset_monthly_usage_counters(
            db,
            principal,
            now=body.now,
            window_days=body.window_days,
            dry_run=body.dry_run,
        )
    )
    return ResetResponse(reset=rows, dry_run=body.dry_run)
