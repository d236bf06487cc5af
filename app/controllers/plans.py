from __future__ import annotations

import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict, Field

from app.controllers.common import ERROR_RESPONSES, UtcDatetime, changes_from, run_in_session
from app.dependencies import rate_limit, rate_limit_anonymous
from app.services import plans as plan_service
from app.services.access import Principal

router = APIRouter(prefix="/plans", tags=["plans"])


class PlanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    plan_name: str
    plan_price_usd: float
    monthly_analyses_limit: int
    razorpay_plan_id: str | None = None
    description: str | None = None
    features: list[str] = Field(default_factory=list)
    is_active: bool
    created_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None


class PlanCreateRequest(BaseModel):
    plan_name: str = Field(min_length=1)
    plan_price_usd: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    monthly_analyses_limit: int = Field(ge=0)
    razorpay_plan_id: str | None = None
    description: str | None = None
    features: list[str] = Field(default_factory=list)
    is_active: bool = True


class PlanUpdateRequest(BaseModel):
    plan_name: str | None = Field(None, min_length=1)
    plan_price_usd: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    monthly_analyses_limit: int | None = Field(None, ge=0)
    razorpay_plan_id: str | None = None
    description: str | None = None
    features: list[str] | None = None
    is_active: bool | None = None


@router.get("", response_model=list[PlanResponse])
async def list_plans(_: None = Depends(rate_limit_anonymous)):
    plans = await run_in_session(plan_service.list_active_plans)
    return [PlanResponse.model_validate(p) for p in plans]


@router.post("", response_model=PlanResponse, status_code=201, responses=ERROR_RESPONSES)
async def create_plan(body: PlanCreateRequest, principal: Principal = Depends(rate_limit)):
    plan = await run_in_session(
        lambda db: plan_service.create_plan(db, principal, **body.model_dump())
    )
    return PlanResponse.model_validate(plan)


@router.patch("/{plan_id}", response_model=PlanResponse, responses=ERROR_RESPONSES)
async def update_plan(
    plan_id: uuid.UUID, body: PlanUpdateRequest, principal: Principal = Depends(rate_limit)
):
    plan = await run_in_session(
        lambda db: plan_service.update_plan(
            db, principal, plan_id=plan_id, changes=changes_from(body)
        )
    )
    return PlanResponse.model_validate(plan)


@router.delete("/{plan_id}", status_code=204, responses=ERROR_RESPONSES)
async def delete_plan(plan_id: uuid.UUID, principal: Principal = Depends(rate_limit)):
    await run_in_session(lambda db: plan_service.delete_plan(db, principal, plan_id=plan_id))
    return Response(status_code=204)
