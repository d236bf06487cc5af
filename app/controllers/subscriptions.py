from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from app.controllers.common import (
    ERROR_RESPONSES,
    UtcDatetime,
    changes_from,
    http_error,
    run_in_session,
)
from app.dependencies import rate_limit
from app.models import ErrorCode
from app.services import entitlement as entitlement_service
from app.services import subscriptions as subscription_service
from app.services.access import Principal

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])

SubscriptionStatus = Literal["pending", "active", "cancelled", "expired", "past_due", "paused"]


class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    plan_id: uuid.UUID
    subscription_status: str
    razorpay_subscription_id: str | None = None
    current_billing_cycle_start: UtcDatetime | None = None
    current_billing_cycle_end: UtcDatetime | None = None
    analyses_used_this_month: int
    auto_renewal_enabled: bool
    cancelled_at: UtcDatetime | None = None
    pause_start_date: UtcDatetime | None = None
    pause_end_date: UtcDatetime | None = None
    created_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None


class SubscriptionCreateRequest(BaseModel):
    plan_id: uuid.UUID
    user_id: uuid.UUID | None = None
    status: SubscriptionStatus = "pending"
    current_billing_cycle_start: datetime | None = None
    current_billing_cycle_end: datetime | None = None
    razorpay_subscription_id: str | None = None
    razorpay_customer_id: str | None = None
    auto_renewal_enabled: bool = True
    metadata: dict[str, Any] = Field(default_factory=dict)


class SubscriptionUpdateRequest(BaseModel):
    auto_renewal_enabled: bool | None = None
    cancel: bool = False


class StatusChangeRequest(BaseModel):
    status: SubscriptionStatus
    pause_start_date: datetime | None = None
    pause_end_date: datetime | None = None


class RenewRequest(BaseModel):
    current_billing_cycle_start: datetime | None = None
    current_billing_cycle_end: datetime | None = None
    reset_usage: bool = False


class SubscriptionDetailsResponse(BaseModel):
    subscription_id: uuid.UUID
    plan_name: str
    plan_price: float
    subscription_status: str
    analyses_used: int
    analyses_limit: int
    analyses_remaining: int
    cycle_start: UtcDatetime | None = None
    cycle_end: UtcDatetime | None = None
    auto_renewal: bool
    razorpay_subscription_id: str | None = None


@router.get("", response_model=list[SubscriptionResponse], responses=ERROR_RESPONSES)
async def list_subscriptions(principal: Principal = Depends(rate_limit)):
    subs = await run_in_session(
        lambda db: subscription_service.list_subscriptions(db, principal)
    )
    return [SubscriptionResponse.model_validate(s) for s in subs]


@router.post("", response_model=SubscriptionResponse, status_code=201, responses=ERROR_RESPONSES)
async def create_subscription(
    body: SubscriptionCreateRequest, principal: Principal = Depends(rate_limit)
):
    user_id = body.user_id
    if user_id is None:
        if principal.is_service:
            raise http_error(400, ErrorCode.BAD_REQUEST, "user_id is required")
        user_id = principal.user_id
    sub = await run_in_session(
        lambda db: subscription_service.create_subscription(
            db,
            principal,
            user_id=user_id,
            plan_id=body.plan_id,
            status=body.status,
            cycle_start=body.current_billing_cycle_start,
            cycle_end=body.current_billing_cycle_end,
            razorpay_subscription_id=body.razorpay_subscription_id,
            razorpay_customer_id=body.razorpay_customer_id,
            auto_renewal_enabled=body.auto_renewal_enabled,
            meta=body.metadata,
        )
    )
    return SubscriptionResponse.model_validate(sub)


@router.get("/current", response_model=SubscriptionDetailsResponse, responses=ERROR_RESPONSES)
async def current_subscription(principal: Principal = Depends(rate_limit)):
    details = await run_in_session(
        lambda db: entitlement_service.get_subscription_details(db, principal)
    )
    if details is None:
        raise http_error(404, ErrorCode.NOT_FOUND, "No active subscription")
    return SubscriptionDetailsResponse(**details._asdict())


@router.get("/{subscription_id}", response_model=SubscriptionResponse, responses=ERROR_RESPONSES)
async def get_subscription(subscription_id: uuid.UUID, principal: Principal = Depends(rate_limit)):
    sub = await run_in_session(
        lambda db: subscription_service.get_subscription(
            db, principal, subscription_id=subscription_id
        )
    )
    return SubscriptionResponse.model_validate(sub)


@router.patch("/{subscription_id}", response_model=SubscriptionResponse, responses=ERROR_RESPONSES)
async def update_subscription(
    subscription_id: uuid.UUID,
    body: SubscriptionUpdateRequest,
    principal: Principal = Depends(rate_limit),
):
    changes = changes_from(body)
    cancel = bool(changes.pop("cancel", False))
    sub = await run_in_session(
        lambda db: subscription_service.update_own_subscription(
            db, principal, subscription_id=subscription_id, changes=changes, cancel=cancel
        )
    )
    return SubscriptionResponse.model_validate(sub)


@router.post(
    "/{subscription_id}/status", response_model=SubscriptionResponse, responses=ERROR_RESPONSES
)
async def change_status(
    subscription_id: uuid.UUID,
    body: StatusChangeRequest,
    principal: Principal = Depends(rate_limit),
):
    sub = await run_in_session(
        lambda db: subscription_service.set_subscription_status(
            db,
            principal,
            subscription_id=subscription_id,
            status=body.status,
            pause_start=body.pause_start_date,
            pause_end=body.pause_end_date,
        )
    )
    return SubscriptionResponse.model_validate(sub)


@router.post(
    "/{subscription_id}/renew", response_model=SubscriptionResponse, responses=ERROR_RESPONSES
)
async def renew_subscription(
    subscription_id: uuid.UUID,
    body: RenewRequest,
    principal: Principal = Depends(rate_limit),
):
    sub = await run_in_session(
        lambda db: subscription_service.renew_billing_cycle(
            db,
            principal,
            subscription_id=subscription_id,
            cycle_start=body.current_billing_cycle_start,
            cycle_end=body.current_billing_cycle_end,
            reset_usage=body.reset_usage,
        )
    )
    return SubscriptionResponse.model_validate(sub)
