from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from app.controllers.common import ERROR_RESPONSES, UtcDatetime, run_in_session
from app.dependencies import rate_limit
from app.services import payments as payment_service
from app.services.access import Principal

router = APIRouter(prefix="/payments", tags=["payments"])

PaymentStatus = Literal["pending", "authorized", "captured", "failed", "refunded"]


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    subscription_id: uuid.UUID | None = None
    razorpay_payment_id: str | None = None
    razorpay_order_id: str | None = None
    amount_paid_usd: float
    currency: str
    payment_status: str
    payment_method: str | None = None
    error_code: str | None = None
    error_description: str | None = None
    transaction_date: UtcDatetime | None = None


class TransactionCreateRequest(BaseModel):
    user_id: uuid.UUID
    amount_paid_usd: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    payment_status: PaymentStatus
    subscription_id: uuid.UUID | None = None
    razorpay_payment_id: str | None = None
    razorpay_order_id: str | None = None
    razorpay_signature: str | None = None
    currency: str = Field("USD", min_length=3, max_length=3)
    payment_method: str | None = None
    error_code: str | None = None
    error_description: str | None = None
    transaction_date: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


@router.get("", response_model=list[TransactionResponse], responses=ERROR_RESPONSES)
async def list_transactions(
    limit: int = Query(100, ge=1, le=500), principal: Principal = Depends(rate_limit)
):
    rows = await run_in_session(
        lambda db: payment_service.list_transactions(db, principal, limit=limit)
    )
    return [TransactionResponse.model_validate(r) for r in rows]


@router.post("", response_model=TransactionResponse, status_code=201, responses=ERROR_RESPONSES)
async def record_transaction(
    body: TransactionCreateRequest, principal: Principal = Depends(rate_limit)
):
    data = body.model_dump()
    data["meta"] = data.pop("metadata")
    txn = await run_in_session(
        lambda db: payment_service.record_transaction(db, principal, **data)
    )
    return TransactionResponse.model_validate(txn)
