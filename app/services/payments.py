from __future__ import annotations

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.metrics import constraint_violation_total
from app.models import PaymentTransaction, UserSubscription
from app.models.types import PAYMENT_STATUSES
from app.services.access import (
    ConstraintViolation,
    NotFoundError,
    Principal,
    require_service,
    scope_to_owner,
)

logger = logging.getLogger(__name__)


def list_transactions(
    db: Session, principal: Principal, *, limit: int = 100
) -> list[PaymentTransaction]:
    query = scope_to_owner(db.query(PaymentTransaction), PaymentTransaction.user_id, principal)
    return query.order_by(PaymentTransaction.transaction_date.desc()).limit(limit).all()


def record_transaction(
    db: Session,
    principal: Principal,
    *,
    user_id: uuid.UUID,
    amount_paid_usd: Decimal,
    payment_status: str,
    subscription_id: uuid.UUID | None = None,
    razorpay_payment_id: str | None = None,
    razorpay_order_id: str | None = None,
    razorpay_signature: str | None = None,
    currency: str = "USD",
    payment_method: str | None = None,
    error_code: str | None = None,
    error_description: str | None = None,
    transaction_date: datetime | None = None,
    meta: dict[str, Any] | None = None,
) -> PaymentTransaction:
    """Append a payment attempt reported by the billing webhook."""
    require_service(principal, "record_transaction")
    if payment_status not in PAYMENT_STATUSES:
        raise ValueError(f"unknown payment status: {payment_status}")
    if subscription_id is not None:
        sub = db.get(UserSubscription, subscription_id)
        if sub is None or sub.user_id != user_id:
            raise NotFoundError("subscription not found for user")

    txn = PaymentTransaction(
        user_id=user_id,
        subscription_id=subscription_id,
        razorpay_payment_id=razorpay_payment_id,
        razorpay_order_id=razorpay_order_id,
        razorpay_signature=razorpay_signature,
        amount_paid_usd=amount_paid_usd,
        currency=currency,
        payment_status=payment_status,
        payment_method=payment_method,
        error_code=error_code,
        error_description=error_description,
        meta=meta or {},
    )
    if transaction_date is not None:
        txn.transaction_date = transaction_date
    db.add(txn)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        constraint_violation_total.labels(table="payment_transactions").inc()
        raise ConstraintViolation("payment already recorded") from exc
    db.refresh(txn)
    if payment_status == "failed":
        logger.warning(
            "payment failed: %s", error_code or "unknown", extra={"user_id": user_id}
        )
    return txn


__all__ = ["list_transactions", "record_transaction"]
