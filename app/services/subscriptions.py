"""User subscriptions and their billing-driven lifecycle."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.metrics import constraint_violation_total
from app.models import SubscriptionPlan, UserSubscription
from app.models.types import SUBSCRIPTION_STATUSES
from app.services.access import (
    AccessDenied,
    ConstraintViolation,
    NotFoundError,
    Principal,
    check_owner,
    require_service,
    scope_to_owner,
)

logger = logging.getLogger(__name__)

DEFAULT_CYCLE = timedelta(days=30)
# fields a user may change on their own subscription
USER_EDITABLE_FIELDS = ("auto_renewal_enabled",)


def ensure_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _commit(db: Session, sub: UserSubscription) -> UserSubscription:
    # read before commit; a failed flush leaves the session unusable until rollback
    user_id = sub.user_id
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        constraint_violation_total.labels(table="user_subscriptions").inc()
        logger.warning("subscription write rejected: %s", exc.orig, extra={"user_id": user_id})
        raise ConstraintViolation(
            "subscription rejected: user already has an active subscription "
            "or a value violates a constraint"
        ) from exc
    db.refresh(sub)
    return sub


def list_subscriptions(db: Session, principal: Principal) -> list[UserSubscription]:
    query = scope_to_owner(db.query(UserSubscription), UserSubscription.user_id, principal)
    return query.order_by(UserSubscription.created_at.desc()).all()


def get_subscription(
    db: Session, principal: Principal, *, subscription_id: uuid.UUID
) -> UserSubscription:
    query = scope_to_owner(db.query(UserSubscription), UserSubscription.user_id, principal)
    sub = query.filter(UserSubscription.id == subscription_id).first()
    if sub is None:
        raise NotFoundError("subscription not found")
    return sub


def create_subscription(
    db: Session,
    principal: Principal,
    *,
    user_id: uuid.UUID,
    plan_id: uuid.UUID,
    status: str = "pending",
    cycle_start: datetime | None = None,
    cycle_end: datetime | None = None,
    razorpay_subscription_id: str | None = None,
    razorpay_customer_id: str | None = None,
    auto_renewal_enabled: bool = True,
    meta: dict[str, Any] | None = None,
) -> UserSubscription:
    check_owner(user_id, principal)
    if status not in SUBSCRIPTION_STATUSES:
        raise ValueError(f"unknown subscription status: {status}")
    if status != "pending" and not principal.is_service:
        # activation is driven by the billing provider
        raise AccessDenied("subscribers can only create pending subscriptions")
    cycle_start, cycle_end = ensure_utc(cycle_start), ensure_utc(cycle_end)
    if db.get(SubscriptionPlan, plan_id) is None:
        raise NotFoundError("plan not found")
    if cycle_start is not None and cycle_end is None:
        cycle_end = cycle_start + DEFAULT_CYCLE
    sub = UserSubscription(
        user_id=user_id,
        plan_id=plan_id,
        subscription_status=status,
        current_billing_cycle_start=cycle_start,
        current_billing_cycle_end=cycle_end,
        razorpay_subscription_id=razorpay_subscription_id,
        razorpay_customer_id=razorpay_customer_id,
        auto_renewal_enabled=auto_renewal_enabled,
        meta=meta or {},
    )
    db.add(sub)
    sub = _commit(db, sub)
    logger.info(
        "subscription created with status %s",
        status,
        extra={"user_id": user_id, "subscription_id": sub.id},
    )
    return sub


def update_own_subscription(
    db: Session,
    principal: Principal,
    *,
    subscription_id: uuid.UUID,
    changes: dict[str, Any],
    cancel: bool = False,
    now: datetime | None = None,
) -> UserSubscription:
    """Self-service edits: toggle auto-renewal or cancel."""
    sub = get_subscription(db, principal, subscription_id=subscription_id)
    for key, value in changes.items():
        if key not in USER_EDITABLE_FIELDS:
            raise AccessDenied(f"field {key} cannot be changed by the subscriber")
        if value is None:
            raise ValueError(f"{key} cannot be null")
        setattr(sub, key, value)
    if cancel:
        _apply_status(sub, "cancelled", now or datetime.now(timezone.utc))
    return _commit(db, sub)


def _apply_status(sub: UserSubscription, status: str, now: datetime, **extra: Any) -> None:
    sub.subscription_status = status
    if status == "cancelled":
        sub.cancelled_at = now
        sub.auto_renewal_enabled = False
    elif status == "paused":
        sub.pause_start_date = extra.get("pause_start") or now
        sub.pause_end_date = extra.get("pause_end")
    elif status == "expired":
        sub.subscription_end_date = sub.current_billing_cycle_end or now
    elif status == "active":
        sub.pause_start_date = None
        sub.pause_end_date = None


def set_subscription_status(
    db: Session,
    principal: Principal,
    *,
    subscription_id: uuid.UUID,
    status: str,
    now: datetime | None = None,
    pause_start: datetime | None = None,
    pause_end: datetime | None = None,
) -> UserSubscription:
    """Lifecycle transition driven by a billing event (operator only)."""
    require_service(principal, "set_subscription_status")
    if status not in SUBSCRIPTION_STATUSES:
        raise ValueError(f"unknown subscription status: {status}")
    sub = get_subscription(db, principal, subscription_id=subscription_id)
    previous = sub.subscription_status
    _apply_status(
        sub,
        status,
        now or datetime.now(timezone.utc),
        pause_start=pause_start,
        pause_end=pause_end,
    )
    sub = _commit(db, sub)
    logger.info(
        "subscription status %s -> %s",
        previous,
        status,
        extra={"user_id": sub.user_id, "subscription_id": sub.id},
    )
    return sub


def renew_billing_cycle(
    db: Session,
    principal: Principal,
    *,
    subscription_id: uuid.UUID,
    cycle_start: datetime | None = None,
    cycle_end: datetime | None = None,
    reset_usage: bool = False,
) -> UserSubscription:
    """Advance the billing window; by default the next cycle starts where the last ended."""
    require_service(principal, "renew_billing_cycle")
    sub = get_subscription(db, principal, subscription_id=subscription_id)
    cycle_start, cycle_end = ensure_utc(cycle_start), ensure_utc(cycle_end)
    if cycle_start is None:
        cycle_start = ensure_utc(sub.current_billing_cycle_end) or datetime.now(timezone.utc)
    if cycle_end is None:
        cycle_end = cycle_start + DEFAULT_CYCLE
    if cycle_end <= cycle_start:
        raise ValueError("billing cycle must end after it starts")
    sub.current_billing_cycle_start = cycle_start
    sub.current_billing_cycle_end = cycle_end
    if reset_usage:
        sub.analyses_used_this_month = 0
    sub = _commit(db, sub)
    logger.info(
        "billing cycle renewed until %s",
        cycle_end.isoformat(),
        extra={"user_id": sub.user_id, "subscription_id": sub.id},
    )
    return sub


__all__ = [
    "DEFAULT_CYCLE",
    "USER_EDITABLE_FIELDS",
    "ensure_utc",
    "list_subscriptions",
    "get_subscription",
    "create_subscription",
    "update_own_subscription",
    "set_subscription_status",
    "renew_billing_cycle",
]
