"""Subscription plan catalog."""
from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.metrics import constraint_violation_total
from app.models import SubscriptionPlan, UserSubscription
from app.models.types import LIVE_SUBSCRIPTION_STATUSES
from app.services.access import (
    ConstraintViolation,
    NotFoundError,
    PlanInUseError,
    Principal,
    require_service,
)

logger = logging.getLogger(__name__)

DEFAULT_PLANS: tuple[dict[str, Any], ...] = (
    {
        "plan_name": "Basic",
        "plan_price_usd": Decimal("4.00"),
        "monthly_analyses_limit": 5,
        "description": "Perfect for beginners starting their fitness journey",
        "features": [
            "5 AI body analyses per month",
            "Workout recommendations",
            "Progress tracking",
            "Basic muscle insights",
        ],
    },
    {
        "plan_name": "Pro",
        "plan_price_usd": Decimal("7.00"),
        "monthly_analyses_limit": 20,
        "description": "Ideal for fitness enthusiasts tracking progress regularly",
        "features": [
            "20 AI body analyses per month",
            "Advanced workout plans",
            "Detailed progress tracking",
            "Muscle group analysis",
            "Priority support",
        ],
    },
    {
        "plan_name": "VIP",
        "plan_price_usd": Decimal("14.00"),
        "monthly_analyses_limit": 50,
        "description": "Ultimate plan for serious athletes and bodybuilders",
        "features": [
            "50 AI body analyses per month",
            "Premium workout plans",
            "Advanced analytics",
            "Detailed muscle insights",
            "Comparison tools",
            "Priority support",
            "Early access to features",
        ],
    },
)

EDITABLE_FIELDS = (
    "plan_name",
    "plan_price_usd",
    "monthly_analyses_limit",
    "razorpay_plan_id",
    "description",
    "features",
    "is_active",
)
# columns declared NOT NULL
REQUIRED_FIELDS = ("plan_name", "plan_price_usd", "monthly_analyses_limit", "features", "is_active")


def list_active_plans(db: Session) -> list[SubscriptionPlan]:
    """Active plans are readable by anyone."""
    return (
        db.query(SubscriptionPlan)
        .filter(SubscriptionPlan.is_active.is_(True))
        .order_by(SubscriptionPlan.plan_price_usd.asc())
        .all()
    )


def get_plan(db: Session, *, plan_id: uuid.UUID, include_inactive: bool = False) -> SubscriptionPlan:
    query = db.query(SubscriptionPlan).filter(SubscriptionPlan.id == plan_id)
    if not include_inactive:
        query = query.filter(SubscriptionPlan.is_active.is_(True))
    plan = query.first()
    if plan is None:
        raise NotFoundError("plan not found")
    return plan


def seed_default_plans(db: Session) -> int:
    """Insert missing default plans; existing names are left alone."""
    existing = {name for (name,) in db.query(SubscriptionPlan.plan_name).all()}
    added = 0
    for defaults in DEFAULT_PLANS:
        if defaults["plan_name"] in existing:
            continue
        db.add(SubscriptionPlan(**defaults))
        added += 1
    db.commit()
    return added


def _commit_plan(db: Session, plan: SubscriptionPlan) -> SubscriptionPlan:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        constraint_violation_total.labels(table="subscription_plans").inc()
        raise ConstraintViolation("plan name or external plan id already exists") from exc
    db.refresh(plan)
    return plan


def create_plan(db: Session, principal: Principal, **fields: Any) -> SubscriptionPlan:
    require_service(principal, "create_plan")
    plan = SubscriptionPlan(**{k: v for k, v in fields.items() if k in EDITABLE_FIELDS})
    db.add(plan)
    plan = _commit_plan(db, plan)
    logger.info("plan %s created", plan.plan_name, extra={"plan_id": plan.id})
    return plan


def update_plan(
    db: Session, principal: Principal, *, plan_id: uuid.UUID, changes: dict[str, Any]
) -> SubscriptionPlan:
    require_service(principal, "update_plan")
    plan = get_plan(db, plan_id=plan_id, include_inactive=True)
    for key, value in changes.items():
        if key in REQUIRED_FIELDS and value is None:
            raise ValueError(f"{key} cannot be null")
        if key in EDITABLE_FIELDS:
            setattr(plan, key, value)
    return _commit_plan(db, plan)


def delete_plan(db: Session, principal: Principal, *, plan_id: uuid.UUID) -> None:
    """Remove a plan that no live subscription references."""
    require_service(principal, "delete_plan")
    plan = get_plan(db, plan_id=plan_id, include_inactive=True)
    live = (
        db.query(UserSubscription.id)
        .filter(UserSubscription.plan_id == plan_id)
        .filter(UserSubscription.subscription_status.in_(LIVE_SUBSCRIPTION_STATUSES))
        .first()
    )
    if live is not None:
        raise PlanInUseError(f"plan {plan.plan_name} has live subscriptions")
    name = plan.plan_name
    db.delete(plan)
    try:
        db.commit()
    except IntegrityError as exc:
        # ended subscriptions still reference the plan
        db.rollback()
        raise PlanInUseError(
            f"plan {name} is referenced by past subscriptions; deactivate it instead"
        ) from exc
    logger.info("plan %s deleted", name, extra={"plan_id": plan_id})


__all__ = [
    "DEFAULT_PLANS",
    "EDITABLE_FIELDS",
    "REQUIRED_FIELDS",
    "list_active_plans",
    "get_plan",
    "seed_default_plans",
    "create_plan",
    "update_plan",
    "delete_plan",
]
