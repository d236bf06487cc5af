from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from app.models import Identity, SubscriptionPlan, UserSubscription
from app.services.access import ServicePrincipal, UserPrincipal
from app.services.identities import create_identity

OPERATOR = ServicePrincipal()


def make_identity(session, **meta) -> Identity:
    local = uuid.uuid4().hex[:12]
    return create_identity(session, OPERATOR, email=f"{local}@example.com", meta=meta or None)


def principal_for(identity: Identity) -> UserPrincipal:
    return UserPrincipal(user_id=identity.id)


def plan_by_name(session, name: str = "Basic") -> SubscriptionPlan:
    return session.query(SubscriptionPlan).filter_by(plan_name=name).one()


def make_plan(session, *, limit: int = 3, price: str = "1.00") -> SubscriptionPlan:
    plan = SubscriptionPlan(
        plan_name=f"Test {uuid.uuid4().hex[:8]}",
        plan_price_usd=Decimal(price),
        monthly_analyses_limit=limit,
        features=[],
    )
    session.add(plan)
    session.commit()
    return plan


def make_subscription(
    session,
    identity: Identity,
    plan: SubscriptionPlan,
    *,
    status: str = "active",
    used: int = 0,
    cycle_end: datetime | None = None,
    created_at: datetime | None = None,
) -> UserSubscription:
    if cycle_end is None:
        cycle_end = datetime.now(timezone.utc) + timedelta(days=10)
    sub = UserSubscription(
        user_id=identity.id,
        plan_id=plan.id,
        subscription_status=status,
        current_billing_cycle_start=cycle_end - timedelta(days=30),
        current_billing_cycle_end=cycle_end,
        analyses_used_this_month=used,
    )
    if created_at is not None:
        sub.created_at = created_at
    session.add(sub)
    session.commit()
    return sub
