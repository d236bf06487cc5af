"""Monthly analysis quota: entitlement check, usage increment, details.

A subscription grants analyses while its status is ``active`` and its
billing cycle has not ended. Each analysis bumps
``analyses_used_this_month`` and appends one ``usage_tracking`` row; both
writes share a transaction.

The increment is a single conditional ``UPDATE ... SET n = n + 1`` rather
than read-compare-write, so the store serializes concurrent callers on the
subscription row and no update is lost.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, NamedTuple

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.config import Settings
from app.metrics import entitlement_checks_total, quota_reject_total, usage_increments_total
from app.models import AnalysisHistory, SubscriptionPlan, UsageTracking, UserSubscription
from app.services.access import NotFoundError, Principal, require_user
from app.services.subscriptions import ensure_utc

settings = Settings()
logger = logging.getLogger(__name__)

NO_SUBSCRIPTION = "No active subscription found"
LIMIT_REACHED = "Monthly analysis limit reached"


class Entitlement(NamedTuple):
    """Whether the caller may run one more analysis right now."""
    can_analyze: bool
    analyses_remaining: int
    subscription_status: str
    plan_name: str


class UsageIncrementResult(NamedTuple):
    success: bool
    analyses_used: int | None = None
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "analyses_used": self.analyses_used}
        return {"success": False, "error": self.error}


class SubscriptionDetails(NamedTuple):
    subscription_id: uuid.UUID
    plan_name: str
    plan_price: Decimal
    subscription_status: str
    analyses_used: int
    analyses_limit: int
    analyses_remaining: int
    cycle_start: datetime | None
    cycle_end: datetime | None
    auto_renewal: bool
    razorpay_subscription_id: str | None


NO_ENTITLEMENT = Entitlement(False, 0, "none", "none")


def _now(now: datetime | None) -> datetime:
    return ensure_utc(now) if now else datetime.now(timezone.utc)


def _current_subscription_stmt(user_id: uuid.UUID, now: datetime):
    # newest first so legacy duplicates resolve to the latest row
    return (
        select(UserSubscription, SubscriptionPlan)
        .join(SubscriptionPlan, SubscriptionPlan.id == UserSubscription.plan_id)
        .where(
            UserSubscription.user_id == user_id,
            UserSubscription.subscription_status == "active",
            UserSubscription.current_billing_cycle_end > now,
        )
        .order_by(UserSubscription.created_at.desc())
        .limit(1)
    )


def _still_current(db: Session, sub_id: uuid.UUID, now: datetime) -> bool:
    return (
        db.execute(
            select(UserSubscription.id).where(
                UserSubscription.id == sub_id,
                UserSubscription.subscription_status == "active",
                UserSubscription.current_billing_cycle_end > now,
            )
        ).first()
        is not None
    )


def check_entitlement(
    db: Session, principal: Principal, *, now: datetime | None = None
) -> Entitlement:
    user_id = require_user(principal)
    row = db.execute(_current_subscription_stmt(user_id, _now(now))).first()
    if row is None:
        entitlement_checks_total.labels(result="none").inc()
        return NO_ENTITLEMENT

    sub, plan = row
    used = sub.analyses_used_this_month or 0
    limit = plan.monthly_analyses_limit
    if used < limit:
        entitlement_checks_total.labels(result="allowed").inc()
        return Entitlement(True, limit - used, sub.subscription_status, plan.plan_name)

    entitlement_checks_total.labels(result="exhausted").inc()
    quota_reject_total.inc()
    return Entitlement(False, 0, sub.subscription_status, plan.plan_name)


def increment_usage(
    db: Session,
    principal: Principal,
    *,
    analysis_result_id: uuid.UUID | None = None,
    analysis_type: str | None = None,
    meta: dict[str, Any] | None = None,
    enforce_limit: bool | None = None,
    now: datetime | None = None,
) -> UsageIncrementResult:
    """Consume one analysis from the caller's active subscription."""
    user_id = require_user(principal)
    now = _now(now)
    if enforce_limit is None:
        enforce_limit = settings.usage_enforce_limit

    row = db.execute(_current_subscription_stmt(user_id, now)).first()
    if row is None:
        usage_increments_total.labels(status="no_subscription").inc()
        return UsageIncrementResult(False, error=NO_SUBSCRIPTION)
    sub_id, limit = row[0].id, row[1].monthly_analyses_limit

    if analysis_result_id is not None:
        owned = (
            db.query(AnalysisHistory.id)
            .filter(AnalysisHistory.id == analysis_result_id, AnalysisHistory.user_id == user_id)
            .first()
        )
        if owned is None:
            raise NotFoundError("analysis result not found")

    # re-check status and window inside the write so a concurrent
    # cancellation or reset is not overwritten
    stmt = (
        update(UserSubscription)
        .where(
            UserSubscription.id == sub_id,
            UserSubscription.subscription_status == "active",
            UserSubscription.current_billing_cycle_end > now,
        )
        .values(
            analyses_used_this_month=UserSubscription.analyses_used_this_month + 1,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if enforce_limit:
        stmt = stmt.where(UserSubscription.analyses_used_this_month < limit)

    try:
        result = db.execute(stmt)
        if result.rowcount != 1:
            db.rollback()
            # quota only explains the miss if the row still qualifies
            if enforce_limit and _still_current(db, sub_id, now):
                usage_increments_total.labels(status="limit_reached").inc()
                quota_reject_total.inc()
                return UsageIncrementResult(False, error=LIMIT_REACHED)
            usage_increments_total.labels(status="no_subscription").inc()
            return UsageIncrementResult(False, error=NO_SUBSCRIPTION)

        db.add(
            UsageTracking(
                user_id=user_id,
                subscription_id=sub_id,
                analysis_date=now,
                analysis_type=analysis_type or settings.default_analysis_type,
                analysis_result_id=analysis_result_id,
                meta=meta or {},
            )
        )
        db.flush()
        used = db.execute(
            select(UserSubscription.analyses_used_this_month).where(UserSubscription.id == sub_id)
        ).scalar_one()
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "usage increment failed", extra={"user_id": user_id, "subscription_id": sub_id}
        )
        raise

    usage_increments_total.labels(status="success").inc()
    logger.info(
        "usage incremented to %s",
        used,
        extra={"user_id": user_id, "subscription_id": sub_id},
    )
    return UsageIncrementResult(True, analyses_used=used)


def get_subscription_details(db: Session, principal: Principal) -> SubscriptionDetails | None:
    """Caller's newest active subscription joined with its plan."""
    user_id = require_user(principal)
    row = db.execute(
        select(UserSubscription, SubscriptionPlan)
        .join(SubscriptionPlan, SubscriptionPlan.id == UserSubscription.plan_id)
        .where(
            UserSubscription.user_id == user_id,
            UserSubscription.subscription_status == "active",
        )
        .order_by(UserSubscription.created_at.desc())
        .limit(1)
    ).first()
    if row is None:
        return None
    sub, plan = row
    used = sub.analyses_used_this_month or 0
    return SubscriptionDetails(
        subscription_id=sub.id,
        plan_name=plan.plan_name,
        plan_price=plan.plan_price_usd,
        subscription_status=sub.subscription_status,
        analyses_used=used,
        analyses_limit=plan.monthly_analyses_limit,
        analyses_remaining=plan.monthly_analyses_limit - used,
        cycle_start=ensure_utc(sub.current_billing_cycle_start),
        cycle_end=ensure_utc(sub.current_billing_cycle_end),
        auto_renewal=sub.auto_renewal_enabled,
        razorpay_subscription_id=sub.razorpay_subscription_id,
    )


def list_usage_events(
    db: Session, principal: Principal, *, limit: int = 100
) -> list[UsageTracking]:
    user_id = require_user(principal)
    return (
        db.query(UsageTracking)
        .filter(UsageTracking.user_id == user_id)
        .order_by(UsageTracking.analysis_date.desc())
        .limit(limit)
        .all()
    )


__all__ = [
    "NO_SUBSCRIPTION",
    "LIMIT_REACHED",
    "Entitlement",
    "UsageIncrementResult",
    "SubscriptionDetails",
    "NO_ENTITLEMENT",
    "check_entitlement",
    "increment_usage",
    "get_subscription_details",
    "list_usage_events",
]
