"""Monthly usage counter reset sweep.

Run periodically by an external scheduler. Eligibility is recomputed from
timestamps on every run, so an interrupted sweep is finished by the next
one. Counters already at zero are skipped, which makes a repeated run with
the same ``now`` a no-op.

The eligibility window only reaches ``window_days`` back: a subscription
whose cycle closed earlier than that is never reset by the sweep and needs
its cycle advanced by a billing event instead.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.config import Settings
from app.metrics import usage_reset_failures_total, usage_reset_rows_total
from app.models import UserSubscription
from app.services.access import Principal, require_service
from app.services.subscriptions import ensure_utc

settings = Settings()
logger = logging.getLogger(__name__)


def _eligible(now: datetime, window_days: int):
    return (
        UserSubscription.subscription_status == "active",
        UserSubscription.current_billing_cycle_end < now,
        UserSubscription.current_billing_cycle_end > now - timedelta(days=window_days),
        UserSubscription.analyses_used_this_month > 0,
    )


def count_eligible(db: Session, *, now: datetime, window_days: int) -> int:
    return db.execute(
        select(func.count()).select_from(UserSubscription).where(*_eligible(now, window_days))
    ).scalar_one()


def reset_monthly_usage_counters(
    db: Session,
    principal: Principal,
    *,
    now: datetime | None = None,
    window_days: int | None = None,
    dry_run: bool = False,
) -> int:
    """Zero usage for active subscriptions whose cycle closed within the window."""
    require_service(principal, "reset_monthly_usage_counters")
    now = ensure_utc(now) if now else datetime.now(timezone.utc)
    if window_days is None:
        window_days = settings.usage_reset_window_days
    if window_days <= 0:
        raise ValueError("window_days must be positive")

    if dry_run:
        rows = count_eligible(db, now=now, window_days=window_days)
        logger.info("usage reset dry run: %s subscriptions eligible", rows, extra={"rows": rows})
        return rows

    try:
        result = db.execute(
            update(UserSubscription)
            .where(*_eligible(now, window_days))
            .values(analyses_used_this_month=0, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        usage_reset_failures_total.inc()
        logger.exception("usage reset failed; next run will retry")
        raise

    rows = result.rowcount or 0
    usage_reset_rows_total.inc(rows)
    logger.info("usage reset: %s subscriptions zeroed", rows, extra={"rows": rows})
    return rows


__all__ = ["count_eligible", "reset_monthly_usage_counters"]
