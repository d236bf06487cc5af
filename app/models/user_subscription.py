import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
    text,
)

from app.models.base import Base
from app.models.types import JsonDoc, SUBSCRIPTION_STATUSES

_STATUS_LIST = ", ".join(f"'{s}'" for s in SUBSCRIPTION_STATUSES)


class UserSubscription(Base):
    """A user's subscription to a plan and its monthly usage counter."""

    __tablename__ = "user_subscriptions"
    __table_args__ = (
        CheckConstraint(
            f"subscription_status IN ({_STATUS_LIST})",
            name="ck_user_subscriptions_status",
        ),
        CheckConstraint(
            "analyses_used_this_month >= 0",
            name="ck_user_subscriptions_usage_non_negative",
        ),
        # at most one active subscription per user
        Index(
            "idx_user_active_subscription",
            "user_id",
            unique=True,
            postgresql_where=text("subscription_status = 'active'"),
            sqlite_where=text("subscription_status = 'active'"),
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid, ForeignKey("identities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    plan_id = Column(Uuid, ForeignKey("subscription_plans.id"), nullable=False)
    subscription_status = Column(String, nullable=False, index=True)
    razorpay_subscription_id = Column(String, unique=True, index=True)
    razorpay_customer_id = Column(String)
    current_billing_cycle_start = Column(DateTime(timezone=True))
    current_billing_cycle_end = Column(DateTime(timezone=True))
    analyses_used_this_month = Column(Integer, nullable=False, default=0)
    subscription_start_date = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    subscription_end_date = Column(DateTime(timezone=True))
    auto_renewal_enabled = Column(Boolean, nullable=False, default=True)
    cancelled_at = Column(DateTime(timezone=True))
    pause_start_date = Column(DateTime(timezone=True))
    pause_end_date = Column(DateTime(timezone=True))
    # ``metadata`` is reserved on declarative classes
    meta = Column("metadata", JsonDoc, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


__all__ = ["UserSubscription"]
