import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text, Uuid

from app.models.base import Base
from app.models.types import JsonDoc


class SubscriptionPlan(Base):
    """Catalog entry for a subscription tier."""

    __tablename__ = "subscription_plans"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    plan_name = Column(String, nullable=False, unique=True, index=True)
    plan_price_usd = Column(Numeric(10, 2), nullable=False)
    monthly_analyses_limit = Column(Integer, nullable=False)
    razorpay_plan_id = Column(String, unique=True)
    description = Column(Text)
    features = Column(JsonDoc, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


__all__ = ["SubscriptionPlan"]
