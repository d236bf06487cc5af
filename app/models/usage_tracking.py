import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid

from app.models.base import Base
from app.models.types import JsonDoc


class UsageTracking(Base):
    """One metered analysis charged against a subscription."""

    __tablename__ = "usage_tracking"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid, ForeignKey("identities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    subscription_id = Column(
        Uuid, ForeignKey("user_subscriptions.id", ondelete="SET NULL")
    )
    analysis_date = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True
    )
    analysis_type = Column(String, nullable=False, default="body_analysis")
    analysis_result_id = Column(
        Uuid, ForeignKey("analysis_history.id", ondelete="SET NULL")
    )
    meta = Column("metadata", JsonDoc, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


__all__ = ["UsageTracking"]
