import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, Text, Uuid

from app.models.base import Base
from app.models.types import JsonDoc, PAYMENT_STATUSES

_STATUS_LIST = ", ".join(f"'{s}'" for s in PAYMENT_STATUSES)


class PaymentTransaction(Base):
    __tablename__ = "payment_transactions"
    __table_args__ = (
        CheckConstraint(
            f"payment_status IN ({_STATUS_LIST})",
            name="ck_payment_transactions_status",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid, ForeignKey("identities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    subscription_id = Column(
        Uuid, ForeignKey("user_subscriptions.id", ondelete="SET NULL"), index=True
    )
    razorpay_payment_id = Column(String, unique=True, index=True)
    razorpay_order_id = Column(String)
    razorpay_signature = Column(String)
    amount_paid_usd = Column(Numeric(10, 2), nullable=False)
    currency = Column(String, nullable=False, default="USD")
    payment_status = Column(String, nullable=False)
    payment_method = Column(String)
    error_code = Column(String)
    error_description = Column(Text)
    transaction_date = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    meta = Column("metadata", JsonDoc, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


__all__ = ["PaymentTransaction"]
