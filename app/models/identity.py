import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Uuid

from app.models.base import Base
from app.models.types import JsonDoc


class Identity(Base):
    """Authenticated account; owner of every user-scoped row."""

    __tablename__ = "identities"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String, nullable=False, unique=True)
    raw_user_meta_data = Column(JsonDoc, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


__all__ = ["Identity"]
