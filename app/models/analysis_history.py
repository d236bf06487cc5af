import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Uuid

from app.models.base import Base
from app.models.types import JsonDoc


class AnalysisHistory(Base):
    __tablename__ = "analysis_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    analysis_data = Column(JsonDoc, nullable=False)
    overall_score = Column(Integer)
    image_url = Column(String)
    created_at = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True
    )


__all__ = ["AnalysisHistory"]
