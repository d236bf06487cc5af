from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import AnalysisHistory
from app.services.access import (
    ConstraintViolation,
    NotFoundError,
    Principal,
    check_owner,
    scope_to_owner,
)

EDITABLE_FIELDS = ("analysis_data", "overall_score", "image_url")


def list_analyses(db: Session, principal: Principal, *, limit: int = 50) -> list[AnalysisHistory]:
    query = scope_to_owner(db.query(AnalysisHistory), AnalysisHistory.user_id, principal)
    return query.order_by(AnalysisHistory.created_at.desc()).limit(limit).all()


def get_analysis(db: Session, principal: Principal, *, analysis_id: uuid.UUID) -> AnalysisHistory:
    query = scope_to_owner(db.query(AnalysisHistory), AnalysisHistory.user_id, principal)
    record = query.filter(AnalysisHistory.id == analysis_id).first()
    if record is None:
        raise NotFoundError("analysis not found")
    return record


def create_analysis(
    db: Session,
    principal: Principal,
    *,
    user_id: uuid.UUID,
    analysis_data: dict[str, Any],
    overall_score: int | None = None,
    image_url: str | None = None,
) -> AnalysisHistory:
    check_owner(user_id, principal)
    if not isinstance(analysis_data, dict):
        raise ValueError("analysis_data must be an object")
    record = AnalysisHistory(
        user_id=user_id,
        analysis_data=analysis_data,
        overall_score=overall_score,
        image_url=image_url,
    )
    db.add(record)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConstraintViolation("profile does not exist") from exc
    db.refresh(record)
    return record


def update_analysis(
    db: Session, principal: Principal, *, analysis_id: uuid.UUID, changes: dict[str, Any]
) -> AnalysisHistory:
    record = get_analysis(db, principal, analysis_id=analysis_id)
    for key, value in changes.items():
        if key == "analysis_data" and not isinstance(value, dict):
            raise ValueError("analysis_data must be an object")
        if key in EDITABLE_FIELDS:
            setattr(record, key, value)
    db.commit()
    db.refresh(record)
    return record


def delete_analysis(db: Session, principal: Principal, *, analysis_id: uuid.UUID) -> None:
    record = get_analysis(db, principal, analysis_id=analysis_id)
    db.delete(record)
    db.commit()


__all__ = [
    "EDITABLE_FIELDS",
    "list_analyses",
    "get_analysis",
    "create_analysis",
    "update_analysis",
    "delete_analysis",
]
