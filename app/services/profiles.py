from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Profile
from app.services.access import (
    ConstraintViolation,
    NotFoundError,
    Principal,
    check_owner,
    scope_to_owner,
)

EDITABLE_FIELDS = ("full_name", "avatar_url", "username")


def get_profile(db: Session, principal: Principal, *, profile_id: uuid.UUID) -> Profile:
    query = scope_to_owner(db.query(Profile), Profile.id, principal)
    profile = query.filter(Profile.id == profile_id).first()
    if profile is None:
        raise NotFoundError("profile not found")
    return profile


def create_profile(
    db: Session,
    principal: Principal,
    *,
    profile_id: uuid.UUID,
    email: str,
    **fields: Any,
) -> Profile:
    """Insert a profile; users may only insert their own."""
    check_owner(profile_id, principal)
    profile = Profile(id=profile_id, email=email)
    for key in EDITABLE_FIELDS:
        if fields.get(key) is not None:
            setattr(profile, key, fields[key])
    db.add(profile)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConstraintViolation("profile already exists or username taken") from exc
    db.refresh(profile)
    return profile


def update_profile(
    db: Session,
    principal: Principal,
    *,
    profile_id: uuid.UUID,
    changes: dict[str, Any],
) -> Profile:
    profile = get_profile(db, principal, profile_id=profile_id)
    for key, value in changes.items():
        if key in EDITABLE_FIELDS:
            setattr(profile, key, value)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConstraintViolation("username already taken") from exc
    db.refresh(profile)
    return profile


__all__ = ["EDITABLE_FIELDS", "get_profile", "create_profile", "update_profile"]
