"""Identity lifecycle: signup creates the profile, deletion cascades."""
from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Identity, Profile
from app.services.access import (
    ConstraintViolation,
    NotFoundError,
    Principal,
    require_service,
)

logger = logging.getLogger(__name__)


def _first_present(*values: Any) -> Any:
    """First value that is not None; empty strings count as present."""
    return next((v for v in values if v is not None), None)


def profile_defaults(email: str, meta: dict[str, Any] | None) -> dict[str, str]:
    """Derive display attributes for a new profile from signup metadata."""
    meta = meta or {}
    full_name = _first_present(meta.get("full_name"), meta.get("name"), "")
    avatar_url = _first_present(meta.get("avatar_url"), meta.get("picture"), "")
    username = _first_present(meta.get("name"), email.split("@", 1)[0])
    return {"full_name": full_name, "avatar_url": avatar_url, "username": username}


def create_identity(
    db: Session,
    principal: Principal,
    *,
    email: str,
    meta: dict[str, Any] | None = None,
    identity_id: uuid.UUID | None = None,
) -> Identity:
    """Register an identity and its profile in one transaction."""
    require_service(principal, "create_identity")
    identity = Identity(id=identity_id or uuid.uuid4(), email=email, raw_user_meta_data=meta or {})
    db.add(identity)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConstraintViolation("identity email already registered") from exc
    db.add(Profile(id=identity.id, email=email, **profile_defaults(email, meta)))
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConstraintViolation("identity email or username already taken") from exc
    db.refresh(identity)
    logger.info("identity created", extra={"user_id": identity.id})
    return identity


def delete_identity(db: Session, principal: Principal, *, identity_id: uuid.UUID) -> None:
    """Delete an identity; the store cascades to every row it owns."""
    require_service(principal, "delete_identity")
    identity = db.get(Identity, identity_id)
    if identity is None:
        raise NotFoundError("identity not found")
    db.delete(identity)
    db.commit()
    logger.info("identity deleted", extra={"user_id": identity_id})


__all__ = ["profile_defaults", "create_identity", "delete_identity"]
