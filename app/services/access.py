"""Ownership checks applied in front of every storage call.

Each request carries a principal. ``UserPrincipal`` sees and writes only
rows whose owner column equals its id; ``ServicePrincipal`` is the operator
credential used by billing webhooks and schedulers and bypasses ownership.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from app.metrics import access_denied_total

logger = logging.getLogger(__name__)


class AccessDenied(Exception):
    """Caller is not allowed to perform the operation."""


class NotFoundError(LookupError):
    """Row does not exist or is not visible to the caller."""


class ConstraintViolation(Exception):
    """Write rejected by a uniqueness or check constraint."""


class PlanInUseError(ConstraintViolation):
    """Plan still has live subscriptions and cannot be removed."""


@dataclass(frozen=True)
class UserPrincipal:
    user_id: uuid.UUID

    @property
    def is_service(self) -> bool:
        return False


@dataclass(frozen=True)
class ServicePrincipal:
    name: str = "service_role"

    @property
    def is_service(self) -> bool:
        return True


Principal = UserPrincipal | ServicePrincipal


def scope_to_owner(query, owner_column, principal: Principal):
    """Restrict ``query`` to rows owned by the caller (operators see all)."""
    if principal.is_service:
        return query
    return query.filter(owner_column == principal.user_id)


def require_service(principal: Principal, action: str) -> None:
    if not principal.is_service:
        access_denied_total.labels(reason="operator_only").inc()
        logger.warning(
            "audit: operator-only action %s denied", action, extra={"user_id": principal.user_id}
        )
        raise AccessDenied(f"{action} requires operator credentials")


def require_user(principal: Principal) -> uuid.UUID:
    """Return the caller's identity; operators have none."""
    if principal.is_service:
        raise AccessDenied("operation requires a user identity")
    return principal.user_id


def check_owner(user_id: uuid.UUID, principal: Principal) -> None:
    """Reject writes targeting another identity."""
    if principal.is_service or user_id == principal.user_id:
        return
    access_denied_total.labels(reason="foreign_owner").inc()
    logger.warning(
        "audit: write for foreign owner %s denied", user_id, extra={"user_id": principal.user_id}
    )
    raise AccessDenied("cannot write rows owned by another user")


__all__ = [
    "AccessDenied",
    "NotFoundError",
    "ConstraintViolation",
    "PlanInUseError",
    "UserPrincipal",
    "ServicePrincipal",
    "Principal",
    "scope_to_owner",
    "require_service",
    "require_user",
    "check_owner",
]
