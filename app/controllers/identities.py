from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict, Field

from app.controllers.common import ERROR_RESPONSES, UtcDatetime, run_in_session
from app.dependencies import rate_limit
from app.services import identities as identity_service
from app.services.access import Principal

router = APIRouter(prefix="/identities", tags=["identities"])


class IdentityCreateRequest(BaseModel):
    email: str = Field(min_length=3)
    id: uuid.UUID | None = None
    user_meta_data: dict[str, Any] = Field(default_factory=dict)


class IdentityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    created_at: UtcDatetime | None = None


@router.post("", response_model=IdentityResponse, status_code=201, responses=ERROR_RESPONSES)
async def create_identity(body: IdentityCreateRequest, principal: Principal = Depends(rate_limit)):
    identity = await run_in_session(
        lambda db: identity_service.create_identity(
            db,
            principal,
            email=body.email,
            meta=body.user_meta_data,
            identity_id=body.id,
        )
    )
    return IdentityResponse.model_validate(identity)


@router.delete("/{identity_id}", status_code=204, responses=ERROR_RESPONSES)
async def delete_identity(identity_id: uuid.UUID, principal: Principal = Depends(rate_limit)):
    await run_in_session(
        lambda db: identity_service.delete_identity(db, principal, identity_id=identity_id)
    )
    return Response(status_code=204)
