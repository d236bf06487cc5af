from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from app.controllers.common import ERROR_RESPONSES, UtcDatetime, changes_from, run_in_session
from app.dependencies import rate_limit
from app.services import profiles as profile_service
from app.services.access import Principal, require_user

router = APIRouter(prefix="/profile", tags=["profiles"])


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    full_name: str | None = None
    avatar_url: str | None = None
    username: str | None = None
    created_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None


class ProfileCreateRequest(BaseModel):
    id: uuid.UUID
    email: str = Field(min_length=3)
    full_name: str | None = None
    avatar_url: str | None = None
    username: str | None = None


class ProfileUpdateRequest(BaseModel):
    full_name: str | None = None
    avatar_url: str | None = None
    username: str | None = Field(None, min_length=1)


@router.get("", response_model=ProfileResponse, responses=ERROR_RESPONSES)
async def get_own_profile(principal: Principal = Depends(rate_limit)):
    profile = await run_in_session(
        lambda db: profile_service.get_profile(db, principal, profile_id=require_user(principal))
    )
    return ProfileResponse.model_validate(profile)


@router.post("", response_model=ProfileResponse, status_code=201, responses=ERROR_RESPONSES)
async def create_own_profile(body: ProfileCreateRequest, principal: Principal = Depends(rate_limit)):
    data = body.model_dump()
    profile_id = data.pop("id")
    profile = await run_in_session(
        lambda db: profile_service.create_profile(db, principal, profile_id=profile_id, **data)
    )
    return ProfileResponse.model_validate(profile)


@router.patch("", response_model=ProfileResponse, responses=ERROR_RESPONSES)
async def update_own_profile(body: ProfileUpdateRequest, principal: Principal = Depends(rate_limit)):
    profile = await run_in_session(
        lambda db: profile_service.update_profile(
            db, principal, profile_id=require_user(principal), changes=changes_from(body)
        )
    )
    return ProfileResponse.model_validate(profile)
