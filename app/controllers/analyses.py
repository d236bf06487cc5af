from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict, Field

from app.controllers.common import ERROR_RESPONSES, UtcDatetime, changes_from, run_in_session
from app.dependencies import rate_limit
from app.services import analyses as analysis_service
from app.services.access import Principal, require_user

router = APIRouter(prefix="/analyses", tags=["analyses"])


class AnalysisResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    analysis_data: dict[str, Any]
    overall_score: int | None = None
    image_url: str | None = None
    created_at: UtcDatetime | None = None


class AnalysisCreateRequest(BaseModel):
    analysis_data: dict[str, Any]
    overall_score: int | None = Field(None, ge=0)
    image_url: str | None = None


class AnalysisUpdateRequest(BaseModel):
    analysis_data: dict[str, Any] | None = None
    overall_score: int | None = Field(None, ge=0)
    image_url: str | None = None


@router.get("", response_model=list[AnalysisResponse], responses=ERROR_RESPONSES)
async def list_analyses(
    limit: int = Query(50, ge=1, le=200), principal: Principal = Depends(rate_limit)
):
    rows = await run_in_session(
        lambda db: analysis_service.list_analyses(db, principal, limit=limit)
    )
    return [AnalysisResponse.model_validate(r) for r in rows]


@router.post("", response_model=AnalysisResponse, status_code=201, responses=ERROR_RESPONSES)
async def create_analysis(body: AnalysisCreateRequest, principal: Principal = Depends(rate_limit)):
    record = await run_in_session(
        lambda db: analysis_service.create_analysis(
            db, principal, user_id=require_user(principal), **body.model_dump()
        )
    )
    return AnalysisResponse.model_validate(record)


@router.get("/{analysis_id}", response_model=AnalysisResponse, responses=ERROR_RESPONSES)
async def get_analysis(analysis_id: uuid.UUID, principal: Principal = Depends(rate_limit)):
    record = await run_in_session(
        lambda db: analysis_service.get_analysis(db, principal, analysis_id=analysis_id)
    )
    return AnalysisResponse.model_validate(record)


@router.patch("/{analysis_id}", response_model=AnalysisResponse, responses=ERROR_RESPONSES)
async def update_analysis(
    analysis_id: uuid.UUID, body: AnalysisUpdateRequest, principal: Principal = Depends(rate_limit)
):
    record = await run_in_session(
        lambda db: analysis_service.update_analysis(
            db, principal, analysis_id=analysis_id, changes=changes_from(body)
        )
    )
    return AnalysisResponse.model_validate(record)


@router.delete("/{analysis_id}", status_code=204, responses=ERROR_RESPONSES)
async def delete_analysis(analysis_id: uuid.UUID, principal: Principal = Depends(rate_limit)):
    await run_in_session(
        lambda db: analysis_service.delete_analysis(db, principal, analysis_id=analysis_id)
    )
    return Response(status_code=204)
