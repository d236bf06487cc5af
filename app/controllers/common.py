"""Helpers shared by the routers: session handling and error mapping."""
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Annotated, Any, Callable, TypeVar

from fastapi import HTTPException
from pydantic import AfterValidator
from sqlalchemy.orm import Session

from app import db as db_module
from app.dependencies import ErrorResponse
from app.models import ErrorCode
from app.services.access import (
    AccessDenied,
    ConstraintViolation,
    NotFoundError,
    PlanInUseError,
)
from app.services.subscriptions import ensure_utc

T = TypeVar("T")

UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


def http_error(status: int, code: ErrorCode, message: str) -> HTTPException:
    err = ErrorResponse(code=code, message=message)
    return HTTPException(status_code=status, detail=err.model_dump())


async def run_in_session(fn: Callable[[Session], T]) -> T:
    """Run ``fn`` with a fresh session in a worker thread.

    Service exceptions become HTTP errors; anything else propagates.
    """

    def _db_call() -> T:
        with db_module.SessionLocal() as db:
            return fn(db)

    try:
        return await asyncio.to_thread(_db_call)
    except AccessDenied as exc:
        raise http_error(403, ErrorCode.FORBIDDEN, str(exc)) from exc
    except NotFoundError as exc:
        raise http_error(404, ErrorCode.NOT_FOUND, str(exc)) from exc
    except PlanInUseError as exc:
        raise http_error(409, ErrorCode.PLAN_IN_USE, str(exc)) from exc
    except ConstraintViolation as exc:
        raise http_error(409, ErrorCode.CONFLICT, str(exc)) from exc
    except ValueError as exc:
        raise http_error(400, ErrorCode.BAD_REQUEST, str(exc)) from exc


def changes_from(body: Any) -> dict[str, Any]:
    """Fields the client actually sent in a PATCH body."""
    return body.model_dump(exclude_unset=True)


ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}
