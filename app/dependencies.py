from __future__ import annotations

import logging
import uuid
from typing import NoReturn

import jwt
import redis.asyncio as redis
from redis.exceptions import RedisError
from fastapi import Depends, Header, HTTPException, Request
from pydantic import BaseModel

from app.config import Settings
from app.models import ErrorCode
from app.services.access import Principal, ServicePrincipal, UserPrincipal

settings = Settings()
redis_client = redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)

SERVICE_ROLE = "service_role"

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    code: str
    message: str


def _raise(status: int, code: ErrorCode, message: str) -> NoReturn:
    err = ErrorResponse(code=code, message=message)
    raise HTTPException(status_code=status, detail=err.model_dump())


async def require_api_headers(
    x_api_key: str = Header(..., alias="X-API-Key"),
    x_api_ver: str | None = Header(None, alias="X-API-Ver"),
) -> None:
    if x_api_ver is None:
        _raise(426, ErrorCode.UPGRADE_REQUIRED, "Missing API version")

    if x_api_ver != "v1":
        _raise(426, ErrorCode.UPGRADE_REQUIRED, "Invalid API version")

    if x_api_key != settings.api_key:
        _raise(401, ErrorCode.UNAUTHORIZED, "Invalid API key")


def decode_access_token(token: str) -> Principal:
    """Map a signed access token to the caller's principal."""
    claims = jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        options={"require": ["role"], "verify_aud": False},
    )
    if claims["role"] == SERVICE_ROLE:
        return ServicePrincipal()
    sub = claims.get("sub")
    if not sub:
        raise jwt.InvalidTokenError("token has no subject")
    try:
        return UserPrincipal(user_id=uuid.UUID(str(sub)))
    except ValueError as exc:
        raise jwt.InvalidTokenError("subject is not a UUID") from exc


async def get_principal(
    _: None = Depends(require_api_headers),
    authorization: str | None = Header(None, alias="Authorization"),
) -> Principal:
    if not authorization:
        _raise(401, ErrorCode.UNAUTHORIZED, "Missing access token")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        _raise(401, ErrorCode.UNAUTHORIZED, "Malformed authorization header")
    try:
        return decode_access_token(token.strip())
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(
            status_code=401,
            detail=ErrorResponse(code=ErrorCode.UNAUTHORIZED, message="Expired access token").model_dump(),
        ) from exc
    except jwt.InvalidTokenError as exc:
        logger.warning("audit: rejected access token: %s", exc)
        raise HTTPException(
            status_code=401,
            detail=ErrorResponse(code=ErrorCode.UNAUTHORIZED, message="Invalid access token").model_dump(),
        ) from exc


def _client_ip(request: Request) -> str:
    client_host = request.client.host if request.client else ""
    ip = client_host
    xff = request.headers.get("X-Forwarded-For")
    if xff and client_host in settings.trusted_proxies:
        forwarded = [h.strip() for h in xff.split(",") if h.strip()]
        proxies = forwarded[1:] + [client_host]
        if forwarded and all(p in settings.trusted_proxies for p in proxies):
            ip = forwarded[0]
    return ip


async def _throttle(request: Request, principal_key: str | None) -> None:
    """Fixed one-minute windows per client IP and per principal."""
    ip_key = f"rate:ip:{_client_ip(request)}"
    try:
        pipe = redis_client.pipeline()
        pipe.incr(ip_key)
        pipe.expire(ip_key, 60)
        if principal_key:
            pipe.incr(principal_key)
            pipe.expire(principal_key, 60)
        results = await pipe.execute()
    except RedisError as exc:
        logger.exception("Redis unavailable for rate limiting: %s", exc)
        err = ErrorResponse(
            code=ErrorCode.SERVICE_UNAVAILABLE, message="Rate limiter unavailable"
        )
        raise HTTPException(status_code=503, detail=err.model_dump()) from exc

    ip_count = results[0]
    principal_count = results[2] if principal_key else 0
    if (
        ip_count > settings.rate_limit_ip_per_min
        or principal_count > settings.rate_limit_user_per_min
    ):
        _raise(429, ErrorCode.TOO_MANY_REQUESTS, "Rate limit exceeded")


async def rate_limit(request: Request, principal: Principal = Depends(get_principal)) -> Principal:
    """Authenticated endpoints: throttle by IP and by caller."""
    key = "rate:service" if principal.is_service else f"rate:user:{principal.user_id}"
    await _throttle(request, key)
    return principal


async def rate_limit_anonymous(request: Request, _: None = Depends(require_api_headers)) -> None:
    """Public endpoints that only need the API key."""
    await _throttle(request, None)
