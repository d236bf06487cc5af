from __future__ import annotations

import time
import uuid

import jwt

from app.config import Settings


def make_token(
    user_id: uuid.UUID | str | None = None,
    *,
    role: str = "authenticated",
    secret: str | None = None,
    expires_in: int = 3600,
) -> str:
    settings = Settings()
    now = int(time.time())
    claims: dict[str, object] = {"role": role, "iat": now, "exp": now + expires_in}
    if user_id is not None:
        claims["sub"] = str(user_id)
    return jwt.encode(claims, secret or settings.jwt_secret, algorithm="HS256")


def api_headers(api_ver: str = "v1", api_key: str | None = None) -> dict[str, str]:
    return {"X-API-Key": api_key or Settings().api_key, "X-API-Ver": api_ver}


def user_headers(user_id: uuid.UUID | str, **kwargs) -> dict[str, str]:
    return api_headers() | {"Authorization": f"Bearer {make_token(user_id, **kwargs)}"}


def service_headers() -> dict[str, str]:
    return api_headers() | {"Authorization": f"Bearer {make_token(role='service_role')}"}
