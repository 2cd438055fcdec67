from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Any
import jwt
from movetogether.config import settings

ACCESS_TTL_MIN = 60

def make_access_token(sub: str, ttl_min: int = ACCESS_TTL_MIN) -> str:
    """Mint a platform-style access token. Used by tests and local tooling; production tokens come from the auth service."""
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": sub,
        "role": "authenticated",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl_min)).timestamp()),
    }
    if settings.jwt_audience:
        payload["aud"] = settings.jwt_audience
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)

def decode_token(token: str) -> dict[str, Any]:
    options = {"require": ["sub", "exp"]}
    if settings.jwt_audience:
        return jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience, options=options,
        )
    return jwt.decode(
        token, settings.jwt_secret, algorithms=[settings.jwt_algorithm],
        options={**options, "verify_aud": False},
    )
