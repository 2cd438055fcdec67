from __future__ import annotations
import uuid
import jwt
import structlog
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from movetogether.errors import Unauthorized
from movetogether.security import decode_token

security = HTTPBearer(auto_error=False)

async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> uuid.UUID:
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Missing authorization header")
    try:
        data = decode_token(credentials.credentials)
    except jwt.PyJWTError:
        raise Unauthorized("Invalid token")
    try:
        user_id = uuid.UUID(str(data.get("sub")))
    except ValueError:
        raise Unauthorized("Invalid token subject")
    structlog.contextvars.bind_contextvars(user_id=str(user_id))
    return user_id
