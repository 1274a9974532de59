"""FastAPI authentication dependencies."""

from __future__ import annotations

from dataclasses import dataclass

import jwt
from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from levelup.auth.jwt import verify_token

_bearer = HTTPBearer()


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str | None = None
    display_name: str | None = None


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
) -> CurrentUser:
    """Verify the bearer token and return the learner identity. Raises 401 on failure."""
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    metadata = payload.get("user_metadata") or {}
    return CurrentUser(
        id=str(payload["sub"]),
        email=payload.get("email"),
        display_name=metadata.get("full_name") or metadata.get("name"),
    )
