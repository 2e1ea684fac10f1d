from __future__ import annotations
from typing import Any
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from codeclash.config import settings
from codeclash.security import decode_token

security = HTTPBearer(auto_error=False)

ADMIN_ROLE = "admin"

async def get_token_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict[str, Any] | None:
    """Verified access-token claims, or None when anonymous calls are allowed."""
    if credentials is None:
        if settings.auth_required:
            raise HTTPException(status_code=401, detail="Missing access token")
        return None
    try:
        data = decode_token(credentials.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if data.get("type") != "access":
        raise HTTPException(status_code=401, detail="Wrong token type")
    return data

async def get_token_subject(claims: dict[str, Any] | None = Depends(get_token_claims)) -> str | None:
    return claims.get("sub") if claims else None

async def require_token_claims(claims: dict[str, Any] | None = Depends(get_token_claims)) -> dict[str, Any]:
    """For admin-grade actions: a token is needed even when AUTH_REQUIRED is off."""
    if claims is None:
        raise HTTPException(status_code=401, detail="Missing access token")
    return claims

def is_admin(claims: dict[str, Any]) -> bool:
    return claims.get("role") == ADMIN_ROLE

def ensure_actor(subject: str | None, user_id: str) -> None:
    """A token may only act for its own user."""
    if subject is not None and subject != user_id:
        raise HTTPException(status_code=403, detail="Token does not belong to this user")
