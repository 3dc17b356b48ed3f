"""Admin bearer tokens — HS256 JWTs signed with the configured admin secret."""

from __future__ import annotations

import time
from typing import Any

import jwt
from fastapi import HTTPException, Request, status

TOKEN_AUDIENCE = "ideaqueue-admin"
TOKEN_ALGORITHM = "HS256"


def issue_admin_token(secret: str, ttl_minutes: int = 720, subject: str = "admin") -> str:
    """Sign an admin token valid for *ttl_minutes*."""
    if not secret:
        raise ValueError("admin secret is not configured")
    iat = int(time.time())
    payload = {
        "sub": subject,
        "iat": iat,
        "exp": iat + ttl_minutes * 60,
        "aud": TOKEN_AUDIENCE,
    }
    return jwt.encode(payload, secret, algorithm=TOKEN_ALGORITHM)


def verify_admin_token(token: str, secret: str) -> dict[str, Any]:
    """Decode and verify a token.  Raises jwt.InvalidTokenError on failure."""
    return jwt.decode(token, secret, algorithms=[TOKEN_ALGORITHM], audience=TOKEN_AUDIENCE)


def require_admin(request: Request) -> dict[str, Any]:
    """FastAPI dependency guarding every /api/admin route."""
    secret = request.app.state.config.server.admin_secret
    if not secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin secret is not configured",
        )
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    try:
        return verify_admin_token(token.strip(), secret)
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized"
        ) from None
