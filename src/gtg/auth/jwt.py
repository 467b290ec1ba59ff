"""
Bearer token verification for the external auth provider.

The provider signs HS256 access tokens with a shared project secret. The
``sub`` claim carries the stable user UUID that every per-user operation
takes as input; this service never issues tokens for real clients.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from gtg.config import get_settings


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify signature, expiry and audience of a provider token.

    Returns:
        Decoded payload dict.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or lacks a usable subject.
    """
    settings = get_settings()
    payload: dict[str, Any] = jwt.decode(
        token,
        settings.auth_jwt_secret,
        algorithms=[settings.auth_jwt_algorithm],
        audience=settings.auth_jwt_audience,
        options={"require": ["exp", "sub"]},
    )
    try:
        uuid.UUID(str(payload["sub"]))
    except ValueError as e:
        msg = "Subject is not a valid user id"
        raise jwt.InvalidTokenError(msg) from e
    return payload


def create_access_token(user_id: uuid.UUID, *, expires_in_minutes: int = 60, email: str | None = None) -> str:
    """Mint a token shaped like the provider's (local development and tests)."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "aud": settings.auth_jwt_audience,
        "role": "authenticated",
        "iat": now,
        "exp": now + timedelta(minutes=expires_in_minutes),
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.auth_jwt_secret, algorithm=settings.auth_jwt_algorithm)
