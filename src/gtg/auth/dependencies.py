"""FastAPI authentication dependencies."""

from __future__ import annotations

import uuid

import jwt
from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from gtg.auth.jwt import verify_token
from gtg.database import get_session
from gtg.db.models import User
from gtg.middleware.request_context import bind_caller

_bearer = HTTPBearer()


async def get_current_user_id(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
) -> uuid.UUID:
    """
    Verify the bearer token and return the provider's user id.

    Does not require a profile row, so it also serves the profile-creation route.
    The id is bound to the request log context.
    """
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    user_id = uuid.UUID(str(payload["sub"]))
    bind_caller(request, user_id)
    return user_id


async def get_current_user(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Return the profile of the authenticated caller. 401 if it was never created."""
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User profile not found")
    return user
