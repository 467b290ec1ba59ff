"""User profile endpoints under /api/v1/users."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from gtg.auth.dependencies import get_current_user, get_current_user_id
from gtg.database import get_session
from gtg.db.models import User
from gtg.social.follow_service import (
    can_view_activities,
    get_follow_state,
    get_follower_count,
    get_following_count,
)
from gtg.users.schemas import (
    CreateProfileRequest,
    ProfileUpdateRequest,
    PublicUserResponse,
    UserResponse,
    UserSearchResponse,
    UserSummary,
)
from gtg.users.service import create_profile, delete_account, get_user, search_users, update_profile

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        profile_picture_url=user.profile_picture_url,
        is_private=user.is_private,
        created_at=user.created_at,
    )


def user_summary(user: User) -> UserSummary:
    return UserSummary(
        id=user.id,
        username=user.username,
        profile_picture_url=user.profile_picture_url,
        is_private=user.is_private,
    )


# ---------------------------------------------------------------------------
# Own profile
# ---------------------------------------------------------------------------


@router.post("/me", response_model=UserResponse, status_code=201)
async def create_my_profile(
    body: CreateProfileRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Create the profile for the authenticated identity (first sign-in)."""
    user = await create_profile(db, user_id, body.username, email=body.email, is_private=body.is_private)
    await db.commit()
    return _user_response(user)


@router.get("/me", response_model=UserResponse)
async def get_profile(
    user: User = Depends(get_current_user),
) -> UserResponse:
    """Get own full profile."""
    return _user_response(user)


@router.patch("/me", response_model=UserResponse)
async def update_my_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Update username, privacy or profile picture."""
    updated = await update_profile(
        db,
        user,
        username=body.username,
        is_private=body.is_private,
        profile_picture_url=body.profile_picture_url,
    )
    await db.commit()
    return _user_response(updated)


@router.delete("/me", status_code=204)
async def delete_my_account(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> None:
    """Delete the account and everything it owns."""
    await delete_account(db, user.id)
    await db.commit()
    logger.info("account_deleted_via_api", user_id=str(user.id))


# ---------------------------------------------------------------------------
# Other users
# ---------------------------------------------------------------------------


@router.get("/search", response_model=UserSearchResponse)
async def search_users_endpoint(
    q: str = Query(..., min_length=1, max_length=50),
    limit: int = Query(20, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserSearchResponse:
    users = await search_users(db, q, limit=limit)
    return UserSearchResponse(users=[user_summary(u) for u in users if u.id != user.id])


@router.get("/{user_id}", response_model=PublicUserResponse)
async def get_user_profile(
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> PublicUserResponse:
    """Public view of a profile, with the caller's follow state."""
    target = await get_user(db, user_id)
    return PublicUserResponse(
        id=target.id,
        username=target.username,
        profile_picture_url=target.profile_picture_url,
        is_private=target.is_private,
        followers_count=await get_follower_count(db, target.id),
        following_count=await get_following_count(db, target.id),
        follow_state=await get_follow_state(db, user.id, target.id),
        can_view_activities=await can_view_activities(db, user.id, target),
    )
