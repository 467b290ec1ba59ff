"""Social API endpoints: follow transitions, requests, followers and following."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gtg.auth.dependencies import get_current_user
from gtg.database import get_session
from gtg.db.models import FollowRequest, User
from gtg.errors import NotAuthorizedError
from gtg.social.follow_service import (
    FollowResult,
    accept_follow_request,
    can_view_activities,
    cancel_follow_request,
    get_follow_state,
    get_request_by_id,
    list_followers,
    list_following,
    list_received_requests,
    list_sent_requests,
    reject_follow_request,
    send_follow_request,
    toggle_follow,
    unfollow,
)
from gtg.social.schemas import (
    FollowRequestListResponse,
    FollowRequestResponse,
    FollowResultResponse,
    FollowStateResponse,
    UserListResponse,
)
from gtg.users.router import user_summary
from gtg.users.service import get_user

router = APIRouter(prefix="/api/v1", tags=["Social"])


# ── Helpers ──


def _result(result: FollowResult) -> FollowResultResponse:
    return FollowResultResponse(success=result.success, state=result.state, message=result.message)


def _request_list(rows: list[tuple[FollowRequest, User]]) -> FollowRequestListResponse:
    items = [
        FollowRequestResponse(id=req.id, status=req.status, created_at=req.created_at, user=user_summary(user))
        for req, user in rows
    ]
    return FollowRequestListResponse(requests=items, count=len(items))


async def _visible_owner(db: AsyncSession, viewer: User, user_id: uuid.UUID) -> User:
    owner = await get_user(db, user_id)
    if not await can_view_activities(db, viewer.id, owner):
        msg = "This account is private"
        raise NotAuthorizedError(msg)
    return owner


# ── Follow transitions ──


@router.post("/users/{user_id}/follow", response_model=FollowResultResponse)
async def follow_endpoint(
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Follow a public account, or send a request to a private one."""
    result = await send_follow_request(db, user.id, user_id)
    await db.commit()
    return _result(result)


@router.delete("/users/{user_id}/follow", response_model=FollowResultResponse)
async def unfollow_endpoint(
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    result = await unfollow(db, user.id, user_id)
    await db.commit()
    return _result(result)


@router.post("/users/{user_id}/follow/toggle", response_model=FollowResultResponse, deprecated=True)
async def toggle_follow_endpoint(
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Follow or unfollow in one call. Private accounts need an accepted request."""
    result = await toggle_follow(db, user.id, user_id)
    await db.commit()
    return _result(result)


@router.get("/users/{user_id}/follow-state", response_model=FollowStateResponse)
async def follow_state_endpoint(
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await get_user(db, user_id)
    return FollowStateResponse(user_id=str(user_id), state=await get_follow_state(db, user.id, user_id))


# ── Follow requests ──


@router.get("/follow-requests/received", response_model=FollowRequestListResponse)
async def received_requests_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return _request_list(await list_received_requests(db, user.id))


@router.get("/follow-requests/sent", response_model=FollowRequestListResponse)
async def sent_requests_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return _request_list(await list_sent_requests(db, user.id))


@router.post("/follow-requests/{request_id}/accept", response_model=FollowResultResponse)
async def accept_request_endpoint(
    request_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Accept a request addressed to the caller."""
    request = await get_request_by_id(db, request_id)
    result = await accept_follow_request(db, request.requester_id, request.requested_id, user.id)
    await db.commit()
    return _result(result)


@router.post("/follow-requests/{request_id}/reject", response_model=FollowResultResponse)
async def reject_request_endpoint(
    request_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    request = await get_request_by_id(db, request_id)
    result = await reject_follow_request(db, request.requester_id, request.requested_id, user.id)
    await db.commit()
    return _result(result)


@router.delete("/follow-requests/{request_id}", response_model=FollowResultResponse)
async def cancel_request_endpoint(
    request_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Withdraw a request the caller sent."""
    request = await get_request_by_id(db, request_id)
    result = await cancel_follow_request(db, request.requester_id, request.requested_id, user.id)
    await db.commit()
    return _result(result)


# ── Graph ──


@router.get("/users/{user_id}/followers", response_model=UserListResponse)
async def followers_endpoint(
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    owner = await _visible_owner(db, user, user_id)
    users = await list_followers(db, owner.id)
    return UserListResponse(users=[user_summary(u) for u in users], count=len(users))


@router.get("/users/{user_id}/following", response_model=UserListResponse)
async def following_endpoint(
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    owner = await _visible_owner(db, user, user_id)
    users = await list_following(db, owner.id)
    return UserListResponse(users=[user_summary(u) for u in users], count=len(users))
