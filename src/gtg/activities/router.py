"""Activity ledger endpoints: log, read, feed, likes."""

from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from gtg.activities.schemas import (
    ActivityListResponse,
    ActivityResponse,
    ActivityTypeListResponse,
    ActivityTypeResponse,
    LikeResponse,
    LogActivityRequest,
    LogActivityResponse,
)
from gtg.activities.service import (
    ActivityView,
    delete_activity,
    get_activity,
    get_feed,
    get_like_count,
    list_activity_types,
    list_user_activities,
    log_activity,
    toggle_like,
)
from gtg.auth.dependencies import get_current_user
from gtg.config import get_settings
from gtg.database import get_session
from gtg.db.models import ActivityType, User
from gtg.users.router import user_summary

router = APIRouter(prefix="/api/v1", tags=["Activities"])


def _type_response(activity_type: ActivityType) -> ActivityTypeResponse:
    return ActivityTypeResponse(id=activity_type.id, name=activity_type.name, icon=activity_type.icon)


def _activity_response(view: ActivityView) -> ActivityResponse:
    a = view.activity
    return ActivityResponse(
        id=a.id,
        user=user_summary(view.owner),
        activity_type=_type_response(a.activity_type),
        timestamp=a.timestamp,
        notes=a.notes,
        latitude=a.location_latitude,
        longitude=a.location_longitude,
        location_name=a.location_name,
        like_count=view.like_count,
        has_liked=view.has_liked,
    )


def _list_response(views: list[ActivityView]) -> ActivityListResponse:
    return ActivityListResponse(activities=[_activity_response(v) for v in views], count=len(views))


@router.get("/activity-types", response_model=ActivityTypeListResponse)
async def list_activity_types_endpoint(db: AsyncSession = Depends(get_session)):
    """The activity type catalog (public)."""
    return ActivityTypeListResponse(types=[_type_response(t) for t in await list_activity_types(db)])


@router.post("/activities", response_model=LogActivityResponse, status_code=201)
async def log_activity_endpoint(
    body: LogActivityRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Log an outing. Badges unlocked by it are returned alongside."""
    activity, awarded = await log_activity(
        db,
        user.id,
        body.activity_type_id,
        notes=body.notes,
        latitude=body.latitude,
        longitude=body.longitude,
        location_name=body.location_name,
        timestamp=body.timestamp,
    )
    # a failed badge check rolls back, which expires the caller's profile too
    await db.refresh(user)
    view = ActivityView(activity=activity, owner=user, like_count=0, has_liked=False)
    return LogActivityResponse(activity=_activity_response(view), badges_unlocked=awarded)


@router.get("/activities/feed", response_model=ActivityListResponse)
async def feed_endpoint(
    limit: int | None = Query(None, ge=1, le=100),
    before: datetime | None = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Own and followed users' activities, newest first. Page with ``before``."""
    page_size = limit or get_settings().feed_page_size
    return _list_response(await get_feed(db, user.id, limit=page_size, before=before))


@router.get("/activities/{activity_id}", response_model=ActivityResponse)
async def get_activity_endpoint(
    activity_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return _activity_response(await get_activity(db, activity_id, user.id))


@router.delete("/activities/{activity_id}", status_code=204)
async def delete_activity_endpoint(
    activity_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await delete_activity(db, activity_id, user.id)
    await db.commit()


@router.post("/activities/{activity_id}/like", response_model=LikeResponse)
async def toggle_like_endpoint(
    activity_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Like or unlike. Returns the new state."""
    liked = await toggle_like(db, activity_id, user.id)
    return LikeResponse(activity_id=activity_id, liked=liked, like_count=await get_like_count(db, activity_id))


@router.get("/users/{user_id}/activities", response_model=ActivityListResponse)
async def user_activities_endpoint(
    user_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=100),
    before: datetime | None = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """A user's activities, if the caller may see them."""
    return _list_response(await list_user_activities(db, user_id, user.id, limit=limit, before=before))
