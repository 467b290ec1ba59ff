"""Activity ledger and likes."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from gtg.config import get_settings
from gtg.day_utils import day_bounds, ensure_utc, local_date, utcnow
from gtg.db.models import Activity, ActivityLike, ActivityType, FollowEdge, User
from gtg.db.upsert import insert_for
from gtg.errors import NotAuthorizedError, NotFoundError, ValidationError
from gtg.gamification.badge_service import award_badges_best_effort
from gtg.social.follow_service import can_view_activities

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 1000
FUTURE_TOLERANCE = timedelta(minutes=5)


@dataclass
class ActivityView:
    """Activity joined with its owner and like summary for the viewer."""

    activity: Activity
    owner: User
    like_count: int
    has_liked: bool


def validate_coordinates(latitude: float | None, longitude: float | None) -> None:
    """Both or neither, and within range."""
    if latitude is None and longitude is None:
        return
    if latitude is None or longitude is None:
        msg = "Latitude and longitude must be provided together"
        raise ValidationError(msg)
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        msg = "Invalid coordinates"
        raise ValidationError(msg)


async def count_activities_on_day(db: AsyncSession, user_id: uuid.UUID, moment: datetime, tz_name: str) -> int:
    start, end = day_bounds(local_date(moment, tz_name), tz_name)
    result = await db.execute(
        select(func.count(Activity.id)).where(
            Activity.user_id == user_id,
            Activity.timestamp >= start,
            Activity.timestamp < end,
        )
    )
    return result.scalar_one()


async def log_activity(
    db: AsyncSession,
    user_id: uuid.UUID,
    activity_type_id: int,
    notes: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
    location_name: str | None = None,
    timestamp: datetime | None = None,
) -> tuple[Activity, list[int]]:
    """
    Record an activity, then run the badge check.

    The activity is committed before badges are evaluated; a failing badge
    check is logged and never undoes the activity.

    Returns:
        (activity, ids of badges newly unlocked).

    Raises:
        ValidationError: Bad coordinates, unknown type, future timestamp or daily cap reached.
    """
    settings = get_settings()
    validate_coordinates(latitude, longitude)
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        msg = f"Notes must be at most {MAX_NOTES_LENGTH} characters"
        raise ValidationError(msg)
    if await db.get(ActivityType, activity_type_id) is None:
        msg = "Unknown activity type"
        raise ValidationError(msg)

    now = utcnow()
    moment = ensure_utc(timestamp) if timestamp else now
    if moment > now + FUTURE_TOLERANCE:
        msg = "Activity timestamp cannot be in the future"
        raise ValidationError(msg)

    cap = settings.activity_daily_cap
    if await count_activities_on_day(db, user_id, moment, settings.activity_day_timezone) >= cap:
        msg = f"Daily limit reached! You can only log {cap} activities per day."
        raise ValidationError(msg)

    activity = Activity(
        user_id=user_id,
        activity_type_id=activity_type_id,
        timestamp=moment,
        notes=notes.strip() if notes else None,
        location_latitude=latitude,
        location_longitude=longitude,
        location_name=location_name,
    )
    db.add(activity)
    await db.commit()
    logger.info("Activity %s logged by %s", activity.id, user_id)

    awarded = await award_badges_best_effort(db, user_id)
    # reload: a failed badge check rolls back and expires the session
    await db.refresh(activity)
    return activity, awarded


async def _get_activity_row(db: AsyncSession, activity_id: uuid.UUID) -> tuple[Activity, User]:
    result = await db.execute(
        select(Activity, User).join(User, Activity.user_id == User.id).where(Activity.id == activity_id)
    )
    row = result.first()
    if row is None:
        msg = "Activity not found"
        raise NotFoundError(msg)
    return row.Activity, row.User


async def delete_activity(db: AsyncSession, activity_id: uuid.UUID, actor_id: uuid.UUID) -> None:
    """Owner-only delete. Unlocked badges stay unlocked."""
    activity, _ = await _get_activity_row(db, activity_id)
    if activity.user_id != actor_id:
        msg = "You can only delete your own activities"
        raise NotAuthorizedError(msg)
    await db.delete(activity)
    await db.flush()


async def _like_summary(
    db: AsyncSession,
    activity_ids: list[uuid.UUID],
    viewer_id: uuid.UUID,
) -> tuple[dict[uuid.UUID, int], set[uuid.UUID]]:
    if not activity_ids:
        return {}, set()
    counts = await db.execute(
        select(ActivityLike.activity_id, func.count(ActivityLike.id))
        .where(ActivityLike.activity_id.in_(activity_ids))
        .group_by(ActivityLike.activity_id)
    )
    liked = await db.execute(
        select(ActivityLike.activity_id).where(
            ActivityLike.activity_id.in_(activity_ids),
            ActivityLike.user_id == viewer_id,
        )
    )
    return {aid: int(n) for aid, n in counts}, set(liked.scalars())


async def _to_views(db: AsyncSession, rows: list[tuple[Activity, User]], viewer_id: uuid.UUID) -> list[ActivityView]:
    counts, liked = await _like_summary(db, [a.id for a, _ in rows], viewer_id)
    return [
        ActivityView(activity=a, owner=u, like_count=counts.get(a.id, 0), has_liked=a.id in liked)
        for a, u in rows
    ]


async def get_activity(db: AsyncSession, activity_id: uuid.UUID, viewer_id: uuid.UUID) -> ActivityView:
    activity, owner = await _get_activity_row(db, activity_id)
    if not await can_view_activities(db, viewer_id, owner):
        msg = "This account is private"
        raise NotAuthorizedError(msg)
    return (await _to_views(db, [(activity, owner)], viewer_id))[0]


async def list_user_activities(
    db: AsyncSession,
    owner_id: uuid.UUID,
    viewer_id: uuid.UUID,
    limit: int = 50,
    before: datetime | None = None,
) -> list[ActivityView]:
    """A user's activities, newest first, if the viewer may see them."""
    owner = await db.get(User, owner_id)
    if owner is None:
        msg = "User not found"
        raise NotFoundError(msg)
    if not await can_view_activities(db, viewer_id, owner):
        msg = "This account is private"
        raise NotAuthorizedError(msg)

    query = select(Activity).where(Activity.user_id == owner_id)
    if before is not None:
        query = query.where(Activity.timestamp < ensure_utc(before))
    result = await db.execute(query.order_by(Activity.timestamp.desc()).limit(limit))
    return await _to_views(db, [(a, owner) for a in result.scalars()], viewer_id)


async def get_feed(
    db: AsyncSession,
    viewer_id: uuid.UUID,
    limit: int = 50,
    before: datetime | None = None,
) -> list[ActivityView]:
    """Activities of followed users plus the viewer's own, newest first."""
    followed = select(FollowEdge.following_id).where(FollowEdge.follower_id == viewer_id)
    query = (
        select(Activity, User)
        .join(User, Activity.user_id == User.id)
        .where(or_(Activity.user_id == viewer_id, Activity.user_id.in_(followed)))
    )
    if before is not None:
        query = query.where(Activity.timestamp < ensure_utc(before))
    result = await db.execute(query.order_by(Activity.timestamp.desc()).limit(limit))
    return await _to_views(db, [(row.Activity, row.User) for row in result], viewer_id)


async def toggle_like(db: AsyncSession, activity_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    """
    Like or unlike an activity. Returns the new liked state.

    A concurrent duplicate like is absorbed by the unique key and reported as liked.
    After a new like, badges are checked for both the liker and the owner.
    """
    activity, owner = await _get_activity_row(db, activity_id)
    if not await can_view_activities(db, user_id, owner):
        msg = "This account is private"
        raise NotAuthorizedError(msg)

    removed = await db.execute(
        delete(ActivityLike).where(
            ActivityLike.activity_id == activity_id,
            ActivityLike.user_id == user_id,
        )
    )
    if removed.rowcount:
        await db.commit()
        return False

    stmt = (
        insert_for(db, ActivityLike)
        .values(activity_id=activity_id, user_id=user_id)
        .on_conflict_do_nothing(index_elements=["activity_id", "user_id"])
    )
    await db.execute(stmt)
    await db.commit()

    owner_id = activity.user_id
    await award_badges_best_effort(db, user_id)
    if owner_id != user_id:
        await award_badges_best_effort(db, owner_id)
    return True


async def get_like_count(db: AsyncSession, activity_id: uuid.UUID) -> int:
    result = await db.execute(select(func.count(ActivityLike.id)).where(ActivityLike.activity_id == activity_id))
    return result.scalar_one()


async def list_activity_types(db: AsyncSession) -> list[ActivityType]:
    result = await db.execute(select(ActivityType).order_by(ActivityType.id))
    return list(result.scalars().all())
