"""Per-user statistics derived from the activity ledger, likes and follow graph.

Nothing here is stored: every snapshot is recomputed from the source tables,
so counters can never drift from the rows they describe.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gtg.config import get_settings
from gtg.day_utils import ensure_utc, local_date
from gtg.db.models import Activity, ActivityLike, ActivityType, FollowEdge, User, UserBadge
from gtg.errors import NotFoundError


@dataclass
class UserStats:
    user_id: uuid.UUID
    total_activities: int = 0
    active_days: int = 0
    activities_by_type: dict[str, int] = field(default_factory=dict)
    likes_received: int = 0
    likes_given: int = 0
    followers_count: int = 0
    following_count: int = 0
    last_activity_at: datetime | None = None
    first_activity_at: datetime | None = None
    badges_unlocked: int = 0


async def _count(db: AsyncSession, query) -> int:  # noqa: ANN001
    result = await db.execute(query)
    return int(result.scalar_one() or 0)


async def get_user_stats(db: AsyncSession, user_id: uuid.UUID, tz_name: str | None = None) -> UserStats:
    """
    Compute the stats snapshot for a user.

    A user without activities gets an all-zero snapshot.

    Raises:
        NotFoundError: If the user does not exist.
    """
    if await db.get(User, user_id) is None:
        msg = "User not found"
        raise NotFoundError(msg)
    tz_name = tz_name or get_settings().activity_day_timezone

    stats = UserStats(user_id=user_id)

    totals = await db.execute(
        select(
            func.count(Activity.id),
            func.min(Activity.timestamp),
            func.max(Activity.timestamp),
        ).where(Activity.user_id == user_id)
    )
    total, first_at, last_at = totals.one()
    stats.total_activities = int(total or 0)
    stats.first_activity_at = ensure_utc(first_at) if first_at else None
    stats.last_activity_at = ensure_utc(last_at) if last_at else None

    if stats.total_activities:
        timestamps = await db.execute(select(Activity.timestamp).where(Activity.user_id == user_id))
        stats.active_days = len({local_date(ts, tz_name) for ts in timestamps.scalars()})

        by_type = await db.execute(
            select(ActivityType.name, func.count(Activity.id))
            .join(Activity, Activity.activity_type_id == ActivityType.id)
            .where(Activity.user_id == user_id)
            .group_by(ActivityType.name)
        )
        stats.activities_by_type = {name: int(count) for name, count in by_type}

        stats.likes_received = await _count(
            db,
            select(func.count(ActivityLike.id))
            .join(Activity, ActivityLike.activity_id == Activity.id)
            .where(Activity.user_id == user_id),
        )

    stats.likes_given = await _count(db, select(func.count(ActivityLike.id)).where(ActivityLike.user_id == user_id))
    stats.followers_count = await _count(
        db, select(func.count(FollowEdge.id)).where(FollowEdge.following_id == user_id)
    )
    stats.following_count = await _count(
        db, select(func.count(FollowEdge.id)).where(FollowEdge.follower_id == user_id)
    )
    stats.badges_unlocked = await _count(db, select(func.count(UserBadge.id)).where(UserBadge.user_id == user_id))
    return stats
