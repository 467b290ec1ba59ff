"""Daily activity streaks: consecutive calendar days with at least one activity."""

from __future__ import annotations

import uuid
from datetime import date, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gtg.config import get_settings
from gtg.day_utils import day_bounds, local_date
from gtg.day_utils import today as local_today
from gtg.db.models import Activity


async def has_activity_on(db: AsyncSession, user_id: uuid.UUID, day: date, tz_name: str) -> bool:
    """True if the user logged anything on ``day`` in ``tz_name``."""
    start, end = day_bounds(day, tz_name)
    result = await db.execute(
        select(Activity.id)
        .where(
            Activity.user_id == user_id,
            Activity.timestamp >= start,
            Activity.timestamp < end,
        )
        .limit(1)
    )
    return result.first() is not None


async def get_streak(
    db: AsyncSession,
    user_id: uuid.UUID,
    today: date | None = None,
    tz_name: str | None = None,
) -> int:
    """Current streak length in days.

    0 when the latest activity is older than yesterday. Otherwise counts
    back from the latest active day (today or yesterday) until the first
    day without an activity, so a run that ended yesterday is still live.
    """
    tz_name = tz_name or get_settings().activity_day_timezone
    today = today or local_today(tz_name)

    result = await db.execute(select(func.max(Activity.timestamp)).where(Activity.user_id == user_id))
    latest = result.scalar_one_or_none()
    if latest is None:
        return 0

    latest_day = min(local_date(latest, tz_name), today)
    if latest_day < today - timedelta(days=1):
        return 0

    streak = 0
    check_day = latest_day
    while await has_activity_on(db, user_id, check_day, tz_name):
        streak += 1
        check_day -= timedelta(days=1)
    return streak
