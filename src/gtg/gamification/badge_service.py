"""Badge evaluation and award with duplicate prevention and notification."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gtg.day_utils import ensure_utc, utcnow
from gtg.db.models import ActivityType, Badge, UserBadge
from gtg.db.upsert import insert_for
from gtg.gamification.criteria import (
    BadgeCriteria,
    ConsecutiveDaysCriteria,
    CriteriaContext,
    parse_criteria,
    progress_percent,
)
from gtg.gamification.stats_service import get_user_stats
from gtg.gamification.streak_service import get_streak
from gtg.redis_client import get_redis_optional

logger = logging.getLogger(__name__)


@dataclass
class BadgeProgress:
    badge: Badge
    is_unlocked: bool
    unlocked_at: datetime | None
    current: int
    target: int
    percent: float


async def _load_badges(db: AsyncSession) -> list[Badge]:
    result = await db.execute(select(Badge).order_by(Badge.display_order, Badge.id))
    return list(result.scalars().all())


async def _unlocked_map(db: AsyncSession, user_id: uuid.UUID) -> dict[int, UserBadge]:
    result = await db.execute(select(UserBadge).where(UserBadge.user_id == user_id))
    return {ub.badge_id: ub for ub in result.scalars()}


async def _build_context(
    db: AsyncSession,
    user_id: uuid.UUID,
    criteria: list[BadgeCriteria],
) -> CriteriaContext:
    stats = await get_user_stats(db, user_id)
    type_rows = await db.execute(select(ActivityType.id, ActivityType.name))
    streak = 0
    if any(isinstance(c, ConsecutiveDaysCriteria) for c in criteria):
        streak = await get_streak(db, user_id)
    return CriteriaContext(
        stats=stats,
        activity_type_names={type_id: name for type_id, name in type_rows},
        streak=streak,
    )


async def check_and_award_badges(db: AsyncSession, user_id: uuid.UUID) -> list[int]:
    """Award every badge the user now qualifies for.

    Returns ids of badges newly unlocked by this call. Inserts are no-ops on
    the (user_id, badge_id) unique key, so repeated or concurrent calls never
    duplicate an unlock, and nothing is ever revoked. Caller commits.
    """
    badges = await _load_badges(db)
    unlocked = await _unlocked_map(db, user_id)
    candidates = [(b, parse_criteria(b.criteria)) for b in badges if b.id not in unlocked]
    if not candidates:
        return []

    ctx = await _build_context(db, user_id, [c for _, c in candidates])
    awarded: list[Badge] = []
    for badge, criteria in candidates:
        if not criteria.is_eligible(ctx):
            continue
        stmt = (
            insert_for(db, UserBadge)
            .values(
                user_id=user_id,
                badge_id=badge.id,
                unlocked_at=utcnow(),
                progress={"current": criteria.current_value(ctx), "target": criteria.target},
            )
            .on_conflict_do_nothing(index_elements=["user_id", "badge_id"])
            .returning(UserBadge.id)
        )
        if (await db.execute(stmt)).scalar_one_or_none() is not None:
            awarded.append(badge)

    if awarded:
        logger.info("Awarded %d badge(s) to %s: %s", len(awarded), user_id, [b.name for b in awarded])
        await _emit_badges_earned(user_id, awarded)
    return [b.id for b in awarded]


async def _emit_badges_earned(user_id: uuid.UUID, badges: list[Badge]) -> None:
    """Publish badge-earned events for push delivery (Redis pub/sub)."""
    redis = get_redis_optional()
    if redis is None:
        return
    for badge in badges:
        try:
            await redis.publish(
                "pubsub:badge_earned",
                json.dumps({
                    "user_id": str(user_id),
                    "badge_id": badge.id,
                    "badge_name": badge.name,
                    "rarity": badge.rarity,
                }),
            )
        except Exception:
            logger.warning("Failed to publish badge_earned notification", exc_info=True)


async def award_badges_best_effort(db: AsyncSession, user_id: uuid.UUID) -> list[int]:
    """Run the badge check after a committed write without ever failing it."""
    try:
        awarded = await check_and_award_badges(db, user_id)
        await db.commit()
    except Exception:
        logger.warning("Badge check failed for %s", user_id, exc_info=True)
        await db.rollback()
        return []
    return awarded


async def get_badge_progress(db: AsyncSession, user_id: uuid.UUID) -> list[BadgeProgress]:
    """Every badge with unlock state and progress. Unlocked first, then display order."""
    badges = await _load_badges(db)
    unlocked = await _unlocked_map(db, user_id)
    parsed = {b.id: parse_criteria(b.criteria) for b in badges}
    ctx = await _build_context(db, user_id, list(parsed.values()))

    items: list[BadgeProgress] = []
    for badge in badges:
        criteria = parsed[badge.id]
        user_badge = unlocked.get(badge.id)
        current = criteria.current_value(ctx)
        target = criteria.target
        percent = 100.0 if user_badge is not None else progress_percent(current, target)
        items.append(BadgeProgress(
            badge=badge,
            is_unlocked=user_badge is not None,
            unlocked_at=ensure_utc(user_badge.unlocked_at) if user_badge else None,
            current=current,
            target=target,
            percent=percent,
        ))

    items.sort(key=lambda p: (not p.is_unlocked, p.badge.display_order))
    return items

