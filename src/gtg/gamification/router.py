"""Gamification API endpoints: stats, level, badges, streak."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gtg.auth.dependencies import get_current_user
from gtg.database import get_session
from gtg.db.models import Badge, User
from gtg.errors import NotAuthorizedError
from gtg.gamification.badge_service import check_and_award_badges, get_badge_progress
from gtg.gamification.progression import Milestone, get_level_info, load_milestones
from gtg.gamification.schemas import (
    BadgeCheckResponse,
    BadgeProgressListResponse,
    BadgeProgressResponse,
    BadgeResponse,
    LevelInfoResponse,
    MilestoneListResponse,
    MilestoneResponse,
    StreakResponse,
    UserStatsResponse,
)
from gtg.gamification.stats_service import get_user_stats
from gtg.gamification.streak_service import get_streak
from gtg.social.follow_service import can_view_activities
from gtg.users.service import get_user

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


def _milestone(m: Milestone | None) -> MilestoneResponse | None:
    if m is None:
        return None
    return MilestoneResponse(level=m.level, name=m.name, description=m.description, icon=m.icon)


def _badge(b: Badge) -> BadgeResponse:
    return BadgeResponse(
        id=b.id,
        name=b.name,
        description=b.description,
        category=b.category,
        icon=b.icon,
        rarity=b.rarity,
    )


async def _check_visible(db: AsyncSession, viewer: User, user_id: uuid.UUID) -> None:
    """Private users' progress is visible to themselves and their followers."""
    owner = await get_user(db, user_id)
    if not await can_view_activities(db, viewer.id, owner):
        msg = "This account is private"
        raise NotAuthorizedError(msg)


# ── Public catalog ──


@router.get("/milestones", response_model=MilestoneListResponse)
async def list_milestones(db: AsyncSession = Depends(get_session)):
    """The named level milestones."""
    return MilestoneListResponse(milestones=[_milestone(m) for m in await load_milestones(db)])


# ── Per-user ──


@router.get("/users/{user_id}/stats", response_model=UserStatsResponse)
async def user_stats_endpoint(
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await _check_visible(db, user, user_id)
    stats = await get_user_stats(db, user_id)
    return UserStatsResponse(
        user_id=stats.user_id,
        total_activities=stats.total_activities,
        active_days=stats.active_days,
        activities_by_type=stats.activities_by_type,
        likes_received=stats.likes_received,
        likes_given=stats.likes_given,
        followers_count=stats.followers_count,
        following_count=stats.following_count,
        last_activity_at=stats.last_activity_at,
        first_activity_at=stats.first_activity_at,
        badges_unlocked=stats.badges_unlocked,
    )


@router.get("/users/{user_id}/level", response_model=LevelInfoResponse)
async def user_level_endpoint(
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await _check_visible(db, user, user_id)
    info = await get_level_info(db, user_id)
    return LevelInfoResponse(
        total_activities=info.total_activities,
        current_level=info.current_level,
        current_milestone=_milestone(info.current_milestone),
        next_milestone=_milestone(info.next_milestone),
        activities_to_next_milestone=info.activities_to_next_milestone,
        progress_percent=info.progress_percent,
    )


@router.get("/users/{user_id}/badges", response_model=BadgeProgressListResponse)
async def user_badges_endpoint(
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Every badge with the user's unlock state and progress."""
    await _check_visible(db, user, user_id)
    progress = await get_badge_progress(db, user_id)
    items = [
        BadgeProgressResponse(
            badge=_badge(p.badge),
            is_unlocked=p.is_unlocked,
            unlocked_at=p.unlocked_at,
            current=p.current,
            target=p.target,
            percent=p.percent,
        )
        for p in progress
    ]
    return BadgeProgressListResponse(
        badges=items,
        total_available=len(items),
        total_unlocked=sum(1 for p in progress if p.is_unlocked),
    )


@router.post("/me/badges/check", response_model=BadgeCheckResponse)
async def check_badges_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Evaluate all badges for the caller and unlock any newly earned."""
    awarded = await check_and_award_badges(db, user.id)
    await db.commit()
    if not awarded:
        return BadgeCheckResponse(newly_unlocked=[])
    result = await db.execute(select(Badge).where(Badge.id.in_(awarded)).order_by(Badge.display_order))
    return BadgeCheckResponse(newly_unlocked=[_badge(b) for b in result.scalars()])


@router.get("/users/{user_id}/streak", response_model=StreakResponse)
async def user_streak_endpoint(
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await _check_visible(db, user, user_id)
    return StreakResponse(user_id=user_id, current_streak=await get_streak(db, user_id))
