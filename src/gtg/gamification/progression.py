"""Level and milestone computation.

A user's level is their activity count (minimum 1). Milestones are named
flavor thresholds from the ``level_milestones`` catalog; they never gate
anything.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gtg.db.models import LevelMilestone
from gtg.gamification.stats_service import get_user_stats


@dataclass(frozen=True)
class Milestone:
    level: int
    name: str
    description: str = ""
    icon: str = ""


@dataclass
class LevelInfo:
    total_activities: int
    current_level: int
    current_milestone: Milestone | None
    next_milestone: Milestone | None
    activities_to_next_milestone: int
    progress_percent: float


def compute_level_info(total_activities: int, milestones: Sequence[Milestone]) -> LevelInfo:
    """Pure level computation from an activity count and the milestone catalog.

    Milestones are compared against the raw activity count, so a brand-new
    user has no current milestone and the first one ("Sprout") as next.
    At an exact threshold the milestone counts as reached and progress to
    the following one starts at 0%.
    """
    total = max(total_activities, 0)
    ordered = sorted(milestones, key=lambda m: m.level)

    current = None
    upcoming = None
    for milestone in ordered:
        if milestone.level <= total:
            current = milestone
        elif upcoming is None:
            upcoming = milestone

    current_floor = current.level if current else 0
    if upcoming is None or upcoming.level <= current_floor:
        progress = 100.0
    else:
        progress = round((total - current_floor) / (upcoming.level - current_floor) * 100, 2)

    return LevelInfo(
        total_activities=total,
        current_level=max(total, 1),
        current_milestone=current,
        next_milestone=upcoming,
        activities_to_next_milestone=max(0, upcoming.level - total) if upcoming else 0,
        progress_percent=progress,
    )


async def load_milestones(db: AsyncSession) -> list[Milestone]:
    result = await db.execute(select(LevelMilestone).order_by(LevelMilestone.milestone_level))
    return [
        Milestone(level=m.milestone_level, name=m.name, description=m.description, icon=m.icon)
        for m in result.scalars()
    ]


async def get_level_info(db: AsyncSession, user_id: uuid.UUID) -> LevelInfo:
    """Level info for a user from live stats and the milestone catalog."""
    stats = await get_user_stats(db, user_id)
    return compute_level_info(stats.total_activities, await load_milestones(db))
