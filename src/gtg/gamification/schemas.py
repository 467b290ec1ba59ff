"""Pydantic response models for gamification endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


# --- Stats ---


class UserStatsResponse(BaseModel):
    user_id: uuid.UUID
    total_activities: int
    active_days: int
    activities_by_type: dict[str, int] = {}
    likes_received: int
    likes_given: int
    followers_count: int
    following_count: int
    last_activity_at: datetime | None = None
    first_activity_at: datetime | None = None
    badges_unlocked: int


# --- Level ---


class MilestoneResponse(BaseModel):
    level: int
    name: str
    description: str = ""
    icon: str = ""


class LevelInfoResponse(BaseModel):
    total_activities: int
    current_level: int
    current_milestone: MilestoneResponse | None = None
    next_milestone: MilestoneResponse | None = None
    activities_to_next_milestone: int
    progress_percent: float


class MilestoneListResponse(BaseModel):
    milestones: list[MilestoneResponse]


# --- Badge ---


class BadgeResponse(BaseModel):
    id: int
    name: str
    description: str
    category: str
    icon: str
    rarity: str


class BadgeProgressResponse(BaseModel):
    badge: BadgeResponse
    is_unlocked: bool
    unlocked_at: datetime | None = None
    current: int
    target: int
    percent: float


class BadgeProgressListResponse(BaseModel):
    badges: list[BadgeProgressResponse]
    total_available: int
    total_unlocked: int


class BadgeCheckResponse(BaseModel):
    newly_unlocked: list[BadgeResponse]


# --- Streak ---


class StreakResponse(BaseModel):
    user_id: uuid.UUID
    current_streak: int
