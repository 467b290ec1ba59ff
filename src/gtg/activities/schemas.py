"""Pydantic schemas for activity endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from gtg.users.schemas import UserSummary


class ActivityTypeResponse(BaseModel):
    id: int
    name: str
    icon: str


class ActivityTypeListResponse(BaseModel):
    types: list[ActivityTypeResponse]


class LogActivityRequest(BaseModel):
    activity_type_id: int
    notes: str | None = Field(None, max_length=1000)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    location_name: str | None = Field(None, max_length=255)
    timestamp: datetime | None = None


class ActivityResponse(BaseModel):
    id: uuid.UUID
    user: UserSummary
    activity_type: ActivityTypeResponse
    timestamp: datetime
    notes: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    location_name: str | None = None
    like_count: int = 0
    has_liked: bool = False


class LogActivityResponse(BaseModel):
    activity: ActivityResponse
    badges_unlocked: list[int] = []


class ActivityListResponse(BaseModel):
    activities: list[ActivityResponse]
    count: int


class LikeResponse(BaseModel):
    activity_id: uuid.UUID
    liked: bool
    like_count: int
