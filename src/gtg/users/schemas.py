"""Request/response schemas for user endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class CreateProfileRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr | None = None
    is_private: bool = False


class ProfileUpdateRequest(BaseModel):
    username: str | None = Field(None, min_length=3, max_length=50)
    is_private: bool | None = None
    profile_picture_url: str | None = Field(None, max_length=2048)


class UserResponse(BaseModel):
    """Own profile."""

    id: uuid.UUID
    username: str
    email: str | None = None
    profile_picture_url: str | None = None
    is_private: bool
    created_at: datetime


class PublicUserResponse(BaseModel):
    """Another user's profile as seen by the caller."""

    id: uuid.UUID
    username: str
    profile_picture_url: str | None = None
    is_private: bool
    followers_count: int
    following_count: int
    follow_state: str
    can_view_activities: bool


class UserSummary(BaseModel):
    id: uuid.UUID
    username: str
    profile_picture_url: str | None = None
    is_private: bool


class UserSearchResponse(BaseModel):
    users: list[UserSummary]
