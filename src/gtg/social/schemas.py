"""Pydantic schemas for social endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from gtg.users.schemas import UserSummary


# --- Follow transitions ---


class FollowResultResponse(BaseModel):
    success: bool
    state: str
    message: str


class FollowStateResponse(BaseModel):
    user_id: str
    state: str


# --- Requests ---


class FollowRequestResponse(BaseModel):
    id: int
    status: str
    created_at: datetime
    user: UserSummary  # requester for received, target for sent


class FollowRequestListResponse(BaseModel):
    requests: list[FollowRequestResponse]
    count: int


# --- Graph ---


class UserListResponse(BaseModel):
    users: list[UserSummary]
    count: int
