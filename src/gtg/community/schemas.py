"""Pydantic schemas for community event endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field


class _EventFields(BaseModel):
    description: str | None = Field(None, max_length=5000)
    event_url: str | None = Field(None, max_length=2000)
    end_date: datetime | None = None
    timezone: str | None = Field(None, max_length=64)
    venue_name: str | None = Field(None, max_length=200)
    venue_address: str | None = Field(None, max_length=500)
    city: str | None = Field(None, max_length=128)
    country: str | None = Field(None, max_length=64)
    activity_type_id: int | None = None
    max_attendees: int | None = Field(None, gt=0)
    requirements: str | None = Field(None, max_length=2000)
    price: Decimal | None = Field(None, ge=0)
    currency: str | None = Field(None, max_length=8)


class CreateEventRequest(_EventFields):
    name: str = Field(..., min_length=1, max_length=200)
    start_date: datetime
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    visibility: Literal["public", "private"] = "public"


class UpdateEventRequest(_EventFields):
    name: str | None = Field(None, min_length=1, max_length=200)
    start_date: datetime | None = None
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    visibility: Literal["public", "private"] | None = None


class CancelEventRequest(BaseModel):
    reason: str | None = Field(None, max_length=1000)


class JoinEventRequest(BaseModel):
    status: Literal["going", "maybe", "not_going"] = "going"


class CommunityEventResponse(BaseModel):
    id: str
    creator_id: str
    visibility: str
    name: str
    description: str | None = None
    event_url: str | None = None
    start_date: datetime
    end_date: datetime | None = None
    timezone: str | None = None
    venue_name: str | None = None
    venue_address: str | None = None
    city: str | None = None
    country: str | None = None
    latitude: float
    longitude: float
    activity_type_id: int | None = None
    max_attendees: int | None = None
    requirements: str | None = None
    price: float | None = None
    currency: str | None = None
    is_free: bool
    is_cancelled: bool
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    attendee_count: int = 0
    my_status: str | None = None
    created_at: datetime


class CommunityEventListResponse(BaseModel):
    events: list[CommunityEventResponse]
    count: int


class JoinResponse(BaseModel):
    event_id: str
    status: str
    attendee_count: int
