"""Pydantic schemas for external event endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class FetchEventsRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    radius_miles: int | None = Field(None, ge=1, le=500)
    source: str = "ticketmaster"
    force_refresh: bool = False
    location_name: str | None = Field(None, max_length=200)


class ExternalEventResponse(BaseModel):
    id: str
    source: str
    source_id: str
    name: str
    description: str | None = None
    event_url: str | None = None
    start_date: datetime
    end_date: datetime | None = None
    timezone: str | None = None
    venue_name: str | None = None
    venue_address: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    activity_type_id: int | None = None
    source_category: str | None = None
    source_tags: list[str] = []
    price_min: float | None = None
    price_max: float | None = None
    currency: str | None = None
    is_free: bool
    image_url: str | None = None
    thumbnail_url: str | None = None
    retrieved_at: datetime
    distance_miles: float | None = None
    relevance_score: int | None = None


class FetchEventsResponse(BaseModel):
    events: list[ExternalEventResponse]
    count: int
    from_cache: bool
    fetched_at: datetime


class EventListResponse(BaseModel):
    events: list[ExternalEventResponse]
    count: int


class FetchStatusResponse(BaseModel):
    source: str
    can_fetch: bool
    next_allowed_at: datetime | None = None
    last_success_at: datetime | None = None


# --- Attendance ---


class AttendRequest(BaseModel):
    notes: str | None = Field(None, max_length=1000)
    rating: int | None = Field(None, ge=1, le=5)


class AttendanceResponse(BaseModel):
    event_id: str
    attended_at: datetime
    notes: str | None = None
    rating: int | None = None


class AttendedEventResponse(BaseModel):
    event: ExternalEventResponse
    attendance: AttendanceResponse


class AttendedEventListResponse(BaseModel):
    events: list[AttendedEventResponse]
    total: int
