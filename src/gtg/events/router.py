"""External event endpoints: fetch through the cache, listings, attendance."""

from __future__ import annotations

import uuid
from decimal import Decimal

import httpx
import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from gtg.auth.dependencies import get_current_user
from gtg.config import get_settings
from gtg.database import get_session
from gtg.db.models import EventAttendance, ExternalEvent, User
from gtg.events.attendance_service import (
    attended_count,
    list_attended_events,
    mark_attended,
    unmark_attended,
)
from gtg.events.cache_service import (
    fetch_external_events,
    get_fetch_status,
    list_cached_events,
    list_recommended_events,
)
from gtg.events.geo import haversine_miles
from gtg.events.provider import get_provider
from gtg.events.schemas import (
    AttendanceResponse,
    AttendedEventListResponse,
    AttendedEventResponse,
    AttendRequest,
    EventListResponse,
    ExternalEventResponse,
    FetchEventsRequest,
    FetchEventsResponse,
    FetchStatusResponse,
)

router = APIRouter(prefix="/api/v1/events", tags=["Events"])


async def get_provider_client() -> httpx.AsyncClient | None:
    """Shared HTTP client for providers. None lets each provider open its own."""
    return None


def _to_float(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def _event_response(
    event: ExternalEvent,
    origin: tuple[float, float] | None = None,
    score: int | None = None,
) -> ExternalEventResponse:
    distance = None
    if origin is not None and event.latitude is not None and event.longitude is not None:
        distance = round(haversine_miles(origin[0], origin[1], event.latitude, event.longitude), 2)
    return ExternalEventResponse(
        id=str(event.id),
        source=event.source,
        source_id=event.source_id,
        name=event.name,
        description=event.description,
        event_url=event.event_url,
        start_date=event.start_date,
        end_date=event.end_date,
        timezone=event.timezone,
        venue_name=event.venue_name,
        venue_address=event.venue_address,
        city=event.city,
        state=event.state,
        country=event.country,
        latitude=event.latitude,
        longitude=event.longitude,
        activity_type_id=event.activity_type_id,
        source_category=event.source_category,
        source_tags=list(event.source_tags or []),
        price_min=_to_float(event.price_min),
        price_max=_to_float(event.price_max),
        currency=event.currency,
        is_free=event.is_free,
        image_url=event.image_url,
        thumbnail_url=event.thumbnail_url,
        retrieved_at=event.retrieved_at,
        distance_miles=distance,
        relevance_score=score,
    )


def _attendance_response(attendance: EventAttendance) -> AttendanceResponse:
    return AttendanceResponse(
        event_id=str(attendance.event_id),
        attended_at=attendance.attended_at,
        notes=attendance.notes,
        rating=attendance.rating,
    )


@router.post("/fetch", response_model=FetchEventsResponse)
async def fetch_events_endpoint(
    body: FetchEventsRequest,
    client: httpx.AsyncClient | None = Depends(get_provider_client),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Fetch events near a point. Served from the cache when a recent search covers the area."""
    structlog.contextvars.bind_contextvars(event_source=body.source)
    result = await fetch_external_events(
        db,
        user.id,
        body.latitude,
        body.longitude,
        radius_miles=body.radius_miles,
        source=body.source,
        force_refresh=body.force_refresh,
        location_name=body.location_name,
        provider=get_provider(body.source, client=client),
    )
    origin = (body.latitude, body.longitude)
    events = [_event_response(e, origin) for e in result.events]
    return FetchEventsResponse(
        events=events,
        count=len(events),
        from_cache=result.from_cache,
        fetched_at=result.fetched_at,
    )


@router.get("/fetch-status", response_model=FetchStatusResponse)
async def fetch_status_endpoint(
    source: str = Query("ticketmaster"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Whether the caller may trigger a provider fetch now."""
    status = await get_fetch_status(db, user.id, source)
    return FetchStatusResponse(
        source=source,
        can_fetch=status.can_fetch,
        next_allowed_at=status.next_allowed_at,
        last_success_at=status.last_success_at,
    )


@router.get("/cached", response_model=EventListResponse)
async def cached_events_endpoint(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius_miles: int | None = Query(None, ge=1, le=500),
    limit: int = Query(100, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Upcoming cached events near a point. Never calls the provider."""
    radius = radius_miles or get_settings().event_default_radius_miles
    events = await list_cached_events(db, latitude, longitude, radius, limit=limit)
    origin = (latitude, longitude)
    return EventListResponse(events=[_event_response(e, origin) for e in events], count=len(events))


@router.get("/recommended", response_model=EventListResponse)
async def recommended_events_endpoint(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius_miles: int | None = Query(None, ge=1, le=500),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Nearby cached events ranked by the caller's activity history."""
    radius = radius_miles or get_settings().event_default_radius_miles
    scored = await list_recommended_events(db, user.id, latitude, longitude, radius, limit=limit)
    origin = (latitude, longitude)
    events = [_event_response(e, origin, score) for e, score in scored]
    return EventListResponse(events=events, count=len(events))


# ── Attendance ──


@router.get("/attended", response_model=AttendedEventListResponse)
async def attended_events_endpoint(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    rows = await list_attended_events(db, user.id, limit=limit, offset=offset)
    total = await attended_count(db, user.id)
    return AttendedEventListResponse(
        events=[
            AttendedEventResponse(event=_event_response(e), attendance=_attendance_response(a))
            for e, a in rows
        ],
        total=total,
    )


@router.post("/{event_id}/attend", response_model=AttendanceResponse)
async def attend_event_endpoint(
    event_id: uuid.UUID,
    body: AttendRequest | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Mark an event as attended. Calling again updates notes and rating."""
    body = body or AttendRequest()
    attendance = await mark_attended(db, user.id, event_id, notes=body.notes, rating=body.rating)
    await db.commit()
    await db.refresh(attendance)
    return _attendance_response(attendance)


@router.delete("/{event_id}/attend", status_code=204)
async def unattend_event_endpoint(
    event_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await unmark_attended(db, user.id, event_id)
    await db.commit()
