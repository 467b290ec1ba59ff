"""Community event endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from gtg.auth.dependencies import get_current_user
from gtg.community.schemas import (
    CancelEventRequest,
    CommunityEventListResponse,
    CommunityEventResponse,
    CreateEventRequest,
    JoinEventRequest,
    JoinResponse,
    UpdateEventRequest,
)
from gtg.community.service import (
    CommunityEventView,
    attendee_count,
    cancel_event,
    create_event,
    get_event_detail,
    join_event,
    leave_event,
    list_created_events,
    list_joined_events,
    list_nearby_events,
    update_event,
)
from gtg.database import get_session
from gtg.db.models import User

router = APIRouter(prefix="/api/v1/community-events", tags=["Community Events"])


def _build_response(view: CommunityEventView) -> CommunityEventResponse:
    e = view.event
    return CommunityEventResponse(
        id=str(e.id),
        creator_id=str(e.creator_id),
        visibility=e.visibility,
        name=e.name,
        description=e.description,
        event_url=e.event_url,
        start_date=e.start_date,
        end_date=e.end_date,
        timezone=e.timezone,
        venue_name=e.venue_name,
        venue_address=e.venue_address,
        city=e.city,
        country=e.country,
        latitude=e.latitude,
        longitude=e.longitude,
        activity_type_id=e.activity_type_id,
        max_attendees=e.max_attendees,
        requirements=e.requirements,
        price=float(e.price) if e.price is not None else None,
        currency=e.currency,
        is_free=e.is_free,
        is_cancelled=e.is_cancelled,
        cancelled_at=e.cancelled_at,
        cancellation_reason=e.cancellation_reason,
        attendee_count=view.attendee_count,
        my_status=view.my_status,
        created_at=e.created_at,
    )


def _list_response(views: list[CommunityEventView]) -> CommunityEventListResponse:
    return CommunityEventListResponse(events=[_build_response(v) for v in views], count=len(views))


@router.post("", response_model=CommunityEventResponse, status_code=201)
async def create_event_endpoint(
    body: CreateEventRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    fields = body.model_dump(exclude={"name", "start_date", "latitude", "longitude"}, exclude_none=True)
    event = await create_event(db, user.id, body.name, body.start_date, body.latitude, body.longitude, **fields)
    await db.commit()
    return _build_response(CommunityEventView(event, 0, None))


@router.get("/nearby", response_model=CommunityEventListResponse)
async def nearby_events_endpoint(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius_miles: float = Query(50, gt=0, le=500),
    limit: int = Query(100, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Public upcoming events near a point."""
    views = await list_nearby_events(db, user.id, latitude, longitude, radius_miles, limit=limit)
    return _list_response(views)


@router.get("/mine", response_model=CommunityEventListResponse)
async def my_events_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return _list_response(await list_created_events(db, user.id))


@router.get("/joined", response_model=CommunityEventListResponse)
async def joined_events_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return _list_response(await list_joined_events(db, user.id))


@router.get("/{event_id}", response_model=CommunityEventResponse)
async def get_event_endpoint(
    event_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return _build_response(await get_event_detail(db, event_id, user.id))


@router.patch("/{event_id}", response_model=CommunityEventResponse)
async def update_event_endpoint(
    event_id: uuid.UUID,
    body: UpdateEventRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Edit an event (creator only)."""
    await update_event(db, event_id, user.id, **body.model_dump(exclude_none=True))
    await db.commit()
    return _build_response(await get_event_detail(db, event_id, user.id))


@router.post("/{event_id}/cancel", response_model=CommunityEventResponse)
async def cancel_event_endpoint(
    event_id: uuid.UUID,
    body: CancelEventRequest | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Cancel an event (creator only). Cancellation cannot be undone."""
    await cancel_event(db, event_id, user.id, reason=body.reason if body else None)
    await db.commit()
    return _build_response(await get_event_detail(db, event_id, user.id))


@router.post("/{event_id}/join", response_model=JoinResponse)
async def join_event_endpoint(
    event_id: uuid.UUID,
    body: JoinEventRequest | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """RSVP to an event, or change an existing RSVP."""
    status = body.status if body else "going"
    await join_event(db, event_id, user.id, status)
    await db.commit()
    return JoinResponse(event_id=str(event_id), status=status, attendee_count=await attendee_count(db, event_id))


@router.delete("/{event_id}/join", status_code=204)
async def leave_event_endpoint(
    event_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await leave_event(db, event_id, user.id)
    await db.commit()
