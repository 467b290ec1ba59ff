"""Community (user-created) events and RSVPs."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gtg.day_utils import ensure_utc, utcnow
from gtg.db.models import ActivityType, EventJoin, UserEvent
from gtg.db.upsert import insert_for
from gtg.errors import ConflictError, NotAuthorizedError, NotFoundError, ValidationError
from gtg.events.geo import bounding_box, haversine_miles

logger = logging.getLogger(__name__)

VALID_VISIBILITY = ("public", "private")
VALID_JOIN_STATUS = ("going", "maybe", "not_going")

# Fields the creator may change after publishing
UPDATABLE_FIELDS = (
    "name",
    "description",
    "event_url",
    "start_date",
    "end_date",
    "timezone",
    "venue_name",
    "venue_address",
    "city",
    "country",
    "latitude",
    "longitude",
    "activity_type_id",
    "max_attendees",
    "requirements",
    "price",
    "currency",
    "visibility",
)


@dataclass
class CommunityEventView:
    event: UserEvent
    attendee_count: int
    my_status: str | None


def _validate_fields(values: dict) -> None:
    name = values.get("name")
    if "name" in values and (name is None or not name.strip()):
        msg = "Event name is required"
        raise ValidationError(msg)
    if name is not None and len(name.strip()) > 200:
        msg = "Event name must be at most 200 characters"
        raise ValidationError(msg)
    if values.get("visibility") is not None and values["visibility"] not in VALID_VISIBILITY:
        msg = f"Invalid visibility: {values['visibility']}"
        raise ValidationError(msg)
    lat, lon = values.get("latitude"), values.get("longitude")
    if (lat is not None and not -90 <= lat <= 90) or (lon is not None and not -180 <= lon <= 180):
        msg = "Invalid coordinates"
        raise ValidationError(msg)
    if values.get("max_attendees") is not None and values["max_attendees"] <= 0:
        msg = "max_attendees must be positive"
        raise ValidationError(msg)
    if values.get("price") is not None and values["price"] < 0:
        msg = "Price cannot be negative"
        raise ValidationError(msg)


def _validate_dates(start: datetime, end: datetime | None) -> None:
    if end is not None and ensure_utc(end) < ensure_utc(start):
        msg = "Event cannot end before it starts"
        raise ValidationError(msg)


async def _check_activity_type(db: AsyncSession, activity_type_id: int | None) -> None:
    if activity_type_id is not None and await db.get(ActivityType, activity_type_id) is None:
        msg = "Unknown activity type"
        raise ValidationError(msg)


async def create_event(
    db: AsyncSession,
    creator_id: uuid.UUID,
    name: str,
    start_date: datetime,
    latitude: float,
    longitude: float,
    **fields,
) -> UserEvent:
    """
    Publish a community event.

    Raises:
        ValidationError: Missing name, bad coordinates, start in the past,
            end before start, non-positive capacity or negative price.
    """
    values = {"name": name, "latitude": latitude, "longitude": longitude, **fields}
    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        msg = f"Unknown event fields: {', '.join(sorted(unknown))}"
        raise ValidationError(msg)
    _validate_fields(values)
    start = ensure_utc(start_date)
    if start < utcnow():
        msg = "Event cannot start in the past"
        raise ValidationError(msg)
    end = ensure_utc(fields["end_date"]) if fields.get("end_date") else None
    _validate_dates(start, end)
    await _check_activity_type(db, fields.get("activity_type_id"))

    price = fields.get("price")
    event = UserEvent(
        **{**values, "name": name.strip(), "start_date": start, "end_date": end},
        creator_id=creator_id,
        is_free=not price,
    )
    if event.visibility is None:
        event.visibility = "public"
    db.add(event)
    await db.flush()
    logger.info("Community event %s created by %s", event.id, creator_id)
    return event


async def get_event(db: AsyncSession, event_id: uuid.UUID) -> UserEvent:
    event = await db.get(UserEvent, event_id)
    if event is None:
        msg = "Event not found"
        raise NotFoundError(msg)
    return event


async def _get_own_event(db: AsyncSession, event_id: uuid.UUID, actor_id: uuid.UUID) -> UserEvent:
    event = await get_event(db, event_id)
    if event.creator_id != actor_id:
        msg = "Only the creator can change this event"
        raise NotAuthorizedError(msg)
    return event


async def update_event(db: AsyncSession, event_id: uuid.UUID, actor_id: uuid.UUID, **changes) -> UserEvent:
    """Apply non-None ``changes``. Creator only; cancelled events are frozen."""
    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        msg = f"Unknown event fields: {', '.join(sorted(unknown))}"
        raise ValidationError(msg)
    event = await _get_own_event(db, event_id, actor_id)
    if event.is_cancelled:
        msg = "Cancelled events cannot be edited"
        raise ConflictError(msg)

    changes = {k: v for k, v in changes.items() if v is not None}
    _validate_fields(changes)
    start = ensure_utc(changes.get("start_date") or event.start_date)
    end_value = changes.get("end_date") or event.end_date
    _validate_dates(start, end_value)
    await _check_activity_type(db, changes.get("activity_type_id"))
    if "max_attendees" in changes:
        going = await attendee_count(db, event.id)
        if going > changes["max_attendees"]:
            msg = f"{going} people are already going"
            raise ValidationError(msg)

    for field, value in changes.items():
        if field in ("start_date", "end_date"):
            value = ensure_utc(value)
        elif field == "name":
            value = value.strip()
        setattr(event, field, value)
    if "price" in changes:
        event.is_free = not changes["price"]
    await db.flush()
    return event


async def cancel_event(
    db: AsyncSession,
    event_id: uuid.UUID,
    actor_id: uuid.UUID,
    reason: str | None = None,
) -> UserEvent:
    """Cancel an event. Terminal: a second cancel is a conflict."""
    event = await _get_own_event(db, event_id, actor_id)
    if event.is_cancelled:
        msg = "Event is already cancelled"
        raise ConflictError(msg)
    event.is_cancelled = True
    event.cancelled_at = utcnow()
    event.cancellation_reason = reason
    await db.flush()
    logger.info("Community event %s cancelled by %s", event.id, actor_id)
    return event


# --- Reads ---


async def attendee_count(db: AsyncSession, event_id: uuid.UUID) -> int:
    """Number of RSVPs with status ``going``."""
    result = await db.execute(
        select(func.count(EventJoin.id)).where(EventJoin.event_id == event_id, EventJoin.status == "going")
    )
    return result.scalar_one()


async def get_join(db: AsyncSession, user_id: uuid.UUID, event_id: uuid.UUID) -> EventJoin | None:
    result = await db.execute(
        select(EventJoin).where(EventJoin.user_id == user_id, EventJoin.event_id == event_id)
    )
    return result.scalar_one_or_none()


async def _views(db: AsyncSession, events: list[UserEvent], viewer_id: uuid.UUID) -> list[CommunityEventView]:
    ids = [e.id for e in events]
    if not ids:
        return []
    counts = await db.execute(
        select(EventJoin.event_id, func.count(EventJoin.id))
        .where(EventJoin.event_id.in_(ids), EventJoin.status == "going")
        .group_by(EventJoin.event_id)
    )
    mine = await db.execute(
        select(EventJoin.event_id, EventJoin.status).where(
            EventJoin.event_id.in_(ids), EventJoin.user_id == viewer_id
        )
    )
    by_event = {eid: int(n) for eid, n in counts}
    statuses = dict(mine.all())
    return [CommunityEventView(e, by_event.get(e.id, 0), statuses.get(e.id)) for e in events]


async def get_event_detail(db: AsyncSession, event_id: uuid.UUID, viewer_id: uuid.UUID) -> CommunityEventView:
    """Private events are only visible to the creator and to users with an RSVP."""
    event = await get_event(db, event_id)
    if event.visibility == "private" and event.creator_id != viewer_id:
        if await get_join(db, viewer_id, event_id) is None:
            msg = "Event not found"
            raise NotFoundError(msg)
    return (await _views(db, [event], viewer_id))[0]


async def list_nearby_events(
    db: AsyncSession,
    viewer_id: uuid.UUID,
    latitude: float,
    longitude: float,
    radius_miles: float = 50,
    limit: int = 100,
    now: datetime | None = None,
) -> list[CommunityEventView]:
    """Public, upcoming, non-cancelled events within the radius, soonest first."""
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        msg = "Invalid coordinates"
        raise ValidationError(msg)
    min_lat, max_lat, min_lon, max_lon = bounding_box(latitude, longitude, radius_miles)
    result = await db.execute(
        select(UserEvent)
        .where(
            UserEvent.visibility == "public",
            UserEvent.is_cancelled.is_(False),
            UserEvent.start_date >= (now or utcnow()),
            UserEvent.latitude.between(min_lat, max_lat),
            UserEvent.longitude.between(min_lon, max_lon),
        )
        .order_by(UserEvent.start_date)
    )
    events = [
        e for e in result.scalars()
        if haversine_miles(latitude, longitude, e.latitude, e.longitude) <= radius_miles
    ][:limit]
    return await _views(db, events, viewer_id)


async def list_created_events(db: AsyncSession, creator_id: uuid.UUID) -> list[CommunityEventView]:
    result = await db.execute(
        select(UserEvent).where(UserEvent.creator_id == creator_id).order_by(UserEvent.start_date)
    )
    return await _views(db, list(result.scalars()), creator_id)


async def list_joined_events(db: AsyncSession, user_id: uuid.UUID) -> list[CommunityEventView]:
    """Non-cancelled events the user is going to."""
    result = await db.execute(
        select(UserEvent)
        .join(EventJoin, EventJoin.event_id == UserEvent.id)
        .where(
            EventJoin.user_id == user_id,
            EventJoin.status == "going",
            UserEvent.is_cancelled.is_(False),
        )
        .order_by(UserEvent.start_date)
    )
    return await _views(db, list(result.scalars()), user_id)


# --- RSVP ---


async def join_event(
    db: AsyncSession,
    event_id: uuid.UUID,
    user_id: uuid.UUID,
    status: str = "going",
) -> EventJoin:
    """
    RSVP to an event, or change an existing RSVP.

    Raises:
        ValidationError: Unknown status.
        NotFoundError: No such event.
        ConflictError: The event is cancelled, or full for ``going``.
    """
    if status not in VALID_JOIN_STATUS:
        msg = f"Invalid RSVP status: {status}"
        raise ValidationError(msg)
    event = await get_event(db, event_id)
    if event.is_cancelled:
        msg = "Event has been cancelled"
        raise ConflictError(msg)

    existing = await get_join(db, user_id, event_id)
    if status == "going" and event.max_attendees is not None and (existing is None or existing.status != "going"):
        if await attendee_count(db, event_id) >= event.max_attendees:
            msg = "Event is full"
            raise ConflictError(msg)

    if existing is None:
        stmt = (
            insert_for(db, EventJoin)
            .values(user_id=user_id, event_id=event_id, status=status, joined_at=utcnow(), updated_at=utcnow())
            .on_conflict_do_nothing(index_elements=["user_id", "event_id"])
            .returning(EventJoin.id)
        )
        new_id = (await db.execute(stmt)).scalar_one_or_none()
        if new_id is not None:
            return await db.get(EventJoin, new_id)  # type: ignore[return-value]
        existing = await get_join(db, user_id, event_id)
        if existing is None:
            msg = "RSVP vanished after insert conflict"
            raise RuntimeError(msg)

    existing.status = status
    existing.updated_at = utcnow()
    await db.flush()
    return existing


async def leave_event(db: AsyncSession, event_id: uuid.UUID, user_id: uuid.UUID) -> None:
    result = await db.execute(
        delete(EventJoin).where(EventJoin.event_id == event_id, EventJoin.user_id == user_id)
    )
    if not result.rowcount:
        msg = "You have not joined this event"
        raise NotFoundError(msg)
