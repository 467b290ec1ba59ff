"""Attendance marks on cached external events."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gtg.day_utils import utcnow
from gtg.db.models import EventAttendance, ExternalEvent
from gtg.db.upsert import insert_for
from gtg.errors import NotFoundError, ValidationError

logger = structlog.get_logger()


def validate_rating(rating: int | None) -> None:
    if rating is not None and not 1 <= rating <= 5:
        msg = "Rating must be between 1 and 5"
        raise ValidationError(msg)


async def mark_attended(
    db: AsyncSession,
    user_id: uuid.UUID,
    event_id: uuid.UUID,
    notes: str | None = None,
    rating: int | None = None,
) -> EventAttendance:
    """Mark an event as attended, or update notes/rating of an existing mark.

    Raises:
        ValidationError: Rating outside 1..5.
        NotFoundError: The event is not in the cache.
    """
    validate_rating(rating)
    if await db.get(ExternalEvent, event_id) is None:
        msg = "Event not found"
        raise NotFoundError(msg)

    stmt = (
        insert_for(db, EventAttendance)
        .values(user_id=user_id, event_id=event_id, notes=notes, rating=rating, attended_at=utcnow())
        .on_conflict_do_nothing(index_elements=["user_id", "event_id"])
        .returning(EventAttendance.id)
    )
    new_id = (await db.execute(stmt)).scalar_one_or_none()
    if new_id is not None:
        logger.info("event_attended", user_id=str(user_id), event_id=str(event_id))
        return await db.get(EventAttendance, new_id)  # type: ignore[return-value]

    existing = await get_attendance(db, user_id, event_id)
    if existing is None:
        msg = "Attendance vanished after insert conflict"
        raise RuntimeError(msg)
    existing.notes = notes
    existing.rating = rating
    await db.flush()
    return existing


async def unmark_attended(db: AsyncSession, user_id: uuid.UUID, event_id: uuid.UUID) -> None:
    result = await db.execute(
        delete(EventAttendance).where(
            EventAttendance.user_id == user_id,
            EventAttendance.event_id == event_id,
        )
    )
    if not result.rowcount:
        msg = "Event is not marked as attended"
        raise NotFoundError(msg)


async def get_attendance(db: AsyncSession, user_id: uuid.UUID, event_id: uuid.UUID) -> EventAttendance | None:
    result = await db.execute(
        select(EventAttendance).where(
            EventAttendance.user_id == user_id,
            EventAttendance.event_id == event_id,
        )
    )
    return result.scalar_one_or_none()


async def has_attended(db: AsyncSession, user_id: uuid.UUID, event_id: uuid.UUID) -> bool:
    return await get_attendance(db, user_id, event_id) is not None


async def list_attended_events(
    db: AsyncSession,
    user_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
) -> list[tuple[ExternalEvent, EventAttendance]]:
    """Attended events, most recently marked first."""
    result = await db.execute(
        select(ExternalEvent, EventAttendance)
        .join(EventAttendance, EventAttendance.event_id == ExternalEvent.id)
        .where(EventAttendance.user_id == user_id)
        .order_by(EventAttendance.attended_at.desc(), EventAttendance.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return [(row.ExternalEvent, row.EventAttendance) for row in result]


async def attended_count(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count(EventAttendance.id)).where(EventAttendance.user_id == user_id)
    )
    return result.scalar_one()
