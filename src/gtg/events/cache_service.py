"""External event cache: rate-limited provider fetches, dedup upsert, read paths, cleanup.

Fetch pipeline for one (user, source) request:

1. Per-user rate limit against the last *successful* provider call.
2. Fresh-cache shortcut unless ``force_refresh``: a recent search covering
   the same area, whose events were stored, serves them from the cache.
3. Provider call; every attempt is written to ``api_call_log``.
4. Upsert by content hash (insert-or-no-op, re-select on a lost race),
   classify new rows, merge re-fetched ones.

A failure while writing the cache never hides the fetched events from the caller.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog
from sqlalchemy import delete, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gtg.config import get_settings
from gtg.day_utils import ensure_utc, utcnow
from gtg.db.models import Activity, ApiCallLog, EventAttendance, ExternalEvent
from gtg.db.upsert import insert_for
from gtg.errors import RateLimitedError, UpstreamError, ValidationError
from gtg.events.classifier import EventClassifier, load_classifier
from gtg.events.dedup import dedupe_batch, merge_event
from gtg.events.geo import bounding_box, haversine_miles
from gtg.events.provider import EventProvider, ParsedEvent, get_provider
from gtg.events.relevance import relevance_score

logger = structlog.get_logger()

DEFAULT_SOURCE_INTERVAL_SECONDS = 86400
MAX_RADIUS_MILES = 500
# A prior search counts as covering a request when its centre is this close.
CACHE_HIT_DISTANCE_MILES = 5.0


@dataclass
class FetchResult:
    events: list[ExternalEvent]
    from_cache: bool
    fetched_at: datetime


@dataclass
class FetchStatus:
    can_fetch: bool
    next_allowed_at: datetime | None
    last_success_at: datetime | None


def source_interval(source: str) -> timedelta:
    intervals = get_settings().event_source_intervals
    return timedelta(seconds=intervals.get(source, DEFAULT_SOURCE_INTERVAL_SECONDS))


def validate_search(latitude: float, longitude: float, radius_miles: int) -> None:
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        msg = "Invalid coordinates"
        raise ValidationError(msg)
    if not 1 <= radius_miles <= MAX_RADIUS_MILES:
        msg = f"Radius must be between 1 and {MAX_RADIUS_MILES} miles"
        raise ValidationError(msg)


# --- Rate limiting ---


async def get_last_successful_call(db: AsyncSession, user_id: uuid.UUID, source: str) -> datetime | None:
    result = await db.execute(
        select(func.max(ApiCallLog.called_at)).where(
            ApiCallLog.user_id == user_id,
            ApiCallLog.source == source,
            ApiCallLog.success.is_(True),
        )
    )
    last = result.scalar_one_or_none()
    return ensure_utc(last) if last else None


async def get_fetch_status(
    db: AsyncSession,
    user_id: uuid.UUID,
    source: str,
    now: datetime | None = None,
) -> FetchStatus:
    now = now or utcnow()
    last = await get_last_successful_call(db, user_id, source)
    if last is None:
        return FetchStatus(can_fetch=True, next_allowed_at=None, last_success_at=None)
    next_allowed = last + source_interval(source)
    return FetchStatus(can_fetch=now >= next_allowed, next_allowed_at=next_allowed, last_success_at=last)


async def check_rate_limit(db: AsyncSession, user_id: uuid.UUID, source: str, now: datetime) -> None:
    """
    Raises:
        RateLimitedError: If the last successful call is within the source interval.
    """
    status = await get_fetch_status(db, user_id, source, now)
    if status.can_fetch:
        return
    retry_after = int((status.next_allowed_at - now).total_seconds()) + 1  # type: ignore[operator]
    msg = "Events were refreshed recently. Showing cached events until the next refresh is allowed."
    raise RateLimitedError(msg, retry_after=retry_after)


async def _record_call(
    db: AsyncSession,
    user_id: uuid.UUID,
    source: str,
    latitude: float,
    longitude: float,
    radius_miles: int,
    location_name: str | None,
    called_at: datetime,
    events_retrieved: int,
    success: bool,
    cached: bool = False,
    error_message: str | None = None,
) -> bool:
    """Write the call log row. Best-effort: failures are logged, never raised.

    ``success`` is the provider outcome and drives rate limiting. ``cached``
    records whether the events reached the cache table.
    """
    try:
        db.add(ApiCallLog(
            user_id=user_id,
            source=source,
            search_latitude=latitude,
            search_longitude=longitude,
            search_location_name=location_name,
            search_radius_miles=radius_miles,
            called_at=called_at,
            events_retrieved=events_retrieved,
            success=success,
            cached=cached,
            error_message=error_message[:1000] if error_message else None,
        ))
        await db.commit()
    except Exception:
        logger.warning("api_call_log_write_failed", user_id=str(user_id), source=source, exc_info=True)
        await db.rollback()
        return False
    return True


# --- Cache reads ---


async def _nearby_upcoming(
    db: AsyncSession,
    latitude: float,
    longitude: float,
    radius_miles: int,
    now: datetime,
    source: str | None = None,
    retrieved_since: datetime | None = None,
    limit: int | None = None,
) -> list[ExternalEvent]:
    min_lat, max_lat, min_lon, max_lon = bounding_box(latitude, longitude, radius_miles)
    query = select(ExternalEvent).where(
        ExternalEvent.start_date >= now,
        ExternalEvent.latitude.between(min_lat, max_lat),
        ExternalEvent.longitude.between(min_lon, max_lon),
    )
    if source is not None:
        query = query.where(ExternalEvent.source == source)
    if retrieved_since is not None:
        query = query.where(ExternalEvent.retrieved_at >= retrieved_since)
    result = await db.execute(query.order_by(ExternalEvent.start_date))
    events = [
        e
        for e in result.scalars()
        if haversine_miles(latitude, longitude, e.latitude, e.longitude) <= radius_miles  # type: ignore[arg-type]
    ]
    return events[:limit] if limit else events


async def find_fresh_cached(
    db: AsyncSession,
    source: str,
    latitude: float,
    longitude: float,
    radius_miles: int,
    now: datetime,
) -> list[ExternalEvent] | None:
    """Cached events when a recent search by anyone, whose results were stored, covers this area.

    None when no such search exists, so the caller goes to the provider.
    """
    since = now - source_interval(source)
    searches = await db.execute(
        select(ApiCallLog.search_latitude, ApiCallLog.search_longitude, ApiCallLog.search_radius_miles).where(
            ApiCallLog.source == source,
            ApiCallLog.cached.is_(True),
            ApiCallLog.called_at >= since,
            ApiCallLog.search_radius_miles >= radius_miles,
        )
    )
    covered = any(
        haversine_miles(latitude, longitude, lat, lon) <= CACHE_HIT_DISTANCE_MILES
        for lat, lon, _ in searches
    )
    if not covered:
        return None
    return await _nearby_upcoming(db, latitude, longitude, radius_miles, now, source=source, retrieved_since=since)


async def list_cached_events(
    db: AsyncSession,
    latitude: float,
    longitude: float,
    radius_miles: int,
    limit: int = 100,
    now: datetime | None = None,
) -> list[ExternalEvent]:
    """Upcoming cached events within the radius, soonest first. Never calls a provider."""
    validate_search(latitude, longitude, radius_miles)
    return await _nearby_upcoming(db, latitude, longitude, radius_miles, now or utcnow(), limit=limit)


async def list_recommended_events(
    db: AsyncSession,
    user_id: uuid.UUID,
    latitude: float,
    longitude: float,
    radius_miles: int,
    limit: int = 20,
    now: datetime | None = None,
) -> list[tuple[ExternalEvent, int]]:
    """Nearby upcoming events ranked by relevance to the user's activity history."""
    validate_search(latitude, longitude, radius_miles)
    events = await _nearby_upcoming(db, latitude, longitude, radius_miles, now or utcnow())
    counts = await db.execute(
        select(Activity.activity_type_id, func.count(Activity.id))
        .where(Activity.user_id == user_id)
        .group_by(Activity.activity_type_id)
    )
    history = {type_id: int(n) for type_id, n in counts}
    scored = [(e, relevance_score(history.get(e.activity_type_id, 0), e.is_free)) for e in events]
    scored.sort(key=lambda pair: (-pair[1], ensure_utc(pair[0].start_date)))
    return scored[:limit]


# --- Cache writes ---


def _event_values(
    key: str,
    event: ParsedEvent,
    retrieved_at: datetime,
    latitude: float,
    longitude: float,
    radius_miles: int,
) -> dict:
    return {
        "source": event.source,
        "source_id": event.source_id,
        "content_hash": key,
        "name": event.name,
        "description": event.description,
        "event_url": event.event_url,
        "start_date": event.start_date,
        "end_date": event.end_date,
        "timezone": event.timezone,
        "venue_name": event.venue_name,
        "venue_address": event.venue_address,
        "city": event.city,
        "state": event.state,
        "country": event.country,
        "postal_code": event.postal_code,
        "latitude": event.latitude,
        "longitude": event.longitude,
        "source_category": event.source_category,
        "source_tags": list(event.source_tags),
        "genre": event.genre,
        "price_min": event.price_min,
        "price_max": event.price_max,
        "currency": event.currency,
        "is_free": event.is_free,
        "image_url": event.image_url,
        "thumbnail_url": event.thumbnail_url,
        "retrieved_at": retrieved_at,
        "search_location_lat": latitude,
        "search_location_long": longitude,
        "search_radius_miles": radius_miles,
    }


async def _get_by_hash(db: AsyncSession, key: str) -> ExternalEvent | None:
    result = await db.execute(select(ExternalEvent).where(ExternalEvent.content_hash == key))
    return result.scalar_one_or_none()


async def upsert_event(
    db: AsyncSession,
    key: str,
    event: ParsedEvent,
    classifier: EventClassifier,
    retrieved_at: datetime,
    latitude: float,
    longitude: float,
    radius_miles: int,
) -> tuple[ExternalEvent, bool]:
    """Insert or merge one event by content hash. Returns (row, created)."""
    existing = await _get_by_hash(db, key)
    if existing is None:
        values = _event_values(key, event, retrieved_at, latitude, longitude, radius_miles)
        values["id"] = uuid.uuid4()
        values["activity_type_id"] = classifier.classify(event.source_category, event.source_tags)
        stmt = (
            insert_for(db, ExternalEvent)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["content_hash"])
            .returning(ExternalEvent.id)
        )
        new_id = (await db.execute(stmt)).scalar_one_or_none()
        if new_id is not None:
            return await db.get(ExternalEvent, new_id), True  # type: ignore[return-value]
        # A concurrent fetch inserted the same event first
        existing = await _get_by_hash(db, key)
        if existing is None:
            msg = f"event {key} vanished after insert conflict"
            raise RuntimeError(msg)

    merge_event(existing, event, retrieved_at, latitude, longitude, radius_miles)
    if existing.activity_type_id is None:
        existing.activity_type_id = classifier.classify(existing.source_category, existing.source_tags)
    await db.flush()
    return existing, False


async def cache_events(
    db: AsyncSession,
    source: str,
    events: list[ParsedEvent],
    retrieved_at: datetime,
    latitude: float,
    longitude: float,
    radius_miles: int,
) -> tuple[list[ExternalEvent], bool]:
    """Persist a provider batch. Returns (events, persisted).

    On any failure the batch is rolled back and unsaved copies are returned
    so the caller still gets its events."""
    batch = dedupe_batch(events)
    try:
        classifier = await load_classifier(db, source)
        stored = []
        created = 0
        for key, event in batch:
            row, is_new = await upsert_event(
                db, key, event, classifier, retrieved_at, latitude, longitude, radius_miles,
            )
            stored.append(row)
            created += int(is_new)
        await db.commit()
    except Exception:
        logger.exception("event_cache_write_failed", source=source, events=len(batch))
        await db.rollback()
        return [
            ExternalEvent(id=uuid.uuid4(), **_event_values(key, e, retrieved_at, latitude, longitude, radius_miles))
            for key, e in batch
        ], False
    logger.info("events_cached", source=source, total=len(stored), created=created, merged=len(stored) - created)
    return stored, True


async def fetch_external_events(
    db: AsyncSession,
    user_id: uuid.UUID,
    latitude: float,
    longitude: float,
    radius_miles: int | None = None,
    source: str = "ticketmaster",
    force_refresh: bool = False,
    location_name: str | None = None,
    provider: EventProvider | None = None,
    now: datetime | None = None,
) -> FetchResult:
    """
    Fetch events around a point for a user, through the cache.

    Raises:
        ValidationError: Bad coordinates/radius or unknown source.
        RateLimitedError: The user's last successful fetch for this source is too recent.
        UpstreamError: The provider call failed (the failed attempt is logged).
    """
    radius_miles = radius_miles or get_settings().event_default_radius_miles
    validate_search(latitude, longitude, radius_miles)
    provider = provider or get_provider(source)
    now = now or utcnow()

    await check_rate_limit(db, user_id, source, now)

    if not force_refresh:
        cached = await find_fresh_cached(db, source, latitude, longitude, radius_miles, now)
        if cached is not None:
            logger.info("events_served_from_cache", user_id=str(user_id), source=source, events=len(cached))
            return FetchResult(events=cached, from_cache=True, fetched_at=now)

    try:
        parsed = await provider.search(latitude, longitude, radius_miles)
    except Exception as e:
        error = e if isinstance(e, UpstreamError) else UpstreamError(source, f"unexpected provider error: {e!r}")
        logger.error("event_fetch_failed", user_id=str(user_id), source=source, error=str(error))
        await _record_call(
            db, user_id, source, latitude, longitude, radius_miles, location_name,
            called_at=now, events_retrieved=0, success=False, error_message=str(error),
        )
        if error is e:
            raise
        raise error from e

    events, persisted = await cache_events(db, source, parsed, now, latitude, longitude, radius_miles)
    event_ids = [e.id for e in events]
    recorded = await _record_call(
        db, user_id, source, latitude, longitude, radius_miles, location_name,
        called_at=now, events_retrieved=len(parsed), success=True, cached=persisted,
    )
    if persisted and not recorded:
        # the rollback expired the cached rows; load them again
        result = await db.execute(
            select(ExternalEvent).where(ExternalEvent.id.in_(event_ids)).order_by(ExternalEvent.start_date)
        )
        events = list(result.scalars().all())
    return FetchResult(events=events, from_cache=False, fetched_at=now)


# --- Maintenance ---


async def cleanup_expired_events(
    db: AsyncSession,
    now: datetime | None = None,
    retention_days: int | None = None,
) -> int:
    """Delete events that started more than ``retention_days`` ago and nobody attended."""
    now = now or utcnow()
    retention_days = retention_days if retention_days is not None else get_settings().event_cleanup_retention_days
    cutoff = now - timedelta(days=retention_days)
    attended = exists().where(EventAttendance.event_id == ExternalEvent.id)
    result = await db.execute(
        delete(ExternalEvent)
        .where(ExternalEvent.start_date < cutoff, ~attended)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    deleted = result.rowcount or 0
    logger.info("expired_events_cleaned", deleted=deleted, cutoff=cutoff.isoformat())
    return deleted
