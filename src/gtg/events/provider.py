"""
External event providers with a source registry.

Each provider turns a (point, radius) search into ``ParsedEvent`` records,
the source-neutral shape the cache pipeline works with. Only Ticketmaster
(Discovery API v2) ships today; new sources register under their name.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
import structlog

from gtg.config import Settings, get_settings
from gtg.day_utils import get_zone
from gtg.errors import UpstreamError, ValidationError

logger = structlog.get_logger()


@dataclass
class ParsedEvent:
    """Provider event normalized to the cache's field names."""

    source: str
    source_id: str
    name: str
    start_date: datetime
    description: str | None = None
    event_url: str | None = None
    end_date: datetime | None = None
    timezone: str | None = None
    venue_name: str | None = None
    venue_address: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    postal_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    source_category: str | None = None
    source_tags: list[str] = field(default_factory=list)
    genre: str | None = None
    price_min: Decimal | None = None
    price_max: Decimal | None = None
    currency: str | None = None
    is_free: bool = False
    image_url: str | None = None
    thumbnail_url: str | None = None


class EventProvider(ABC):
    """Abstract base class for event discovery sources."""

    source: str

    @abstractmethod
    async def search(self, latitude: float, longitude: float, radius_miles: int) -> list[ParsedEvent]:
        """Search events around a point.

        Raises:
            UpstreamError: HTTP failure or undecodable payload.
        """
        ...


# --- Parsing helpers ---


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_local_date(value: str | None, tz_name: str | None) -> datetime | None:
    """Midnight of a ``YYYY-MM-DD`` local date, in the event timezone when known."""
    if not value:
        return None
    try:
        day = date.fromisoformat(value)
    except ValueError:
        return None
    zone = timezone.utc
    if tz_name:
        try:
            zone = get_zone(tz_name)
        except (KeyError, ValueError):
            zone = timezone.utc
    return datetime.combine(day, time.min, tzinfo=zone).astimezone(timezone.utc)


def _to_float(value: Any) -> float | None:  # noqa: ANN401
    try:
        return float(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def _to_decimal(value: Any) -> Decimal | None:  # noqa: ANN401
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _clean(value: Any) -> str | None:  # noqa: ANN401
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def parse_ticketmaster_event(raw: dict[str, Any]) -> ParsedEvent | None:
    """Map one Discovery API event onto ``ParsedEvent``.

    Returns None for records without an id, name or usable start date;
    those cannot be deduplicated.
    """
    source_id = _clean(raw.get("id"))
    name = _clean(raw.get("name"))
    if not source_id or not name:
        return None

    dates = raw.get("dates") or {}
    start = dates.get("start") or {}
    end = dates.get("end") or {}
    tz_name = _clean(dates.get("timezone"))
    start_date = _parse_datetime(start.get("dateTime")) or _parse_local_date(start.get("localDate"), tz_name)
    if start_date is None:
        return None

    venues = (raw.get("_embedded") or {}).get("venues") or []
    venue = venues[0] if venues else {}
    location = venue.get("location") or {}
    state = venue.get("state") or {}
    country = venue.get("country") or {}

    price_ranges = raw.get("priceRanges") or []
    price = price_ranges[0] if price_ranges else {}
    price_min = _to_decimal(price.get("min"))
    price_max = _to_decimal(price.get("max"))

    classifications = raw.get("classifications") or []
    classification = classifications[0] if classifications else {}
    category = _clean((classification.get("segment") or {}).get("name"))
    genre = _clean((classification.get("genre") or {}).get("name"))
    tags = [
        tag
        for tag in (
            genre,
            _clean((classification.get("subGenre") or {}).get("name")),
        )
        if tag and tag.lower() != "undefined"
    ]

    images = [img for img in (raw.get("images") or []) if _clean(img.get("url"))]
    widest = max(images, key=lambda img: img.get("width") or 0) if images else None

    return ParsedEvent(
        source="ticketmaster",
        source_id=source_id,
        name=name,
        start_date=start_date,
        description=_clean(raw.get("description")) or _clean(raw.get("info")),
        event_url=_clean(raw.get("url")),
        end_date=_parse_datetime(end.get("dateTime")),
        timezone=tz_name,
        venue_name=_clean(venue.get("name")),
        venue_address=_clean((venue.get("address") or {}).get("line1")),
        city=_clean((venue.get("city") or {}).get("name")),
        state=_clean(state.get("stateCode")) or _clean(state.get("name")),
        country=_clean(country.get("countryCode")) or _clean(country.get("name")),
        postal_code=_clean(venue.get("postalCode")),
        latitude=_to_float(location.get("latitude")),
        longitude=_to_float(location.get("longitude")),
        source_category=category,
        source_tags=tags,
        genre=genre if genre and genre.lower() != "undefined" else None,
        price_min=price_min,
        price_max=price_max,
        currency=_clean(price.get("currency")),
        is_free=not price_min and not price_max,
        image_url=_clean(widest.get("url")) if widest else None,
        thumbnail_url=_clean(images[0].get("url")) if images else None,
    )


class TicketmasterProvider(EventProvider):
    """Ticketmaster Discovery API v2 over httpx."""

    source = "ticketmaster"

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self.base_url = settings.ticketmaster_base_url.rstrip("/")
        self.api_key = settings.ticketmaster_api_key
        self.page_size = settings.ticketmaster_page_size
        self.timeout = settings.ticketmaster_timeout_seconds
        self._client = client

    async def _get(self, params: dict[str, Any]) -> httpx.Response:
        url = f"{self.base_url}/events.json"
        if self._client is not None:
            return await self._client.get(url, params=params, timeout=self.timeout)
        async with httpx.AsyncClient() as client:
            return await client.get(url, params=params, timeout=self.timeout)

    async def search(self, latitude: float, longitude: float, radius_miles: int) -> list[ParsedEvent]:
        params = {
            "apikey": self.api_key,
            "latlong": f"{latitude},{longitude}",
            "radius": str(radius_miles),
            "unit": "miles",
            "sort": "date,asc",
            "size": str(self.page_size),
        }
        try:
            response = await self._get(params)
        except httpx.HTTPError as e:
            raise UpstreamError(self.source, f"request failed: {e}") from e

        if response.status_code != 200:
            raise UpstreamError(self.source, response.text[:200], upstream_status=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError(self.source, f"invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise UpstreamError(self.source, "unexpected payload shape")

        raw_events = (payload.get("_embedded") or {}).get("events") or []
        events = []
        skipped = 0
        for raw in raw_events:
            parsed = parse_ticketmaster_event(raw) if isinstance(raw, dict) else None
            if parsed is None:
                skipped += 1
                continue
            events.append(parsed)
        if skipped:
            logger.warning("provider_events_skipped", source=self.source, skipped=skipped)
        logger.info("provider_search_complete", source=self.source, events=len(events))
        return events


_PROVIDERS: dict[str, type[EventProvider]] = {
    "ticketmaster": TicketmasterProvider,
}


def get_provider(source: str, client: httpx.AsyncClient | None = None) -> EventProvider:
    """Build the provider registered under ``source``."""
    provider_cls = _PROVIDERS.get(source)
    if provider_cls is None:
        msg = f"Unknown event source: {source}"
        raise ValidationError(msg)
    return provider_cls(get_settings(), client=client)  # type: ignore[call-arg]


def registered_sources() -> list[str]:
    return sorted(_PROVIDERS)
