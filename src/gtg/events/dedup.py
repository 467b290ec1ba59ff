"""Content hashing and merge rules for cached external events.

The same provider event fetched twice must map to one row: the content hash
is the identity, and a re-fetch only ever enriches the stored copy.
"""

from __future__ import annotations

import hashlib
from datetime import datetime
from typing import Any

from gtg.day_utils import ensure_utc
from gtg.events.provider import ParsedEvent

# "existing wins if present, else new"
_KEEP_EXISTING_FIELDS = ("event_url", "image_url", "thumbnail_url")

# Filled only when blank on the stored row
_FILL_BLANK_FIELDS = (
    "end_date",
    "timezone",
    "venue_name",
    "venue_address",
    "city",
    "state",
    "country",
    "postal_code",
    "latitude",
    "longitude",
    "source_category",
    "genre",
    "price_min",
    "price_max",
    "currency",
)


def content_hash(source: str, source_id: str, name: str, start_date: datetime) -> str:
    """SHA-256 hex of ``source:source_id:name:start_epoch_seconds``."""
    epoch = int(ensure_utc(start_date).timestamp())
    return hashlib.sha256(f"{source}:{source_id}:{name}:{epoch}".encode()).hexdigest()


def event_hash(event: ParsedEvent) -> str:
    return content_hash(event.source, event.source_id, event.name, event.start_date)


def _is_blank(value: Any) -> bool:  # noqa: ANN401
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


def merge_event(
    existing: Any,  # noqa: ANN401
    incoming: ParsedEvent,
    retrieved_at: datetime,
    search_lat: float | None = None,
    search_long: float | None = None,
    search_radius: int | None = None,
) -> list[str]:
    """
    Fold a re-fetched event into the stored one in place.

    - description: the longer text wins
    - URLs and images: the stored value wins when present
    - other descriptive fields: only blanks are filled
    - retrieval metadata is always refreshed

    A present value is never replaced by a blank one. Returns the names of
    descriptive fields that changed.
    """
    changed: list[str] = []

    new_description = incoming.description
    old_description = existing.description
    if not _is_blank(new_description) and (
        _is_blank(old_description) or len(new_description.strip()) > len(old_description.strip())
    ):
        existing.description = new_description
        changed.append("description")

    for name in _KEEP_EXISTING_FIELDS + _FILL_BLANK_FIELDS:
        new_value = getattr(incoming, name)
        if _is_blank(getattr(existing, name)) and not _is_blank(new_value):
            setattr(existing, name, new_value)
            changed.append(name)

    if _is_blank(existing.source_tags) and incoming.source_tags:
        existing.source_tags = list(incoming.source_tags)
        changed.append("source_tags")

    if "price_min" in changed or "price_max" in changed:
        existing.is_free = not existing.price_min and not existing.price_max

    existing.retrieved_at = retrieved_at
    if search_lat is not None and search_long is not None:
        existing.search_location_lat = search_lat
        existing.search_location_long = search_long
    if search_radius is not None:
        existing.search_radius_miles = search_radius
    return changed


def dedupe_batch(events: list[ParsedEvent]) -> list[tuple[str, ParsedEvent]]:
    """Collapse duplicates within one provider response, merging later copies into the first."""
    by_hash: dict[str, ParsedEvent] = {}
    for event in events:
        key = event_hash(event)
        first = by_hash.get(key)
        if first is None:
            by_hash[key] = event
            continue
        if not _is_blank(event.description) and (
            _is_blank(first.description) or len(event.description) > len(first.description)
        ):
            first.description = event.description
        for name in _KEEP_EXISTING_FIELDS + _FILL_BLANK_FIELDS:
            if _is_blank(getattr(first, name)) and not _is_blank(getattr(event, name)):
                setattr(first, name, getattr(event, name))
    return list(by_hash.items())
