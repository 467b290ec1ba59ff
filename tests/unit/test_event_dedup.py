"""Content hashing and merge rules for cached events."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from gtg.db.models import ExternalEvent
from gtg.events.dedup import content_hash, dedupe_batch, event_hash, merge_event
from gtg.events.provider import ParsedEvent

START = datetime(2026, 11, 14, 19, 30, tzinfo=timezone.utc)
RETRIEVED = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _parsed(**overrides) -> ParsedEvent:
    values = {"source": "ticketmaster", "source_id": "G5v0Z9", "name": "Trail Run Series", "start_date": START}
    values.update(overrides)
    return ParsedEvent(**values)


def _stored(**overrides) -> ExternalEvent:
    values = {
        "source": "ticketmaster",
        "source_id": "G5v0Z9",
        "name": "Trail Run Series",
        "start_date": START,
        "source_tags": [],
    }
    values.update(overrides)
    return ExternalEvent(**values)


class TestContentHash:
    def test_is_sha256_hex(self):
        key = content_hash("ticketmaster", "G5v0Z9", "Trail Run Series", START)
        assert len(key) == 64
        assert int(key, 16) >= 0

    def test_stable_across_timezones(self):
        """The same instant in another offset hashes identically."""
        pacific = START.astimezone(timezone(timedelta(hours=-8)))
        assert content_hash("ticketmaster", "1", "A", START) == content_hash("ticketmaster", "1", "A", pacific)

    def test_naive_start_taken_as_utc(self):
        naive = START.replace(tzinfo=None)
        assert content_hash("ticketmaster", "1", "A", START) == content_hash("ticketmaster", "1", "A", naive)

    def test_sub_second_ignored(self):
        later = START + timedelta(milliseconds=400)
        assert content_hash("ticketmaster", "1", "A", START) == content_hash("ticketmaster", "1", "A", later)

    def test_identity_fields_matter(self):
        base = content_hash("ticketmaster", "1", "A", START)
        assert content_hash("ticketmaster", "2", "A", START) != base
        assert content_hash("ticketmaster", "1", "B", START) != base
        assert content_hash("eventbrite", "1", "A", START) != base
        assert content_hash("ticketmaster", "1", "A", START + timedelta(hours=1)) != base

    def test_event_hash_matches_fields(self):
        event = _parsed()
        assert event_hash(event) == content_hash(event.source, event.source_id, event.name, event.start_date)


class TestMergeEvent:
    """A re-fetch only ever enriches the stored copy."""

    def test_longer_description_wins(self):
        stored = _stored(description="Short.")
        changed = merge_event(stored, _parsed(description="A much longer description of the race."), RETRIEVED)
        assert stored.description == "A much longer description of the race."
        assert "description" in changed

    def test_shorter_description_ignored(self):
        stored = _stored(description="A much longer description of the race.")
        merge_event(stored, _parsed(description="Short."), RETRIEVED)
        assert stored.description == "A much longer description of the race."

    def test_existing_url_kept(self):
        stored = _stored(event_url="https://example.com/old", image_url=None)
        merge_event(stored, _parsed(event_url="https://example.com/new", image_url="https://img/1.jpg"), RETRIEVED)
        assert stored.event_url == "https://example.com/old"
        assert stored.image_url == "https://img/1.jpg"

    def test_blanks_filled_present_values_kept(self):
        stored = _stored(venue_name="Riverside Park", city=None)
        changed = merge_event(stored, _parsed(venue_name="Other Venue", city="Portland"), RETRIEVED)
        assert stored.venue_name == "Riverside Park"
        assert stored.city == "Portland"
        assert changed == ["city"]

    def test_present_value_never_blanked(self):
        stored = _stored(description="Keep me", venue_name="Riverside Park")
        merge_event(stored, _parsed(description=None, venue_name="  "), RETRIEVED)
        assert stored.description == "Keep me"
        assert stored.venue_name == "Riverside Park"

    def test_price_fill_recomputes_is_free(self):
        stored = _stored(is_free=True)
        merge_event(stored, _parsed(price_min=Decimal("25.00"), price_max=Decimal("40.00")), RETRIEVED)
        assert stored.price_min == Decimal("25.00")
        assert stored.is_free is False

    def test_tags_filled_when_empty(self):
        stored = _stored(source_tags=[])
        merge_event(stored, _parsed(source_tags=["Running"]), RETRIEVED)
        assert stored.source_tags == ["Running"]

    def test_retrieval_metadata_refreshed(self):
        stored = _stored(retrieved_at=RETRIEVED - timedelta(days=2))
        changed = merge_event(stored, _parsed(), RETRIEVED, search_lat=45.5, search_long=-122.6, search_radius=25)
        assert stored.retrieved_at == RETRIEVED
        assert stored.search_location_lat == 45.5
        assert stored.search_radius_miles == 25
        assert changed == []


class TestDedupeBatch:
    def test_duplicates_collapse(self):
        batch = dedupe_batch([
            _parsed(description="Short"),
            _parsed(source_id="OTHER"),
            _parsed(description="Longer description", city="Portland"),
        ])
        assert len(batch) == 2
        first = batch[0][1]
        assert first.description == "Longer description"
        assert first.city == "Portland"

    def test_order_preserved(self):
        batch = dedupe_batch([_parsed(source_id="b"), _parsed(source_id="a")])
        assert [e.source_id for _, e in batch] == ["b", "a"]

    def test_empty(self):
        assert dedupe_batch([]) == []
