"""Ticketmaster Discovery API parsing and transport error handling."""

from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from gtg.config import get_settings
from gtg.errors import UpstreamError, ValidationError
from gtg.events.provider import TicketmasterProvider, get_provider, parse_ticketmaster_event, registered_sources


def tm_event(**overrides) -> dict:
    """A Discovery API event record shaped like the real payload."""
    event = {
        "id": "vvG1zZ9a8Kd3mP",
        "name": "Forest Park Trail Run",
        "url": "https://www.ticketmaster.com/event/vvG1zZ9a8Kd3mP",
        "info": "Bring water.",
        "dates": {
            "start": {"localDate": "2026-11-14", "dateTime": "2026-11-15T03:30:00Z"},
            "timezone": "America/Los_Angeles",
        },
        "classifications": [
            {
                "segment": {"name": "Sports"},
                "genre": {"name": "Running"},
                "subGenre": {"name": "Undefined"},
            }
        ],
        "priceRanges": [{"type": "standard", "currency": "USD", "min": 25.0, "max": 40.0}],
        "images": [
            {"url": "https://img.example.com/small.jpg", "width": 100},
            {"url": "https://img.example.com/large.jpg", "width": 1024},
        ],
        "_embedded": {
            "venues": [
                {
                    "name": "Forest Park",
                    "postalCode": "97210",
                    "city": {"name": "Portland"},
                    "state": {"name": "Oregon", "stateCode": "OR"},
                    "country": {"name": "United States Of America", "countryCode": "US"},
                    "address": {"line1": "NW 29th Ave"},
                    "location": {"longitude": "-122.7566", "latitude": "45.5462"},
                }
            ]
        },
    }
    event.update(overrides)
    return event


def tm_page(*events: dict) -> dict:
    if not events:
        return {"page": {"size": 100, "totalElements": 0}}
    return {"_embedded": {"events": list(events)}, "page": {"size": 100, "totalElements": len(events)}}


class TestParseTicketmasterEvent:
    def test_full_record(self):
        event = parse_ticketmaster_event(tm_event())
        assert event.source == "ticketmaster"
        assert event.source_id == "vvG1zZ9a8Kd3mP"
        assert event.start_date == datetime(2026, 11, 15, 3, 30, tzinfo=timezone.utc)
        assert event.timezone == "America/Los_Angeles"
        assert event.venue_name == "Forest Park"
        assert event.city == "Portland"
        assert event.state == "OR"
        assert event.country == "US"
        assert event.latitude == pytest.approx(45.5462)
        assert event.longitude == pytest.approx(-122.7566)
        assert event.source_category == "Sports"
        assert event.genre == "Running"
        assert event.source_tags == ["Running"]
        assert event.price_min == Decimal("25.0")
        assert event.currency == "USD"
        assert event.is_free is False
        assert event.image_url == "https://img.example.com/large.jpg"
        assert event.thumbnail_url == "https://img.example.com/small.jpg"
        assert event.description == "Bring water."

    def test_local_date_only_uses_event_timezone(self):
        raw = tm_event(dates={"start": {"localDate": "2026-11-14"}, "timezone": "America/Los_Angeles"})
        event = parse_ticketmaster_event(raw)
        assert event.start_date == datetime(2026, 11, 14, 8, 0, tzinfo=timezone.utc)

    def test_no_price_is_free(self):
        raw = tm_event()
        del raw["priceRanges"]
        event = parse_ticketmaster_event(raw)
        assert event.price_min is None
        assert event.is_free is True

    @pytest.mark.parametrize(
        "overrides",
        [
            {"id": None},
            {"name": "   "},
            {"dates": {"start": {"dateTBD": True}}},
            {"dates": {"start": {"dateTime": "not-a-date"}}},
        ],
    )
    def test_unusable_records_skipped(self, overrides):
        assert parse_ticketmaster_event(tm_event(**overrides)) is None

    def test_missing_venue(self):
        raw = tm_event()
        del raw["_embedded"]
        event = parse_ticketmaster_event(raw)
        assert event.latitude is None
        assert event.venue_name is None


def _provider(handler) -> TicketmasterProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TicketmasterProvider(get_settings(), client=client)


class TestTicketmasterSearch:
    @pytest.mark.asyncio
    async def test_query_parameters(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=tm_page(tm_event()))

        events = await _provider(handler).search(45.5, -122.6, 25)
        assert len(events) == 1
        params = seen[0].url.params
        assert seen[0].url.path.endswith("/events.json")
        assert params["latlong"] == "45.5,-122.6"
        assert params["radius"] == "25"
        assert params["unit"] == "miles"

    @pytest.mark.asyncio
    async def test_empty_page(self):
        events = await _provider(lambda request: httpx.Response(200, json=tm_page())).search(45.5, -122.6, 25)
        assert events == []

    @pytest.mark.asyncio
    async def test_bad_records_skipped(self):
        page = tm_page(tm_event(), tm_event(id=None), "garbage")
        events = await _provider(lambda request: httpx.Response(200, json=page)).search(45.5, -122.6, 25)
        assert len(events) == 1

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        provider = _provider(lambda request: httpx.Response(401, text="Invalid ApiKey"))
        with pytest.raises(UpstreamError) as exc_info:
            await provider.search(45.5, -122.6, 25)
        assert exc_info.value.upstream_status == 401
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        provider = _provider(lambda request: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(UpstreamError, match="invalid JSON"):
            await provider.search(45.5, -122.6, 25)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(UpstreamError, match="request failed"):
            await _provider(handler).search(45.5, -122.6, 25)


class TestProviderRegistry:
    def test_registered(self):
        assert registered_sources() == ["ticketmaster"]
        assert isinstance(get_provider("ticketmaster"), TicketmasterProvider)

    def test_unknown_source(self):
        with pytest.raises(ValidationError, match="Unknown event source"):
            get_provider("eventbrite")
