"""Integration tests for community events and RSVPs."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from tests.conftest import auth_headers

BASE = "/api/v1/community-events"


def _in_days(days: float) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def event_body(**overrides) -> dict:
    body = {
        "name": "Saturday Trail Run",
        "start_date": _in_days(3),
        "latitude": 45.5152,
        "longitude": -122.6784,
        "venue_name": "Forest Park",
        "city": "Portland",
    }
    body.update(overrides)
    return body


async def _create(client, user, **overrides) -> dict:
    resp = await client.post(BASE, json=event_body(**overrides), headers=auth_headers(user.id))
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestCreateEvent:
    @pytest.mark.asyncio
    async def test_create_public_event(self, client, make_user):
        user = await make_user()
        data = await _create(client, user, max_attendees=10)

        assert data["creator_id"] == str(user.id)
        assert data["visibility"] == "public"
        assert data["name"] == "Saturday Trail Run"
        assert data["max_attendees"] == 10
        assert data["is_free"] is True
        assert data["is_cancelled"] is False
        assert data["attendee_count"] == 0

    @pytest.mark.asyncio
    async def test_priced_event_is_not_free(self, client, make_user):
        user = await make_user()
        data = await _create(client, user, price="15.00", currency="USD")
        assert data["is_free"] is False
        assert data["price"] == 15.0

    @pytest.mark.asyncio
    async def test_start_in_past_rejected(self, client, make_user):
        user = await make_user()
        resp = await client.post(BASE, json=event_body(start_date=_in_days(-1)), headers=auth_headers(user.id))
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Event cannot start in the past"

    @pytest.mark.asyncio
    async def test_end_before_start_rejected(self, client, make_user):
        user = await make_user()
        resp = await client.post(
            BASE,
            json=event_body(start_date=_in_days(3), end_date=_in_days(2)),
            headers=auth_headers(user.id),
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Event cannot end before it starts"

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, client, make_user):
        user = await make_user()
        resp = await client.post(BASE, json=event_body(name="   "), headers=auth_headers(user.id))
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_activity_type_rejected(self, client, make_user):
        user = await make_user()
        resp = await client.post(BASE, json=event_body(activity_type_id=9999), headers=auth_headers(user.id))
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Unknown activity type"

    @pytest.mark.asyncio
    async def test_invalid_capacity_is_422(self, client, make_user):
        user = await make_user()
        resp = await client.post(BASE, json=event_body(max_attendees=0), headers=auth_headers(user.id))
        assert resp.status_code == 422


class TestEventVisibility:
    @pytest.mark.asyncio
    async def test_nearby_lists_public_upcoming_events(self, client, make_user):
        host = await make_user()
        viewer = await make_user()
        later = await _create(client, host, name="Later Run", start_date=_in_days(5))
        sooner = await _create(client, host, name="Sooner Run", start_date=_in_days(1))
        await _create(client, host, name="Secret Run", visibility="private")
        cancelled = await _create(client, host, name="Cancelled Run")
        await client.post(f"{BASE}/{cancelled['id']}/cancel", json={}, headers=auth_headers(host.id))
        await _create(client, host, name="Seattle Run", latitude=47.6062, longitude=-122.3321)

        resp = await client.get(
            f"{BASE}/nearby",
            params={"latitude": 45.52, "longitude": -122.68, "radius_miles": 25},
            headers=auth_headers(viewer.id),
        )

        assert resp.status_code == 200
        assert [e["id"] for e in resp.json()["events"]] == [sooner["id"], later["id"]]

    @pytest.mark.asyncio
    async def test_private_event_hidden_from_strangers(self, client, make_user):
        host = await make_user()
        stranger = await make_user()
        event = await _create(client, host, visibility="private")

        resp = await client.get(f"{BASE}/{event['id']}", headers=auth_headers(stranger.id))
        assert resp.status_code == 404

        own = await client.get(f"{BASE}/{event['id']}", headers=auth_headers(host.id))
        assert own.status_code == 200

    @pytest.mark.asyncio
    async def test_private_event_visible_after_rsvp(self, client, make_user):
        host = await make_user()
        guest = await make_user()
        event = await _create(client, host, visibility="private")

        join = await client.post(f"{BASE}/{event['id']}/join", json={"status": "going"}, headers=auth_headers(guest.id))
        assert join.status_code == 200

        resp = await client.get(f"{BASE}/{event['id']}", headers=auth_headers(guest.id))
        assert resp.status_code == 200
        assert resp.json()["my_status"] == "going"

    @pytest.mark.asyncio
    async def test_unknown_event(self, client, make_user):
        user = await make_user()
        resp = await client.get(f"{BASE}/{uuid.uuid4()}", headers=auth_headers(user.id))
        assert resp.status_code == 404


class TestUpdateAndCancel:
    @pytest.mark.asyncio
    async def test_creator_updates_event(self, client, make_user):
        host = await make_user()
        event = await _create(client, host)

        resp = await client.patch(
            f"{BASE}/{event['id']}",
            json={"name": "Sunday Trail Run", "price": "5"},
            headers=auth_headers(host.id),
        )

        assert resp.status_code == 200
        assert resp.json()["name"] == "Sunday Trail Run"
        assert resp.json()["is_free"] is False

    @pytest.mark.asyncio
    async def test_only_creator_can_update(self, client, make_user):
        host = await make_user()
        other = await make_user()
        event = await _create(client, host)

        resp = await client.patch(f"{BASE}/{event['id']}", json={"name": "Hijacked"}, headers=auth_headers(other.id))

        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_capacity_below_going_count_rejected(self, client, make_user):
        host = await make_user()
        event = await _create(client, host)
        for _ in range(3):
            guest = await make_user()
            await client.post(f"{BASE}/{event['id']}/join", headers=auth_headers(guest.id))

        resp = await client.patch(f"{BASE}/{event['id']}", json={"max_attendees": 2}, headers=auth_headers(host.id))

        assert resp.status_code == 400
        assert resp.json()["detail"] == "3 people are already going"

    @pytest.mark.asyncio
    async def test_cancel_is_terminal(self, client, make_user):
        host = await make_user()
        event = await _create(client, host)
        headers = auth_headers(host.id)

        resp = await client.post(f"{BASE}/{event['id']}/cancel", json={"reason": "Storm warning"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["is_cancelled"] is True
        assert resp.json()["cancellation_reason"] == "Storm warning"
        assert resp.json()["cancelled_at"] is not None

        again = await client.post(f"{BASE}/{event['id']}/cancel", json={}, headers=headers)
        assert again.status_code == 409
        assert again.json()["detail"] == "Event is already cancelled"

        edit = await client.patch(f"{BASE}/{event['id']}", json={"name": "Back on"}, headers=headers)
        assert edit.status_code == 409

    @pytest.mark.asyncio
    async def test_only_creator_can_cancel(self, client, make_user):
        host = await make_user()
        other = await make_user()
        event = await _create(client, host)

        resp = await client.post(f"{BASE}/{event['id']}/cancel", headers=auth_headers(other.id))

        assert resp.status_code == 403


class TestRsvp:
    @pytest.mark.asyncio
    async def test_join_change_and_leave(self, client, make_user):
        host = await make_user()
        guest = await make_user()
        event = await _create(client, host)
        headers = auth_headers(guest.id)

        resp = await client.post(f"{BASE}/{event['id']}/join", headers=headers)
        assert resp.json() == {"event_id": event["id"], "status": "going", "attendee_count": 1}

        resp = await client.post(f"{BASE}/{event['id']}/join", json={"status": "maybe"}, headers=headers)
        assert resp.json()["status"] == "maybe"
        assert resp.json()["attendee_count"] == 0

        assert (await client.delete(f"{BASE}/{event['id']}/join", headers=headers)).status_code == 204
        again = await client.delete(f"{BASE}/{event['id']}/join", headers=headers)
        assert again.status_code == 404
        assert again.json()["detail"] == "You have not joined this event"

    @pytest.mark.asyncio
    async def test_full_event_rejects_going(self, client, make_user):
        host = await make_user()
        first = await make_user()
        second = await make_user()
        event = await _create(client, host, max_attendees=1)

        assert (await client.post(f"{BASE}/{event['id']}/join", headers=auth_headers(first.id))).status_code == 200
        full = await client.post(f"{BASE}/{event['id']}/join", headers=auth_headers(second.id))
        assert full.status_code == 409
        assert full.json()["detail"] == "Event is full"

        maybe = await client.post(
            f"{BASE}/{event['id']}/join", json={"status": "maybe"}, headers=auth_headers(second.id),
        )
        assert maybe.status_code == 200

        # re-confirming an existing seat does not count against capacity
        again = await client.post(f"{BASE}/{event['id']}/join", headers=auth_headers(first.id))
        assert again.status_code == 200

    @pytest.mark.asyncio
    async def test_join_cancelled_event(self, client, make_user):
        host = await make_user()
        guest = await make_user()
        event = await _create(client, host)
        await client.post(f"{BASE}/{event['id']}/cancel", headers=auth_headers(host.id))

        resp = await client.post(f"{BASE}/{event['id']}/join", headers=auth_headers(guest.id))

        assert resp.status_code == 409
        assert resp.json()["detail"] == "Event has been cancelled"

    @pytest.mark.asyncio
    async def test_invalid_status_is_422(self, client, make_user):
        host = await make_user()
        event = await _create(client, host)
        resp = await client.post(f"{BASE}/{event['id']}/join", json={"status": "perhaps"}, headers=auth_headers(host.id))
        assert resp.status_code == 422


class TestMyEvents:
    @pytest.mark.asyncio
    async def test_mine_and_joined(self, client, make_user):
        host = await make_user()
        guest = await make_user()
        first = await _create(client, host, name="First", start_date=_in_days(1))
        second = await _create(client, host, name="Second", start_date=_in_days(2))
        await client.post(f"{BASE}/{first['id']}/join", headers=auth_headers(guest.id))
        await client.post(f"{BASE}/{second['id']}/join", headers=auth_headers(guest.id))
        await client.post(f"{BASE}/{second['id']}/cancel", headers=auth_headers(host.id))

        mine = (await client.get(f"{BASE}/mine", headers=auth_headers(host.id))).json()
        assert [e["name"] for e in mine["events"]] == ["First", "Second"]

        joined = (await client.get(f"{BASE}/joined", headers=auth_headers(guest.id))).json()
        assert [e["name"] for e in joined["events"]] == ["First"]
        assert joined["events"][0]["my_status"] == "going"
        assert joined["events"][0]["attendee_count"] == 1
