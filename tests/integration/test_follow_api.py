"""Integration: follow graph state machine through the API."""

from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient

from gtg.social.follow_service import get_follow_state, insert_follow_edge, insert_follow_request
from tests.conftest import auth_headers


async def _received_request_id(client: AsyncClient, user_id: uuid.UUID) -> int:
    response = await client.get("/api/v1/follow-requests/received", headers=auth_headers(user_id))
    requests = response.json()["requests"]
    assert len(requests) == 1
    return requests[0]["id"]


class TestPublicFollow:
    @pytest.mark.asyncio
    async def test_follow_public_is_immediate(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")

        response = await client.post(f"/api/v1/users/{bob.id}/follow", headers=auth_headers(alice.id))
        assert response.status_code == 200
        assert response.json() == {"success": True, "state": "following", "message": "Now following"}

        state = await client.get(f"/api/v1/users/{bob.id}/follow-state", headers=auth_headers(alice.id))
        assert state.json()["state"] == "following"

        # one direction only
        reverse = await client.get(f"/api/v1/users/{alice.id}/follow-state", headers=auth_headers(bob.id))
        assert reverse.json()["state"] == "none"

    @pytest.mark.asyncio
    async def test_follow_twice_reports_already_following(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        await client.post(f"/api/v1/users/{bob.id}/follow", headers=auth_headers(alice.id))
        response = await client.post(f"/api/v1/users/{bob.id}/follow", headers=auth_headers(alice.id))
        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["state"] == "following"

        followers = await client.get(f"/api/v1/users/{bob.id}/followers", headers=auth_headers(alice.id))
        assert followers.json()["count"] == 1

    @pytest.mark.asyncio
    async def test_self_follow_rejected(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        response = await client.post(f"/api/v1/users/{alice.id}/follow", headers=auth_headers(alice.id))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_follow_unknown_user(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        response = await client.post(f"/api/v1/users/{uuid.uuid4()}/follow", headers=auth_headers(alice.id))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unfollow(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        await client.post(f"/api/v1/users/{bob.id}/follow", headers=auth_headers(alice.id))

        response = await client.delete(f"/api/v1/users/{bob.id}/follow", headers=auth_headers(alice.id))
        assert response.json()["state"] == "none"
        assert response.json()["success"] is True

        again = await client.delete(f"/api/v1/users/{bob.id}/follow", headers=auth_headers(alice.id))
        assert again.json()["success"] is False

    @pytest.mark.asyncio
    async def test_toggle(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        first = await client.post(f"/api/v1/users/{bob.id}/follow/toggle", headers=auth_headers(alice.id))
        assert first.json()["state"] == "following"
        second = await client.post(f"/api/v1/users/{bob.id}/follow/toggle", headers=auth_headers(alice.id))
        assert second.json()["state"] == "none"


class TestPrivateFollow:
    @pytest.mark.asyncio
    async def test_request_accept_flow(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        carol = await make_user("carol", is_private=True)

        response = await client.post(f"/api/v1/users/{carol.id}/follow", headers=auth_headers(alice.id))
        assert response.json()["state"] == "requested"

        sent = await client.get("/api/v1/follow-requests/sent", headers=auth_headers(alice.id))
        assert sent.json()["requests"][0]["user"]["username"] == "carol"

        request_id = await _received_request_id(client, carol.id)
        accepted = await client.post(f"/api/v1/follow-requests/{request_id}/accept", headers=auth_headers(carol.id))
        assert accepted.status_code == 200
        assert accepted.json()["state"] == "following"

        state = await client.get(f"/api/v1/users/{carol.id}/follow-state", headers=auth_headers(alice.id))
        assert state.json()["state"] == "following"
        received = await client.get("/api/v1/follow-requests/received", headers=auth_headers(carol.id))
        assert received.json()["count"] == 0

    @pytest.mark.asyncio
    async def test_duplicate_request_not_resent(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        carol = await make_user("carol", is_private=True)
        await client.post(f"/api/v1/users/{carol.id}/follow", headers=auth_headers(alice.id))
        again = await client.post(f"/api/v1/users/{carol.id}/follow", headers=auth_headers(alice.id))
        assert again.json() == {"success": False, "state": "requested", "message": "Follow request already sent"}

    @pytest.mark.asyncio
    async def test_only_target_can_accept(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        carol = await make_user("carol", is_private=True)
        await client.post(f"/api/v1/users/{carol.id}/follow", headers=auth_headers(alice.id))
        request_id = await _received_request_id(client, carol.id)

        response = await client.post(f"/api/v1/follow-requests/{request_id}/accept", headers=auth_headers(alice.id))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_reject_allows_new_request(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        carol = await make_user("carol", is_private=True)
        await client.post(f"/api/v1/users/{carol.id}/follow", headers=auth_headers(alice.id))
        request_id = await _received_request_id(client, carol.id)

        rejected = await client.post(f"/api/v1/follow-requests/{request_id}/reject", headers=auth_headers(carol.id))
        assert rejected.json()["state"] == "none"

        again = await client.post(f"/api/v1/users/{carol.id}/follow", headers=auth_headers(alice.id))
        assert again.json()["success"] is True
        assert again.json()["state"] == "requested"

    @pytest.mark.asyncio
    async def test_cancel_request(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        carol = await make_user("carol", is_private=True)
        await client.post(f"/api/v1/users/{carol.id}/follow", headers=auth_headers(alice.id))
        request_id = await _received_request_id(client, carol.id)

        forbidden = await client.delete(f"/api/v1/follow-requests/{request_id}", headers=auth_headers(carol.id))
        assert forbidden.status_code == 403

        cancelled = await client.delete(f"/api/v1/follow-requests/{request_id}", headers=auth_headers(alice.id))
        assert cancelled.json()["state"] == "none"

        missing = await client.delete(f"/api/v1/follow-requests/{request_id}", headers=auth_headers(alice.id))
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_accept_twice_is_not_found(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        carol = await make_user("carol", is_private=True)
        await client.post(f"/api/v1/users/{carol.id}/follow", headers=auth_headers(alice.id))
        request_id = await _received_request_id(client, carol.id)
        await client.post(f"/api/v1/follow-requests/{request_id}/accept", headers=auth_headers(carol.id))
        again = await client.post(f"/api/v1/follow-requests/{request_id}/accept", headers=auth_headers(carol.id))
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_toggle_cannot_bypass_request(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        carol = await make_user("carol", is_private=True)
        response = await client.post(f"/api/v1/users/{carol.id}/follow/toggle", headers=auth_headers(alice.id))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_private_graph_hidden_from_strangers(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        carol = await make_user("carol", is_private=True)
        response = await client.get(f"/api/v1/users/{carol.id}/followers", headers=auth_headers(alice.id))
        assert response.status_code == 403
        own = await client.get(f"/api/v1/users/{carol.id}/followers", headers=auth_headers(carol.id))
        assert own.status_code == 200

    @pytest.mark.asyncio
    async def test_going_public_keeps_pending_requests(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        carol = await make_user("carol", is_private=True)
        await client.post(f"/api/v1/users/{carol.id}/follow", headers=auth_headers(alice.id))
        await client.patch("/api/v1/users/me", json={"is_private": False}, headers=auth_headers(carol.id))

        state = await client.get(f"/api/v1/users/{carol.id}/follow-state", headers=auth_headers(alice.id))
        assert state.json()["state"] == "requested"


class TestConcurrentInserts:
    """Insert-or-no-op writes converge on one row per pair."""

    @pytest.mark.asyncio
    async def test_edge_insert_idempotent(self, db_session, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        assert await insert_follow_edge(db_session, alice.id, bob.id) is True
        assert await insert_follow_edge(db_session, alice.id, bob.id) is False
        await db_session.commit()
        assert await get_follow_state(db_session, alice.id, bob.id) == "following"

    @pytest.mark.asyncio
    async def test_request_insert_idempotent(self, db_session, make_user):
        alice = await make_user("alice")
        carol = await make_user("carol", is_private=True)
        assert await insert_follow_request(db_session, alice.id, carol.id) is True
        assert await insert_follow_request(db_session, alice.id, carol.id) is False
        await db_session.commit()
        assert await get_follow_state(db_session, alice.id, carol.id) == "requested"
