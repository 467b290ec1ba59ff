"""Follow graph state machine.

Per ordered pair (follower, target) the relationship is in one of three states:

    none       -- no edge, no pending request
    requested  -- pending FollowRequest (target is private)
    following  -- FollowEdge exists

Every write is an insert-or-no-op against the unique constraints on
``user_follows`` and ``follow_requests``, so concurrent calls for the same
pair converge on a single row without application-level locking.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Literal

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gtg.db.models import FollowEdge, FollowRequest, User
from gtg.db.upsert import insert_for
from gtg.errors import NotAuthorizedError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

FollowState = Literal["none", "requested", "following"]

VALID_TRANSITIONS: dict[str, list[str]] = {
    "none": ["requested", "following"],
    "requested": ["following", "none"],
    "following": ["none"],
}


def validate_transition(current: str, target: str) -> None:
    """Raise ValueError if current -> target is not a legal follow transition."""
    if target not in VALID_TRANSITIONS.get(current, []):
        msg = f"Invalid transition: {current} -> {target}"
        raise ValueError(msg)


@dataclass
class FollowResult:
    """Outcome of a follow transition."""

    success: bool
    state: FollowState
    message: str


# --- Queries ---


async def is_following(db: AsyncSession, follower_id: uuid.UUID, following_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(FollowEdge.id).where(
            FollowEdge.follower_id == follower_id,
            FollowEdge.following_id == following_id,
        )
    )
    return result.first() is not None


async def _get_request(db: AsyncSession, requester_id: uuid.UUID, requested_id: uuid.UUID) -> FollowRequest | None:
    result = await db.execute(
        select(FollowRequest).where(
            FollowRequest.requester_id == requester_id,
            FollowRequest.requested_id == requested_id,
        )
    )
    return result.scalar_one_or_none()


async def get_follow_state(db: AsyncSession, follower_id: uuid.UUID, target_id: uuid.UUID) -> FollowState:
    """Current state of the ordered pair."""
    if await is_following(db, follower_id, target_id):
        return "following"
    request = await _get_request(db, follower_id, target_id)
    if request is not None and request.status == "pending":
        return "requested"
    return "none"


async def get_follower_count(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(select(func.count()).where(FollowEdge.following_id == user_id))
    return result.scalar_one()


async def get_following_count(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(select(func.count()).where(FollowEdge.follower_id == user_id))
    return result.scalar_one()


async def list_followers(db: AsyncSession, user_id: uuid.UUID) -> list[User]:
    result = await db.execute(
        select(User)
        .join(FollowEdge, FollowEdge.follower_id == User.id)
        .where(FollowEdge.following_id == user_id)
        .order_by(FollowEdge.created_at.desc())
    )
    return list(result.scalars().all())


async def list_following(db: AsyncSession, user_id: uuid.UUID) -> list[User]:
    result = await db.execute(
        select(User)
        .join(FollowEdge, FollowEdge.following_id == User.id)
        .where(FollowEdge.follower_id == user_id)
        .order_by(FollowEdge.created_at.desc())
    )
    return list(result.scalars().all())


async def list_received_requests(db: AsyncSession, user_id: uuid.UUID) -> list[tuple[FollowRequest, User]]:
    """Pending requests addressed to ``user_id`` with the requester's profile, newest first."""
    result = await db.execute(
        select(FollowRequest, User)
        .join(User, FollowRequest.requester_id == User.id)
        .where(FollowRequest.requested_id == user_id, FollowRequest.status == "pending")
        .order_by(FollowRequest.created_at.desc())
    )
    return [(row.FollowRequest, row.User) for row in result]


async def list_sent_requests(db: AsyncSession, user_id: uuid.UUID) -> list[tuple[FollowRequest, User]]:
    """Pending requests sent by ``user_id`` with the target's profile, newest first."""
    result = await db.execute(
        select(FollowRequest, User)
        .join(User, FollowRequest.requested_id == User.id)
        .where(FollowRequest.requester_id == user_id, FollowRequest.status == "pending")
        .order_by(FollowRequest.created_at.desc())
    )
    return [(row.FollowRequest, row.User) for row in result]


async def can_view_activities(db: AsyncSession, viewer_id: uuid.UUID, owner: User) -> bool:
    """Owner, public account, or an active follow edge to a private owner."""
    if viewer_id == owner.id or not owner.is_private:
        return True
    return await is_following(db, viewer_id, owner.id)


# --- Inserts (no-op on conflict) ---


async def insert_follow_edge(db: AsyncSession, follower_id: uuid.UUID, following_id: uuid.UUID) -> bool:
    """Insert an edge. Returns False if it already existed."""
    stmt = (
        insert_for(db, FollowEdge)
        .values(follower_id=follower_id, following_id=following_id)
        .on_conflict_do_nothing(index_elements=["follower_id", "following_id"])
        .returning(FollowEdge.id)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none() is not None


async def insert_follow_request(db: AsyncSession, requester_id: uuid.UUID, requested_id: uuid.UUID) -> bool:
    """Insert a pending request. Returns False if a row for the pair already existed."""
    stmt = (
        insert_for(db, FollowRequest)
        .values(requester_id=requester_id, requested_id=requested_id, status="pending")
        .on_conflict_do_nothing(index_elements=["requester_id", "requested_id"])
        .returning(FollowRequest.id)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none() is not None


async def _reopen_request(db: AsyncSession, requester_id: uuid.UUID, requested_id: uuid.UUID) -> bool:
    """Flip a stale accepted/rejected row back to pending. False if it was already pending."""
    result = await db.execute(
        update(FollowRequest)
        .where(
            FollowRequest.requester_id == requester_id,
            FollowRequest.requested_id == requested_id,
            FollowRequest.status != "pending",
        )
        .values(status="pending", created_at=func.now(), updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _load_target(db: AsyncSession, target_id: uuid.UUID) -> User:
    target = await db.get(User, target_id)
    if target is None:
        msg = "User not found"
        raise NotFoundError(msg)
    return target


# --- Transitions ---


async def send_follow_request(db: AsyncSession, follower_id: uuid.UUID, target_id: uuid.UUID) -> FollowResult:
    """
    Follow a public account directly or request to follow a private one.

    "Already following" and "already pending" are reported as unsuccessful
    results rather than errors.

    Raises:
        ValidationError: On self-follow.
        NotFoundError: If the target does not exist.
    """
    if follower_id == target_id:
        msg = "You cannot follow yourself"
        raise ValidationError(msg)

    target = await _load_target(db, target_id)
    current = await get_follow_state(db, follower_id, target_id)
    if current == "following":
        return FollowResult(success=False, state="following", message="Already following this user")
    if current == "requested":
        return FollowResult(success=False, state="requested", message="Follow request already sent")

    if not target.is_private:
        validate_transition(current, "following")
        if not await insert_follow_edge(db, follower_id, target_id):
            return FollowResult(success=False, state="following", message="Already following this user")
        logger.info("Follow created: %s -> %s", follower_id, target_id)
        return FollowResult(success=True, state="following", message="Now following")

    validate_transition(current, "requested")
    created = await insert_follow_request(db, follower_id, target_id)
    if not created and not await _reopen_request(db, follower_id, target_id):
        # Lost a race with a concurrent send for the same pair
        return FollowResult(success=False, state="requested", message="Follow request already sent")
    logger.info("Follow request sent: %s -> %s", follower_id, target_id)
    return FollowResult(success=True, state="requested", message="Follow request sent")


async def _get_pending(db: AsyncSession, requester_id: uuid.UUID, requested_id: uuid.UUID) -> FollowRequest:
    request = await _get_request(db, requester_id, requested_id)
    if request is None or request.status != "pending":
        msg = "No pending follow request"
        raise NotFoundError(msg)
    return request


async def accept_follow_request(
    db: AsyncSession,
    requester_id: uuid.UUID,
    requested_id: uuid.UUID,
    actor_id: uuid.UUID,
) -> FollowResult:
    """Accept a pending request. Only the requested user may do this."""
    if actor_id != requested_id:
        msg = "Only the requested user can accept this follow request"
        raise NotAuthorizedError(msg)

    request = await _get_pending(db, requester_id, requested_id)
    validate_transition("requested", "following")

    await insert_follow_edge(db, requester_id, requested_id)
    request.status = "accepted"
    await db.flush()
    logger.info("Follow request accepted: %s -> %s", requester_id, requested_id)
    return FollowResult(success=True, state="following", message="Follow request accepted")


async def reject_follow_request(
    db: AsyncSession,
    requester_id: uuid.UUID,
    requested_id: uuid.UUID,
    actor_id: uuid.UUID,
) -> FollowResult:
    """Reject a pending request. The row is removed so the requester may ask again."""
    if actor_id != requested_id:
        msg = "Only the requested user can reject this follow request"
        raise NotAuthorizedError(msg)

    request = await _get_pending(db, requester_id, requested_id)
    validate_transition("requested", "none")
    await db.delete(request)
    await db.flush()
    return FollowResult(success=True, state="none", message="Follow request rejected")


async def cancel_follow_request(
    db: AsyncSession,
    requester_id: uuid.UUID,
    requested_id: uuid.UUID,
    actor_id: uuid.UUID,
) -> FollowResult:
    """Withdraw a pending request. Only the requester may do this."""
    if actor_id != requester_id:
        msg = "Only the requester can cancel this follow request"
        raise NotAuthorizedError(msg)

    request = await _get_pending(db, requester_id, requested_id)
    validate_transition("requested", "none")
    await db.delete(request)
    await db.flush()
    return FollowResult(success=True, state="none", message="Follow request cancelled")


async def get_request_by_id(db: AsyncSession, request_id: int) -> FollowRequest:
    request = await db.get(FollowRequest, request_id)
    if request is None:
        msg = "Follow request not found"
        raise NotFoundError(msg)
    return request


async def unfollow(db: AsyncSession, follower_id: uuid.UUID, target_id: uuid.UUID) -> FollowResult:
    """Remove the edge and any accepted request left behind for the pair."""
    result = await db.execute(
        delete(FollowEdge).where(
            FollowEdge.follower_id == follower_id,
            FollowEdge.following_id == target_id,
        )
    )
    if result.rowcount == 0:
        return FollowResult(success=False, state="none", message="Not following this user")

    await db.execute(
        delete(FollowRequest).where(
            and_(
                FollowRequest.requester_id == follower_id,
                FollowRequest.requested_id == target_id,
                FollowRequest.status == "accepted",
            )
        )
    )
    logger.info("Unfollowed: %s -> %s", follower_id, target_id)
    return FollowResult(success=True, state="none", message="Unfollowed")


async def toggle_follow(db: AsyncSession, follower_id: uuid.UUID, target_id: uuid.UUID) -> FollowResult:
    """
    Deprecated one-call follow/unfollow for public accounts.

    Refuses to create an edge to a private account unless an accepted
    request already exists, so the request gate cannot be bypassed.
    """
    if follower_id == target_id:
        msg = "You cannot follow yourself"
        raise ValidationError(msg)

    target = await _load_target(db, target_id)
    if await is_following(db, follower_id, target_id):
        return await unfollow(db, follower_id, target_id)

    if target.is_private:
        request = await _get_request(db, follower_id, target_id)
        if request is None or request.status != "accepted":
            msg = "This account is private. Send a follow request instead."
            raise NotAuthorizedError(msg)

    await insert_follow_edge(db, follower_id, target_id)
    return FollowResult(success=True, state="following", message="Now following")
