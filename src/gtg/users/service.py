"""User profile business logic."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError

from gtg.db.models import User
from gtg.errors import ConflictError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 50


def validate_username(username: str) -> str:
    """Strip and length-check a username."""
    cleaned = username.strip()
    if len(cleaned) < USERNAME_MIN_LENGTH:
        msg = f"Username must be at least {USERNAME_MIN_LENGTH} characters"
        raise ValidationError(msg)
    if len(cleaned) > USERNAME_MAX_LENGTH:
        msg = f"Username must be at most {USERNAME_MAX_LENGTH} characters"
        raise ValidationError(msg)
    return cleaned


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    """Fetch a user or raise NotFoundError."""
    user = await db.get(User, user_id)
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)
    return user


async def _ensure_username_free(db: AsyncSession, username: str, exclude: uuid.UUID | None = None) -> None:
    query = select(User.id).where(func.lower(User.username) == username.lower())
    if exclude is not None:
        query = query.where(User.id != exclude)
    if (await db.execute(query)).first() is not None:
        msg = "Username already taken"
        raise ConflictError(msg)


async def create_profile(
    db: AsyncSession,
    user_id: uuid.UUID,
    username: str,
    email: str | None = None,
    is_private: bool = False,
) -> User:
    """
    Create the profile row for an identity issued by the auth provider.

    Raises:
        ValidationError: If the username is too short or too long.
        ConflictError: If the profile already exists or the username is taken.
    """
    username = validate_username(username)
    if await db.get(User, user_id) is not None:
        msg = "Profile already exists"
        raise ConflictError(msg)
    await _ensure_username_free(db, username)

    user = User(id=user_id, username=username, email=email, is_private=is_private)
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        msg = "Username or email already in use"
        raise ConflictError(msg) from e

    logger.info("profile_created", user_id=str(user_id))
    return user


async def update_profile(
    db: AsyncSession,
    user: User,
    username: str | None = None,
    is_private: bool | None = None,
    profile_picture_url: str | None = None,
) -> User:
    """
    Update mutable profile fields. ``None`` leaves a field unchanged.

    Switching a private account to public does not auto-accept pending requests.
    """
    if username is not None:
        username = validate_username(username)
        await _ensure_username_free(db, username, exclude=user.id)
        user.username = username
    if is_private is not None:
        user.is_private = is_private
    if profile_picture_url is not None:
        user.profile_picture_url = profile_picture_url or None

    await db.flush()
    return user


async def search_users(db: AsyncSession, query: str, limit: int = 20) -> list[User]:
    """Case-insensitive substring search on username."""
    term = query.strip()
    if not term:
        return []
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    result = await db.execute(
        select(User)
        .where(func.lower(User.username).like(f"%{escaped.lower()}%", escape="\\"))
        .order_by(User.username)
        .limit(limit)
    )
    return list(result.scalars().all())


async def delete_account(db: AsyncSession, user_id: uuid.UUID) -> None:
    """Delete the profile. Activities, likes, follows and RSVPs cascade."""
    result = await db.execute(delete(User).where(User.id == user_id))
    if result.rowcount == 0:
        msg = "User not found"
        raise NotFoundError(msg)
    logger.info("account_deleted", user_id=str(user_id))
