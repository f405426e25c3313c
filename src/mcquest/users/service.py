"""Player lookups, account upsert for in-game linking and admin management."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.db.models import ROLE_PLAYER, User
from mcquest.errors import DuplicateNameError, UserNotFoundError

logger = structlog.get_logger()


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_uuid(db: AsyncSession, uuid_mc: str) -> User | None:
    """Fetch a user by Minecraft account UUID."""
    result = await db.execute(select(User).where(User.uuid_mc == uuid_mc))
    return result.scalar_one_or_none()


async def upsert_linked_user(db: AsyncSession, uuid_mc: str, username: str) -> tuple[User, bool]:
    """
    Get or create the player behind a Minecraft account and stamp the login.

    Returns:
        Tuple of (user, created).
    """
    now = datetime.now(timezone.utc)
    user = await get_user_by_uuid(db, uuid_mc)
    if user is not None:
        user.username = username
        user.last_login = now
        await db.flush()
        return user, False

    user = User(
        uuid_mc=uuid_mc,
        username=username,
        role=ROLE_PLAYER,
        created_at=now,
        last_login=now,
    )
    db.add(user)
    await db.flush()
    logger.info("user_created", user_id=user.id, uuid_mc=uuid_mc)
    return user, True


async def list_users(db: AsyncSession, limit: int = 50, offset: int = 0) -> list[User]:
    result = await db.execute(select(User).order_by(User.id).limit(limit).offset(offset))
    return list(result.scalars().all())


async def update_user(db: AsyncSession, user_id: int, **changes: Any) -> User:
    """Apply an admin edit to a player's profile. Raises on an unknown id or a taken email."""
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise UserNotFoundError
    try:
        async with db.begin_nested():
            for field in ("username", "email", "role"):
                if field in changes:
                    setattr(user, field, changes[field])
    except IntegrityError:
        raise DuplicateNameError(f"Email '{changes.get('email')}' already in use") from None
    logger.info("user_updated", user_id=user_id, fields=sorted(changes))
    return user


async def delete_user(db: AsyncSession, user_id: int) -> None:
    """Delete a player; memberships, progress, rewards, notifications and badges cascade."""
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise UserNotFoundError
    await db.delete(user)
    await db.flush()
    logger.info("user_deleted", user_id=user_id)
