"""Challenge catalog queries, admin writes and statistics."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from mcquest.db.dialect import as_utc
from mcquest.db.models import (
    MEMBERSHIP_ACCEPTED,
    MEMBERSHIP_COMPLETED,
    Challenge,
    ChallengeMembership,
    ChallengeTask,
    User,
)
from mcquest.errors import ChallengeNotFoundError

logger = structlog.get_logger()

_UPDATABLE_FIELDS = ("title", "description", "type", "expires_at", "reward_xp", "reward_points", "reward_item")


def is_active(challenge: Challenge, now: datetime | None = None) -> bool:
    """A challenge is active when it has no expiry or the expiry is in the future."""
    expires_at = as_utc(challenge.expires_at)
    if expires_at is None:
        return True
    return expires_at > (now or datetime.now(timezone.utc))


async def get_challenge(db: AsyncSession, challenge_id: int) -> Challenge:
    challenge = await db.get(Challenge, challenge_id)
    if challenge is None:
        raise ChallengeNotFoundError
    return challenge


async def get_challenge_with_tasks(db: AsyncSession, challenge_id: int) -> Challenge:
    result = await db.execute(
        select(Challenge).where(Challenge.id == challenge_id).options(selectinload(Challenge.tasks))
    )
    challenge = result.scalar_one_or_none()
    if challenge is None:
        raise ChallengeNotFoundError
    return challenge


async def list_challenges(
    db: AsyncSession,
    type_: str | None = None,
    active_only: bool = False,
    with_tasks: bool = False,
) -> list[Challenge]:
    """List challenges, newest first, optionally filtered by type and activity."""
    stmt = select(Challenge).order_by(Challenge.created_at.desc(), Challenge.id.desc())
    if type_ is not None:
        stmt = stmt.where(Challenge.type == type_)
    if active_only:
        stmt = stmt.where(or_(Challenge.expires_at.is_(None), Challenge.expires_at > datetime.now(timezone.utc)))
    if with_tasks:
        stmt = stmt.options(selectinload(Challenge.tasks))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def create_challenge(db: AsyncSession, creator_id: int | None, **fields: Any) -> Challenge:
    now = datetime.now(timezone.utc)
    challenge = Challenge(creator_id=creator_id, created_at=now, updated_at=now, **fields)
    db.add(challenge)
    await db.flush()
    logger.info("challenge_created", challenge_id=challenge.id, type=challenge.type, creator_id=creator_id)
    return challenge


async def update_challenge(db: AsyncSession, challenge_id: int, **changes: Any) -> Challenge:
    """Apply a partial update. Unknown keys are ignored."""
    challenge = await get_challenge(db, challenge_id)
    for field in _UPDATABLE_FIELDS:
        if field in changes:
            setattr(challenge, field, changes[field])
    challenge.updated_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("challenge_updated", challenge_id=challenge_id, fields=sorted(set(changes) & set(_UPDATABLE_FIELDS)))
    return challenge


async def delete_challenge(db: AsyncSession, challenge_id: int) -> None:
    """Delete a challenge; tasks, memberships and progress rows cascade."""
    challenge = await get_challenge(db, challenge_id)
    await db.delete(challenge)
    await db.flush()
    logger.info("challenge_deleted", challenge_id=challenge_id)


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


async def get_challenge_stats(db: AsyncSession, challenge_id: int) -> dict[str, Any]:
    """Participants, completions, completion rate and task count of a challenge."""
    await get_challenge(db, challenge_id)
    counts = (
        await db.execute(
            select(ChallengeMembership.status, func.count())
            .where(ChallengeMembership.challenge_id == challenge_id)
            .group_by(ChallengeMembership.status)
        )
    ).all()
    by_status = {status: count for status, count in counts}
    participants = sum(by_status.values())
    completed = by_status.get(MEMBERSHIP_COMPLETED, 0)
    task_count = (
        await db.execute(
            select(func.count()).select_from(ChallengeTask).where(ChallengeTask.challenge_id == challenge_id)
        )
    ).scalar_one()
    return {
        "challenge_id": challenge_id,
        "participants": participants,
        "completed": completed,
        "in_progress": by_status.get(MEMBERSHIP_ACCEPTED, 0),
        "completion_rate": round(completed / participants, 4) if participants else 0.0,
        "task_count": task_count,
    }


async def list_user_challenges(db: AsyncSession, user_id: int) -> list[tuple[Challenge, ChallengeMembership]]:
    """Challenges the player joined, with their membership, most recent join first."""
    result = await db.execute(
        select(Challenge, ChallengeMembership)
        .join(ChallengeMembership, ChallengeMembership.challenge_id == Challenge.id)
        .where(ChallengeMembership.user_id == user_id)
        .order_by(ChallengeMembership.joined_at.desc(), ChallengeMembership.id.desc())
    )
    return [(challenge, membership) for challenge, membership in result.all()]


async def get_user_stats(db: AsyncSession, user: User) -> dict[str, Any]:
    counts = (
        await db.execute(
            select(ChallengeMembership.status, func.count())
            .where(ChallengeMembership.user_id == user.id)
            .group_by(ChallengeMembership.status)
        )
    ).all()
    by_status = {status: count for status, count in counts}
    return {
        "joined": sum(by_status.values()),
        "completed": by_status.get(MEMBERSHIP_COMPLETED, 0),
        "in_progress": by_status.get(MEMBERSHIP_ACCEPTED, 0),
        "total_xp": user.total_xp,
        "total_points": user.total_points,
        "total_challenges_completed": user.total_challenges_completed,
    }
