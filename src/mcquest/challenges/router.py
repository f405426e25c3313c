"""Challenge endpoints: catalog, admin writes, stats, join/leave and tasks."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.auth.dependencies import get_current_user, require_admin
from mcquest.challenges import membership as membership_service
from mcquest.challenges import service as challenge_service
from mcquest.challenges import tasks as task_service
from mcquest.challenges.schemas import (
    ChallengeCreateRequest,
    ChallengeResponse,
    ChallengeStatsResponse,
    ChallengeType,
    ChallengeUpdateRequest,
    ChallengeWithTasksResponse,
    JoinChallengeResponse,
    LeaveChallengeResponse,
    MembershipResponse,
    TaskCreateRequest,
    TaskResponse,
    TaskUpdateRequest,
)
from mcquest.database import get_session
from mcquest.db.models import Challenge, User
from mcquest.notifications.service import announce_new_challenge
from mcquest.redis_client import get_optional_redis

router = APIRouter(prefix="/api/v1/challenges", tags=["Challenges"])


def challenge_response(challenge: Challenge) -> ChallengeResponse:
    return ChallengeResponse.model_validate(challenge).model_copy(
        update={"is_active": challenge_service.is_active(challenge)}
    )


def challenge_with_tasks_response(challenge: Challenge) -> ChallengeWithTasksResponse:
    return ChallengeWithTasksResponse(
        **challenge_response(challenge).model_dump(),
        tasks=[TaskResponse.model_validate(t) for t in challenge.tasks],
    )


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@router.get("", response_model=list[ChallengeResponse])
async def list_challenges(
    type: ChallengeType | None = Query(None),  # noqa: A002
    db: AsyncSession = Depends(get_session),
):
    """List all challenges, optionally filtered by type."""
    challenges = await challenge_service.list_challenges(db, type_=type)
    return [challenge_response(c) for c in challenges]


@router.get("/active", response_model=list[ChallengeResponse])
async def list_active_challenges(db: AsyncSession = Depends(get_session)):
    """Challenges without expiry or expiring in the future."""
    challenges = await challenge_service.list_challenges(db, active_only=True)
    return [challenge_response(c) for c in challenges]


@router.get("/with-tasks", response_model=list[ChallengeWithTasksResponse])
async def list_challenges_with_tasks(db: AsyncSession = Depends(get_session)):
    challenges = await challenge_service.list_challenges(db, with_tasks=True)
    return [challenge_with_tasks_response(c) for c in challenges]


@router.get("/{challenge_id}", response_model=ChallengeWithTasksResponse)
async def get_challenge(challenge_id: int, db: AsyncSession = Depends(get_session)):
    challenge = await challenge_service.get_challenge_with_tasks(db, challenge_id)
    return challenge_with_tasks_response(challenge)


@router.get("/{challenge_id}/stats", response_model=ChallengeStatsResponse)
async def get_challenge_stats(challenge_id: int, db: AsyncSession = Depends(get_session)):
    return ChallengeStatsResponse(**await challenge_service.get_challenge_stats(db, challenge_id))


@router.post("", response_model=ChallengeResponse, status_code=201)
async def create_challenge(
    body: ChallengeCreateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    redis: Any = Depends(get_optional_redis),
):
    """Create a challenge. With ``announce`` every player is notified."""
    fields = body.model_dump(exclude={"announce"})
    challenge = await challenge_service.create_challenge(db, admin.id, **fields)
    if body.announce:
        await announce_new_challenge(db, challenge.id, challenge.title, redis=redis)
    await db.commit()
    return challenge_response(challenge)


@router.put("/{challenge_id}", response_model=ChallengeResponse)
async def update_challenge(
    challenge_id: int,
    body: ChallengeUpdateRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    challenge = await challenge_service.update_challenge(db, challenge_id, **body.model_dump(exclude_unset=True))
    await db.commit()
    return challenge_response(challenge)


@router.delete("/{challenge_id}", status_code=204)
async def delete_challenge(
    challenge_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> None:
    """Delete a challenge together with its tasks, memberships and progress."""
    await challenge_service.delete_challenge(db, challenge_id)
    await db.commit()


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


@router.post("/{challenge_id}/join", response_model=JoinChallengeResponse)
async def join_challenge(
    challenge_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Join a challenge: 404 unknown, 410 expired, 409 already joined."""
    membership = await membership_service.join_challenge(db, user.id, challenge_id)
    await db.commit()
    return JoinChallengeResponse(joinedChallenge=MembershipResponse.model_validate(membership))


@router.post("/{challenge_id}/leave", response_model=LeaveChallengeResponse)
async def leave_challenge(
    challenge_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Leave a challenge, discarding progress. Not being a member is not an error."""
    left = await membership_service.leave_challenge(db, user.id, challenge_id)
    await db.commit()
    return LeaveChallengeResponse(left=left)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


@router.get("/{challenge_id}/tasks", response_model=list[TaskResponse])
async def list_tasks(challenge_id: int, db: AsyncSession = Depends(get_session)):
    return [TaskResponse.model_validate(t) for t in await task_service.list_tasks(db, challenge_id)]


@router.get("/{challenge_id}/tasks/{task_id}", response_model=TaskResponse)
async def get_task(challenge_id: int, task_id: int, db: AsyncSession = Depends(get_session)):
    return TaskResponse.model_validate(await task_service.get_task(db, challenge_id, task_id))


@router.post("/{challenge_id}/tasks", response_model=TaskResponse, status_code=201)
async def create_task(
    challenge_id: int,
    body: TaskCreateRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    task = await task_service.create_task(db, challenge_id, body.action_id, body.quantity, body.parameters)
    await db.commit()
    return TaskResponse.model_validate(task)


@router.put("/{challenge_id}/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    challenge_id: int,
    task_id: int,
    body: TaskUpdateRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    redis: Any = Depends(get_optional_redis),
):
    changes = body.model_dump(exclude_unset=True)
    task = await task_service.update_task(db, challenge_id, task_id, redis=redis, **changes)
    await db.commit()
    return TaskResponse.model_validate(task)


@router.delete("/{challenge_id}/tasks/{task_id}", status_code=204)
async def delete_task(
    challenge_id: int,
    task_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    redis: Any = Depends(get_optional_redis),
) -> None:
    await task_service.delete_task(db, challenge_id, task_id, redis=redis)
    await db.commit()
