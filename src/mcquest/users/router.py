"""User endpoints: profiles, the current player's challenges and admin management."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mcquest.auth.dependencies import get_current_user, require_admin
from mcquest.auth.router import user_response
from mcquest.auth.schemas import UserResponse
from mcquest.challenges import service as challenge_service
from mcquest.challenges.router import challenge_response
from mcquest.challenges.schemas import UserChallengeResponse, UserChallengeStatsResponse
from mcquest.database import get_session
from mcquest.db.models import User
from mcquest.rewards.ledger import get_reward_history
from mcquest.users import service as user_service
from mcquest.users.schemas import RewardEntryResponse, UserUpdateRequest
from mcquest.users.service import get_user_by_id, get_user_by_uuid

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.get("", response_model=list[UserResponse])
async def list_users(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    return [user_response(u) for u in await user_service.list_users(db, limit, offset)]


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)):
    """Get the current player's profile."""
    return user_response(user)


@router.get("/me/challenges", response_model=list[UserChallengeResponse])
async def get_my_challenges(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Challenges the current player joined, with membership status."""
    rows = await challenge_service.list_user_challenges(db, user.id)
    return [
        UserChallengeResponse(
            challenge=challenge_response(challenge),
            status=membership.status,
            joined_at=membership.joined_at,
            completed_at=membership.completed_at,
        )
        for challenge, membership in rows
    ]


@router.get("/me/challenges/stats", response_model=UserChallengeStatsResponse)
async def get_my_challenge_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return UserChallengeStatsResponse(**await challenge_service.get_user_stats(db, user))


@router.get("/me/rewards", response_model=list[RewardEntryResponse])
async def get_my_rewards(
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Reward grants credited to the current player, newest first."""
    return [RewardEntryResponse.model_validate(r) for r in await get_reward_history(db, user.id, limit)]


@router.get("/uuid/{uuid_mc}", response_model=UserResponse)
async def get_user_by_game_uuid(uuid_mc: str, db: AsyncSession = Depends(get_session)):
    user = await get_user_by_uuid(db, uuid_mc)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user_response(user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, db: AsyncSession = Depends(get_session)):
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user_response(user)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    body: UserUpdateRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    user = await user_service.update_user(db, user_id, **body.model_dump(exclude_unset=True))
    await db.commit()
    return user_response(user)


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> None:
    """Delete a player and everything recorded for them."""
    await user_service.delete_user(db, user_id)
    await db.commit()
