"""Admin task edits re-evaluate members whose challenge they complete."""

from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy import select

from mcquest.challenges import tasks as task_service
from mcquest.challenges.membership import join_challenge
from mcquest.db.models import (
    MEMBERSHIP_ACCEPTED,
    MEMBERSHIP_COMPLETED,
    ChallengeMembership,
    Notification,
    RewardLedger,
    TaskProgress,
    User,
)
from mcquest.progress import tracker


async def _status(db, user_id: int, challenge_id: int) -> str:
    result = await db.execute(
        select(ChallengeMembership.status).where(
            ChallengeMembership.user_id == user_id, ChallengeMembership.challenge_id == challenge_id
        )
    )
    return result.scalar_one()


@pytest_asyncio.fixture
async def halfway(db_session, seed):
    """T1 (quantity 1) done, T2 (quantity 5) at 2."""
    player = await seed.player()
    mine, kill = await seed.action("MINE_BLOCK"), await seed.action("KILL_MOBS")
    challenge = await seed.challenge(reward_xp=40, reward_points=4)
    t1 = await seed.task(challenge, mine, quantity=1)
    t2 = await seed.task(challenge, kill, quantity=5)
    await join_challenge(db_session, player.id, challenge.id)
    await tracker.increment(db_session, player.id, t1.id, 1)
    await tracker.increment(db_session, player.id, t2.id, 2)
    return {"player": player, "challenge": challenge, "t1": t1, "t2": t2}


class TestLoweringQuantity:
    @pytest.mark.asyncio
    async def test_completes_and_rewards_member(self, db_session, halfway):
        player, challenge = halfway["player"], halfway["challenge"]

        await task_service.update_task(db_session, challenge.id, halfway["t2"].id, quantity=2)

        assert await _status(db_session, player.id, challenge.id) == MEMBERSHIP_COMPLETED
        user = await db_session.get(User, player.id, populate_existing=True)
        assert user.total_xp == 40
        assert user.total_challenges_completed == 1
        types = (
            await db_session.execute(select(Notification.type).where(Notification.user_id == player.id))
        ).scalars().all()
        assert sorted(types) == ["completed", "reward"]

    @pytest.mark.asyncio
    async def test_raising_quantity_keeps_member_accepted(self, db_session, halfway):
        player, challenge = halfway["player"], halfway["challenge"]

        await task_service.update_task(db_session, challenge.id, halfway["t1"].id, quantity=3)

        assert await _status(db_session, player.id, challenge.id) == MEMBERSHIP_ACCEPTED
        row = (
            await db_session.execute(
                select(TaskProgress).where(TaskProgress.task_id == halfway["t1"].id).execution_options(
                    populate_existing=True
                )
            )
        ).scalar_one()
        assert row.completed is False

    @pytest.mark.asyncio
    async def test_repeated_edits_pay_once(self, db_session, halfway):
        challenge = halfway["challenge"]
        for quantity in (2, 1, 2):
            await task_service.update_task(db_session, challenge.id, halfway["t2"].id, quantity=quantity)

        ledger = (
            await db_session.execute(select(RewardLedger).where(RewardLedger.user_id == halfway["player"].id))
        ).scalars().all()
        assert len(ledger) == 1


class TestDeletingTask:
    @pytest.mark.asyncio
    async def test_deleting_last_pending_task_completes(self, db_session, halfway):
        player, challenge = halfway["player"], halfway["challenge"]

        await task_service.delete_task(db_session, challenge.id, halfway["t2"].id)

        assert await _status(db_session, player.id, challenge.id) == MEMBERSHIP_COMPLETED
        user = await db_session.get(User, player.id, populate_existing=True)
        assert user.total_xp == 40

    @pytest.mark.asyncio
    async def test_deleting_completed_task_keeps_member_accepted(self, db_session, halfway):
        player, challenge = halfway["player"], halfway["challenge"]

        await task_service.delete_task(db_session, challenge.id, halfway["t1"].id)

        assert await _status(db_session, player.id, challenge.id) == MEMBERSHIP_ACCEPTED

    @pytest.mark.asyncio
    async def test_deleting_every_task_never_completes(self, db_session, halfway):
        player, challenge = halfway["player"], halfway["challenge"]

        await task_service.delete_task(db_session, challenge.id, halfway["t1"].id)
        await task_service.delete_task(db_session, challenge.id, halfway["t2"].id)

        assert await _status(db_session, player.id, challenge.id) == MEMBERSHIP_ACCEPTED
        user = await db_session.get(User, player.id, populate_existing=True)
        assert user.total_xp == 0
