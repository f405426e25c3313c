"""Challenge membership manager tests: join/leave atomicity."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from mcquest.challenges.membership import get_membership, join_challenge, leave_challenge
from mcquest.db.models import MEMBERSHIP_ACCEPTED, ChallengeMembership, TaskProgress
from mcquest.errors import AlreadyJoinedError, ChallengeExpiredError, ChallengeNotFoundError
from mcquest.progress import tracker


async def _progress_rows(db, user_id: int) -> list[TaskProgress]:
    result = await db.execute(
        select(TaskProgress).where(TaskProgress.user_id == user_id).order_by(TaskProgress.task_id)
    )
    return list(result.scalars().all())


async def _membership_count(db, user_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(ChallengeMembership).where(ChallengeMembership.user_id == user_id)
    )
    return result.scalar_one()


@pytest.fixture
def three_task_challenge(seed):
    async def _build(**kwargs):
        mine, kill, place = (
            await seed.action("MINE_BLOCK"),
            await seed.action("KILL_MOBS"),
            await seed.action("PLACE_BLOCK"),
        )
        challenge = await seed.challenge(**kwargs)
        tasks = [
            await seed.task(challenge, mine, quantity=5),
            await seed.task(challenge, kill, quantity=1),
            await seed.task(challenge, place, quantity=3),
        ]
        return challenge, tasks

    return _build


class TestJoin:
    @pytest.mark.asyncio
    async def test_creates_one_zero_row_per_task(self, db_session, seed, three_task_challenge):
        player = await seed.player()
        challenge, tasks = await three_task_challenge()

        membership = await join_challenge(db_session, player.id, challenge.id)

        assert membership.status == MEMBERSHIP_ACCEPTED
        assert membership.id is not None
        rows = await _progress_rows(db_session, player.id)
        assert [r.task_id for r in rows] == [t.id for t in tasks]
        assert all(r.progress == 0 and r.completed is False for r in rows)

    @pytest.mark.asyncio
    async def test_duplicate_join_conflicts_without_side_effects(self, db_session, seed, three_task_challenge):
        player = await seed.player()
        challenge, _tasks = await three_task_challenge()
        await join_challenge(db_session, player.id, challenge.id)

        with pytest.raises(AlreadyJoinedError):
            await join_challenge(db_session, player.id, challenge.id)

        assert await _membership_count(db_session, player.id) == 1
        assert len(await _progress_rows(db_session, player.id)) == 3

    @pytest.mark.asyncio
    async def test_unknown_challenge(self, db_session, seed):
        player = await seed.player()
        with pytest.raises(ChallengeNotFoundError):
            await join_challenge(db_session, player.id, 12345)

    @pytest.mark.asyncio
    async def test_expired_challenge_rejected(self, db_session, seed, three_task_challenge):
        player = await seed.player()
        challenge, _tasks = await three_task_challenge(expires_at=datetime.now(timezone.utc) - timedelta(hours=1))

        with pytest.raises(ChallengeExpiredError) as exc_info:
            await join_challenge(db_session, player.id, challenge.id)

        assert exc_info.value.status_code == 410
        assert await _membership_count(db_session, player.id) == 0
        assert await _progress_rows(db_session, player.id) == []

    @pytest.mark.asyncio
    async def test_future_expiry_allows_join(self, db_session, seed, three_task_challenge):
        player = await seed.player()
        challenge, _tasks = await three_task_challenge(expires_at=datetime.now(timezone.utc) + timedelta(days=7))
        await join_challenge(db_session, player.id, challenge.id)
        assert await _membership_count(db_session, player.id) == 1

    @pytest.mark.asyncio
    async def test_failed_progress_insert_rolls_back_membership(self, db_session, seed, three_task_challenge):
        """A progress row that cannot be inserted leaves no membership behind."""
        player = await seed.player()
        challenge, tasks = await three_task_challenge()
        # Pre-existing row for the same (user, task) makes the join's insert collide
        await tracker.ensure_progress_row(db_session, player.id, tasks[1].id)

        with pytest.raises(AlreadyJoinedError):
            await join_challenge(db_session, player.id, challenge.id)

        assert await get_membership(db_session, player.id, challenge.id) is None
        assert len(await _progress_rows(db_session, player.id)) == 1


class TestLeave:
    @pytest.mark.asyncio
    async def test_removes_progress_and_membership(self, db_session, seed, three_task_challenge):
        player = await seed.player()
        challenge, tasks = await three_task_challenge()
        await join_challenge(db_session, player.id, challenge.id)
        await tracker.increment(db_session, player.id, tasks[0].id, 4)

        assert await leave_challenge(db_session, player.id, challenge.id) is True

        assert await get_membership(db_session, player.id, challenge.id) is None
        assert await _progress_rows(db_session, player.id) == []

    @pytest.mark.asyncio
    async def test_non_member_is_noop(self, db_session, seed, three_task_challenge):
        player = await seed.player()
        challenge, _tasks = await three_task_challenge()
        assert await leave_challenge(db_session, player.id, challenge.id) is False

    @pytest.mark.asyncio
    async def test_leave_keeps_other_challenges(self, db_session, seed, three_task_challenge):
        player = await seed.player()
        first, _ = await three_task_challenge()
        other = await seed.challenge(title="Other")
        action = await seed.action("TRAVEL_TO")
        other_task = await seed.task(other, action)
        await join_challenge(db_session, player.id, first.id)
        await join_challenge(db_session, player.id, other.id)

        await leave_challenge(db_session, player.id, first.id)

        rows = await _progress_rows(db_session, player.id)
        assert [r.task_id for r in rows] == [other_task.id]

    @pytest.mark.asyncio
    async def test_rejoin_starts_from_zero(self, db_session, seed, three_task_challenge):
        """Leaving then rejoining gives fresh zero-valued rows."""
        player = await seed.player()
        challenge, tasks = await three_task_challenge()
        await join_challenge(db_session, player.id, challenge.id)
        for task in tasks:
            await tracker.increment(db_session, player.id, task.id, 2)

        await leave_challenge(db_session, player.id, challenge.id)
        await join_challenge(db_session, player.id, challenge.id)

        rows = await _progress_rows(db_session, player.id)
        assert len(rows) == 3
        assert all(r.progress == 0 and r.completed is False for r in rows)
