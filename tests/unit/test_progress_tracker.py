"""Task progress tracker tests: atomic increments and the completion flag."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from mcquest.challenges.membership import join_challenge
from mcquest.db.models import TaskProgress
from mcquest.progress import tracker


@pytest.fixture
def setup_task(seed, db_session):
    async def _setup(quantity: int = 5):
        player = await seed.player()
        action = await seed.action("MINE_BLOCK")
        challenge = await seed.challenge()
        task = await seed.task(challenge, action, quantity=quantity)
        await join_challenge(db_session, player.id, challenge.id)
        return player, task

    return _setup


class TestIncrement:
    @pytest.mark.asyncio
    async def test_progress_is_sum_of_amounts(self, db_session, setup_task):
        """After N increments the counter equals the sum applied."""
        player, task = await setup_task(quantity=100)

        for amount in (1, 4, 2, 10):
            row = await tracker.increment(db_session, player.id, task.id, amount)

        assert row.progress == 17
        assert row.completed is False

    @pytest.mark.asyncio
    async def test_completed_flag_tracks_threshold(self, db_session, setup_task):
        """completed == (progress >= quantity) after every increment."""
        player, task = await setup_task(quantity=5)

        row = await tracker.increment(db_session, player.id, task.id, 4)
        assert (row.progress, row.completed) == (4, False)

        row = await tracker.increment(db_session, player.id, task.id, 1)
        assert (row.progress, row.completed) == (5, True)

    @pytest.mark.asyncio
    async def test_overflow_past_target_is_kept(self, db_session, setup_task):
        player, task = await setup_task(quantity=3)

        await tracker.increment(db_session, player.id, task.id, 3)
        row = await tracker.increment(db_session, player.id, task.id, 2)

        assert row.progress == 5
        assert row.completed is True

    @pytest.mark.asyncio
    async def test_default_amount_is_one(self, db_session, setup_task):
        player, task = await setup_task()
        row = await tracker.increment(db_session, player.id, task.id)
        assert row.progress == 1

    @pytest.mark.asyncio
    async def test_amount_below_one_rejected(self, db_session, setup_task):
        player, task = await setup_task()
        with pytest.raises(ValueError):
            await tracker.increment(db_session, player.id, task.id, 0)

    @pytest.mark.asyncio
    async def test_unknown_task_returns_none(self, db_session, seed):
        player = await seed.player()
        assert await tracker.increment(db_session, player.id, 9999, 1) is None

    @pytest.mark.asyncio
    async def test_unknown_user_returns_none(self, db_session, setup_task):
        _player, task = await setup_task()
        assert await tracker.increment(db_session, 9999, task.id, 1) is None

    @pytest.mark.asyncio
    async def test_missing_row_is_created_then_incremented(self, db_session, seed):
        """A player without a progress row (never joined) still gets one."""
        player = await seed.player()
        action = await seed.action("KILL_MOBS")
        challenge = await seed.challenge()
        task = await seed.task(challenge, action, quantity=2)

        row = await tracker.increment(db_session, player.id, task.id, 2)

        assert row.progress == 2
        assert row.completed is True
        count = await db_session.execute(
            select(func.count()).select_from(TaskProgress).where(TaskProgress.user_id == player.id)
        )
        assert count.scalar_one() == 1


class TestNoLostUpdates:
    @pytest.mark.asyncio
    async def test_stale_reader_does_not_overwrite(self, database, setup_task, db_session):
        """An increment from a session holding an outdated row still adds to the stored value."""
        player, task = await setup_task(quantity=10)
        await db_session.commit()

        async with database() as session_b:
            stale = (
                await session_b.execute(
                    select(TaskProgress).where(TaskProgress.user_id == player.id, TaskProgress.task_id == task.id)
                )
            ).scalar_one()
            assert stale.progress == 0
            await session_b.commit()

            async with database() as session_a:
                await tracker.increment(session_a, player.id, task.id, 3)
                await session_a.commit()

            row = await tracker.increment(session_b, player.id, task.id, 2)
            await session_b.commit()

        assert row.progress == 5
        assert stale.progress == 5


class TestSetProgress:
    @pytest.mark.asyncio
    async def test_recomputes_completed(self, db_session, setup_task):
        player, task = await setup_task(quantity=5)
        row = await tracker.increment(db_session, player.id, task.id, 5)
        assert row.completed is True

        row = await tracker.set_progress(db_session, row.id, 2)
        assert (row.progress, row.completed) == (2, False)

    @pytest.mark.asyncio
    async def test_negative_value_rejected(self, db_session, setup_task):
        player, task = await setup_task()
        row = await tracker.increment(db_session, player.id, task.id, 1)
        with pytest.raises(ValueError):
            await tracker.set_progress(db_session, row.id, -1)

    @pytest.mark.asyncio
    async def test_unknown_row_returns_none(self, db_session):
        assert await tracker.set_progress(db_session, 424242, 1) is None
