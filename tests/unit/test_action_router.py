"""Action router tests: fan-out, parameter filtering and per-task failure isolation."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from mcquest.challenges.membership import join_challenge
from mcquest.db.models import Notification, TaskProgress, User
from mcquest.progress import action_router, tracker
from mcquest.progress.action_router import TaskOutcome, route_action
from mcquest.progress.matchers import match_exact


async def _progress_value(db, user_id: int, task_id: int) -> int:
    result = await db.execute(
        select(TaskProgress.progress).where(TaskProgress.user_id == user_id, TaskProgress.task_id == task_id)
    )
    return result.scalar_one()


class TestScenario:
    @pytest.mark.asyncio
    async def test_two_task_challenge_completes_and_rewards(self, db_session, seed):
        """mine_stone x5 then kill_zombie x1 completes C1 and grants 100 XP / 50 points."""
        player = await seed.player()
        mine = await seed.action("mine_stone")
        kill = await seed.action("kill_zombie")
        c1 = await seed.challenge(title="C1", reward_xp=100, reward_points=50)
        t1 = await seed.task(c1, mine, quantity=5)
        t2 = await seed.task(c1, kill, quantity=1)
        await join_challenge(db_session, player.id, c1.id)

        first = await route_action(db_session, player.id, "mine_stone", 5)
        assert first == [
            TaskOutcome(task_id=t1.id, challenge_id=c1.id, progress=5, task_completed=True, challenge_completed=False)
        ]

        second = await route_action(db_session, player.id, "kill_zombie", 1)
        assert second == [
            TaskOutcome(task_id=t2.id, challenge_id=c1.id, progress=1, task_completed=True, challenge_completed=True)
        ]

        user = await db_session.get(User, player.id, populate_existing=True)
        assert (user.total_xp, user.total_points, user.total_challenges_completed) == (100, 50, 1)

        types = (
            await db_session.execute(
                select(Notification.type).where(Notification.user_id == player.id).order_by(Notification.id)
            )
        ).scalars().all()
        assert list(types) == ["completed", "reward"]


class TestRouting:
    @pytest.mark.asyncio
    async def test_fans_out_across_joined_challenges(self, db_session, seed):
        player = await seed.player()
        mine = await seed.action("MINE_BLOCK")
        a = await seed.challenge(title="A")
        b = await seed.challenge(title="B")
        ta = await seed.task(a, mine, quantity=10)
        tb = await seed.task(b, mine, quantity=10)
        await join_challenge(db_session, player.id, a.id)
        await join_challenge(db_session, player.id, b.id)

        outcomes = await route_action(db_session, player.id, "MINE_BLOCK", 3)

        assert [(o.task_id, o.progress) for o in outcomes] == [(ta.id, 3), (tb.id, 3)]

    @pytest.mark.asyncio
    async def test_ignores_challenges_not_joined(self, db_session, seed):
        player = await seed.player()
        mine = await seed.action("MINE_BLOCK")
        joined = await seed.challenge(title="Joined")
        other = await seed.challenge(title="Other")
        t_joined = await seed.task(joined, mine, quantity=10)
        t_other = await seed.task(other, mine, quantity=10)
        await join_challenge(db_session, player.id, joined.id)

        outcomes = await route_action(db_session, player.id, "MINE_BLOCK", 2)

        assert [o.task_id for o in outcomes] == [t_joined.id]
        rows = (
            await db_session.execute(select(TaskProgress).where(TaskProgress.task_id == t_other.id))
        ).scalars().all()
        assert rows == []

    @pytest.mark.asyncio
    async def test_ignores_completed_challenges(self, db_session, seed):
        player = await seed.player()
        mine = await seed.action("MINE_BLOCK")
        challenge = await seed.challenge()
        await seed.task(challenge, mine, quantity=1)
        await join_challenge(db_session, player.id, challenge.id)
        await route_action(db_session, player.id, "MINE_BLOCK", 1)

        assert await route_action(db_session, player.id, "MINE_BLOCK", 1) == []

    @pytest.mark.asyncio
    async def test_unknown_action_is_empty(self, db_session, seed):
        player = await seed.player()
        assert await route_action(db_session, player.id, "FLY_TO_MOON", 1) == []

    @pytest.mark.asyncio
    async def test_quantity_below_one_rejected(self, db_session, seed):
        player = await seed.player()
        with pytest.raises(ValueError):
            await route_action(db_session, player.id, "MINE_BLOCK", 0)


class TestParameterFiltering:
    @pytest.mark.asyncio
    async def test_subset_filter_selects_matching_tasks(self, db_session, seed):
        player = await seed.player()
        mine = await seed.action("MINE_BLOCK")
        challenge = await seed.challenge()
        diamonds = await seed.task(challenge, mine, quantity=3, parameters={"block": "diamond_ore"})
        anything = await seed.task(challenge, mine, quantity=50)
        await join_challenge(db_session, player.id, challenge.id)

        outcomes = await route_action(db_session, player.id, "MINE_BLOCK", 1, {"block": "stone"})
        assert [o.task_id for o in outcomes] == [anything.id]

        outcomes = await route_action(db_session, player.id, "MINE_BLOCK", 1, {"block": "diamond_ore", "y": -58})
        assert [o.task_id for o in outcomes] == [diamonds.id, anything.id]
        assert await _progress_value(db_session, player.id, diamonds.id) == 1
        assert await _progress_value(db_session, player.id, anything.id) == 2

    @pytest.mark.asyncio
    async def test_explicit_matcher_overrides_setting(self, db_session, seed):
        player = await seed.player()
        mine = await seed.action("MINE_BLOCK")
        challenge = await seed.challenge()
        await seed.task(challenge, mine, quantity=3, parameters={"block": "diamond_ore"})
        await join_challenge(db_session, player.id, challenge.id)

        outcomes = await route_action(
            db_session, player.id, "MINE_BLOCK", 1, {"block": "diamond_ore", "y": -58}, matcher=match_exact
        )
        assert outcomes == []

    @pytest.mark.asyncio
    async def test_match_mode_from_settings(self, db_session, seed, monkeypatch):
        from mcquest.config import get_settings

        monkeypatch.setenv("MCQ_TASK_PARAMETER_MATCH", "none")
        get_settings.cache_clear()

        player = await seed.player()
        mine = await seed.action("MINE_BLOCK")
        challenge = await seed.challenge()
        task = await seed.task(challenge, mine, quantity=3, parameters={"block": "diamond_ore"})
        await join_challenge(db_session, player.id, challenge.id)

        outcomes = await route_action(db_session, player.id, "MINE_BLOCK", 1, {"block": "dirt"})
        assert [o.task_id for o in outcomes] == [task.id]


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_one_failing_task_does_not_abort_batch(self, db_session, seed, monkeypatch):
        player = await seed.player()
        mine = await seed.action("MINE_BLOCK")
        a = await seed.challenge(title="A")
        b = await seed.challenge(title="B")
        broken = await seed.task(a, mine, quantity=10)
        healthy = await seed.task(b, mine, quantity=10)
        await join_challenge(db_session, player.id, a.id)
        await join_challenge(db_session, player.id, b.id)

        original = tracker.increment

        async def flaky_increment(db, user_id, task_id, amount=1):
            row = await original(db, user_id, task_id, amount)
            if task_id == broken.id:
                raise RuntimeError("storage hiccup")
            return row

        monkeypatch.setattr(action_router.tracker, "increment", flaky_increment)

        outcomes = await route_action(db_session, player.id, "MINE_BLOCK", 4)

        assert len(outcomes) == 2
        failed, ok = outcomes
        assert failed.task_id == broken.id
        assert failed.error == "storage hiccup"
        assert failed.progress is None
        assert ok.task_id == healthy.id
        assert ok.error is None
        assert ok.progress == 4

        # The failed task's write was rolled back with its savepoint
        assert await _progress_value(db_session, player.id, broken.id) == 0
        assert await _progress_value(db_session, player.id, healthy.id) == 4

    def test_outcome_serializes(self):
        outcome = TaskOutcome(task_id=1, challenge_id=2, progress=3, task_completed=True)
        assert outcome.to_dict() == {
            "task_id": 1,
            "challenge_id": 2,
            "progress": 3,
            "task_completed": True,
            "challenge_completed": False,
            "error": None,
        }
