"""Notification service tests."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from mcquest.errors import NotificationNotFoundError
from mcquest.notifications.service import (
    VALID_TYPES,
    announce_new_challenge,
    create_notification,
    delete_notification,
    delete_read_notifications,
    get_notification,
    get_notifications,
    get_unread_count,
    mark_all_as_read,
    mark_as_read,
    notify_reward_granted,
)


class TestCreateNotification:
    @pytest.mark.asyncio
    async def test_persists_with_metadata(self, db_session, seed):
        player = await seed.player()
        n = await create_notification(db_session, player.id, "accepted", "Welcome aboard", metadata={"challenge_id": 1})

        assert n.id is not None
        assert n.read is False
        assert n.notification_metadata == {"challenge_id": 1}

    @pytest.mark.asyncio
    async def test_rejects_unknown_type(self, db_session, seed):
        player = await seed.player()
        with pytest.raises(ValueError, match="Invalid notification type"):
            await create_notification(db_session, player.id, "level_up", "nope")

    def test_valid_types(self):
        assert VALID_TYPES == {"new_challenge", "accepted", "completed", "reward", "badge"}

    @pytest.mark.asyncio
    async def test_pushes_to_player_channel(self, db_session, seed):
        player = await seed.player()
        redis = AsyncMock()

        n = await notify_reward_granted(db_session, player.id, 9, "Caves", xp=30, points=5, redis=redis)

        redis.publish.assert_awaited_once()
        channel, payload = redis.publish.await_args.args
        assert channel == f"ws:user:{player.id}"
        data = json.loads(payload)["data"]
        assert data["id"] == n.id
        assert data["type"] == "reward"
        assert data["metadata"] == {"challenge_id": 9, "xp": 30, "points": 5}

    @pytest.mark.asyncio
    async def test_push_failure_keeps_row(self, db_session, seed):
        player = await seed.player()
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")

        n = await create_notification(db_session, player.id, "badge", "Shiny", redis=redis)

        assert n.id is not None
        assert await get_unread_count(db_session, player.id) == 1


class TestAnnounce:
    @pytest.mark.asyncio
    async def test_notifies_players_only(self, db_session, seed):
        alex = await seed.player("alex")
        steve = await seed.player("steve")
        admin = await seed.admin()

        sent = await announce_new_challenge(db_session, 3, "Build Week")

        assert sent == 2
        for user in (alex, steve):
            items, total = await get_notifications(db_session, user.id)
            assert total == 1
            assert items[0].type == "new_challenge"
            assert "Build Week" in items[0].message
        assert await get_unread_count(db_session, admin.id) == 0


class TestReadState:
    @pytest.mark.asyncio
    async def test_mark_one_and_all(self, db_session, seed):
        player = await seed.player()
        first = await create_notification(db_session, player.id, "accepted", "one")
        await create_notification(db_session, player.id, "accepted", "two")
        await create_notification(db_session, player.id, "accepted", "three")

        assert await mark_as_read(db_session, player.id, first.id) is True
        assert await get_unread_count(db_session, player.id) == 2

        assert await mark_all_as_read(db_session, player.id) == 2
        assert await get_unread_count(db_session, player.id) == 0

    @pytest.mark.asyncio
    async def test_cannot_touch_other_players_rows(self, db_session, seed):
        owner = await seed.player("owner")
        other = await seed.player("other")
        n = await create_notification(db_session, owner.id, "accepted", "mine")

        assert await mark_as_read(db_session, other.id, n.id) is False
        assert await delete_notification(db_session, other.id, n.id) is False
        with pytest.raises(NotificationNotFoundError):
            await get_notification(db_session, other.id, n.id)

    @pytest.mark.asyncio
    async def test_listing_hides_read_unless_requested(self, db_session, seed):
        player = await seed.player()
        n = await create_notification(db_session, player.id, "accepted", "seen")
        await create_notification(db_session, player.id, "accepted", "unseen")
        await mark_as_read(db_session, player.id, n.id)

        unread, total_unread = await get_notifications(db_session, player.id)
        everything, total = await get_notifications(db_session, player.id, include_read=True)

        assert total_unread == 1
        assert [x.message for x in unread] == ["unseen"]
        assert total == 2
        assert len(everything) == 2

    @pytest.mark.asyncio
    async def test_clear_read(self, db_session, seed):
        player = await seed.player()
        n = await create_notification(db_session, player.id, "accepted", "seen")
        await create_notification(db_session, player.id, "accepted", "unseen")
        await mark_as_read(db_session, player.id, n.id)

        assert await delete_read_notifications(db_session, player.id) == 1
        _items, total = await get_notifications(db_session, player.id, include_read=True)
        assert total == 1
