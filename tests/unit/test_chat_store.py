import asyncio
from datetime import timedelta

import pytest

from dorm_chat.models.chat_rooms import ChatRoomRecord, RoomKind
from dorm_chat.models.messages import ChatMessage
from dorm_chat.services.persistence import BackgroundPersister
from dorm_chat.utils.time_utils import utcnow


def make_message(room_id, body, is_admin=False, at=None, message_id=None):
    return ChatMessage(
        id=message_id or body,
        room_id=room_id,
        sender_id="admin-1" if is_admin else "guest",
        sender_name="Admin" if is_admin else "Somchai",
        is_admin=is_admin,
        body=body,
        timestamp=at or utcnow(),
    )


class TestInMemoryChatStore:
    """메모리 저장소 테스트"""

    @pytest.mark.asyncio
    async def test_create_room_is_idempotent(self, store):
        first = await store.create_room(ChatRoomRecord(room_id="r1", kind=RoomKind.GUEST, display_name="A"))
        second = await store.create_room(ChatRoomRecord(room_id="r1", kind=RoomKind.GUEST, display_name="B"))

        assert second is first
        assert (await store.get_room("r1")).display_name == "A"

    @pytest.mark.asyncio
    async def test_message_for_unknown_room(self, store):
        with pytest.raises(LookupError):
            await store.create_message(make_message("missing", "hi"))

    @pytest.mark.asyncio
    async def test_messages_kept_in_timestamp_order(self, store):
        await store.create_room(ChatRoomRecord(room_id="r1", kind=RoomKind.GUEST, display_name="A"))
        now = utcnow()

        await store.create_message(make_message("r1", "second", at=now + timedelta(seconds=1)))
        await store.create_message(make_message("r1", "first", at=now))

        messages = await store.list_messages("r1")
        assert [item.message.body for item in messages] == ["first", "second"]
        assert (await store.get_room("r1")).last_message_at == now + timedelta(seconds=1)

    @pytest.mark.asyncio
    async def test_rooms_ordered_by_activity_with_unread(self, store):
        now = utcnow()
        for room_id in ("old", "new"):
            await store.create_room(ChatRoomRecord(room_id=room_id, kind=RoomKind.GUEST, display_name=room_id))
        await store.create_message(make_message("old", "a", at=now))
        await store.create_message(make_message("new", "b", at=now + timedelta(seconds=5)))
        await store.create_message(make_message("new", "reply", is_admin=True, at=now + timedelta(seconds=6)))

        rooms = await store.list_rooms_ordered_by_activity()

        assert [(record.room_id, unread) for record, unread in rooms] == [("new", 1), ("old", 1)]

    @pytest.mark.asyncio
    async def test_mark_read_only_counts_non_admin(self, store):
        await store.create_room(ChatRoomRecord(room_id="r1", kind=RoomKind.GUEST, display_name="A"))
        await store.create_message(make_message("r1", "q1"))
        await store.create_message(make_message("r1", "q2"))
        await store.create_message(make_message("r1", "answer", is_admin=True))

        assert await store.mark_read("r1") == 2
        assert await store.mark_read("r1") == 0

        messages = await store.list_messages("r1")
        assert all(item.read_at is not None for item in messages if not item.message.is_admin)

    @pytest.mark.asyncio
    async def test_pagination(self, store):
        await store.create_room(ChatRoomRecord(room_id="r1", kind=RoomKind.GUEST, display_name="A"))
        now = utcnow()
        for index in range(5):
            await store.create_message(make_message("r1", f"m{index}", at=now + timedelta(seconds=index)))

        page = await store.list_messages("r1", limit=2, skip=2)

        assert [item.message.body for item in page] == ["m2", "m3"]
        assert await store.count_messages("r1") == 5


class TestBackgroundPersister:
    """백그라운드 저장 테스트"""

    @pytest.mark.asyncio
    async def test_drain_waits_for_pending(self):
        persister = BackgroundPersister()
        done = []

        async def slow_write():
            await asyncio.sleep(0.01)
            done.append(True)

        persister.spawn(slow_write(), "slow_write")
        assert persister.pending == 1

        await persister.drain()

        assert done == [True]
        assert persister.pending == 0

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, caplog):
        persister = BackgroundPersister()

        async def failing_write():
            raise ConnectionError("store offline")

        persister.spawn(failing_write(), "create_room", room_id="r1")
        await persister.drain()

        assert "create_room failed: store offline" in caplog.text
        record = next(r for r in caplog.records if r.getMessage().startswith("create_room failed"))
        assert record.operation == "create_room"
        assert record.room_id == "r1"
