import logging
from unittest.mock import AsyncMock

import pytest

from dorm_chat.core.errors import EmptyMessage, MessageTooLong, NotInRoom, RoomNotFound
from dorm_chat.schemas.events import SendMessage
from dorm_chat.services.chat_store import InMemoryChatStore
from dorm_chat.websockets.connection import Connection
from dorm_chat.websockets.gateway import ChatGateway

from conftest import events_of


async def join_guest(gateway: ChatGateway, name: str, room_id: str = None) -> Connection:
    """게스트 연결 후 입장, 입장 관련 이벤트는 비움"""
    connection = gateway.connect()
    data = {"name": name}
    if room_id:
        data["roomId"] = room_id
    await gateway.dispatch(connection, {"type": "join_private_chat", "data": data})
    connection.drain_events()
    return connection


class TestMessageRouterRejections:
    """메시지 거부 테스트"""

    @pytest.mark.asyncio
    async def test_send_before_join(self, gateway):
        """입장 전 전송 시 NotInRoom"""
        connection = gateway.connect()

        with pytest.raises(NotInRoom):
            gateway.router.route(connection, SendMessage(message="hello"))

    @pytest.mark.asyncio
    async def test_blank_message_is_not_broadcast(self, gateway):
        """공백 메시지는 어떤 참여자에게도 전달되지 않음"""
        sender = await join_guest(gateway, "Somchai")
        other = await join_guest(gateway, "Friend", room_id=sender.joined_room_id)
        sender.drain_events()

        with pytest.raises(EmptyMessage):
            gateway.router.route(sender, SendMessage(message="   \n\t "))

        assert events_of(sender, "message") == []
        assert events_of(other, "message") == []
        assert gateway.registry.get(sender.joined_room_id).unread_count == 0

    @pytest.mark.asyncio
    async def test_message_too_long(self, gateway):
        connection = await join_guest(gateway, "Somchai")
        limit = gateway.router.max_message_length

        with pytest.raises(MessageTooLong) as exc_info:
            gateway.router.route(connection, SendMessage(message="x" * (limit + 1)))

        assert exc_info.value.details["max_length"] == limit

    @pytest.mark.asyncio
    async def test_admin_target_room_must_exist(self, gateway, admin_token):
        admin = gateway.connect(admin_token)

        with pytest.raises(RoomNotFound):
            gateway.router.route(admin, SendMessage(message="hi", room_id="nope"))


class TestMessageRouterDelivery:
    """메시지 전달 테스트"""

    @pytest.mark.asyncio
    async def test_message_is_trimmed_and_broadcast(self, gateway):
        connection = await join_guest(gateway, "Somchai")

        message = gateway.router.route(connection, SendMessage(message="  สวัสดี  "))

        delivered = events_of(connection, "message")
        assert message.body == "สวัสดี"
        assert delivered == [message.to_payload()]
        assert delivered[0]["senderName"] == "Somchai"
        assert delivered[0]["isAdmin"] is False

    @pytest.mark.asyncio
    async def test_is_admin_claim_is_ignored(self, gateway):
        """클라이언트의 isAdmin 주장은 무시됨"""
        connection = await join_guest(gateway, "Somchai")

        message = gateway.router.route(connection, SendMessage(message="hi", is_admin=True))

        assert message.is_admin is False
        assert gateway.registry.get(connection.joined_room_id).unread_count == 1

    @pytest.mark.asyncio
    async def test_per_room_order_is_identical_for_all_participants(self, gateway, admin_token):
        """같은 방의 모든 참여자가 같은 순서로 메시지를 받음"""
        first = await join_guest(gateway, "Somchai")
        room_id = first.joined_room_id
        second = await join_guest(gateway, "Friend", room_id=room_id)
        admin = gateway.connect(admin_token)
        await gateway.dispatch(admin, {"type": "open_room", "data": {"roomId": room_id}})
        for conn in (first, second, admin):
            conn.drain_events()

        for index in range(30):
            sender = (first, second, admin)[index % 3]
            await gateway.dispatch(sender, {
                "type": "send_message",
                "data": {"message": f"m{index}", "roomId": room_id},
            })

        sequences = [[m["message"] for m in events_of(conn, "message")] for conn in (first, second, admin)]
        assert sequences[0] == [f"m{index}" for index in range(30)]
        assert sequences[0] == sequences[1] == sequences[2]

        await gateway.persister.drain()
        stored = await gateway.store.list_messages(room_id, limit=100)
        timestamps = [item.message.timestamp for item in stored]
        assert all(earlier < later for earlier, later in zip(timestamps, timestamps[1:]))
        assert [item.message.body for item in stored] == sequences[0]

    @pytest.mark.asyncio
    async def test_admin_sends_to_room_by_id(self, gateway, admin_token):
        """관리자는 roomId로 열어 두지 않은 방에도 전송 가능"""
        guest = await join_guest(gateway, "Somchai")
        admin = gateway.connect(admin_token)
        admin.drain_events()

        message = gateway.router.route(admin, SendMessage(message="Hello", room_id=guest.joined_room_id))

        delivered = events_of(guest, "message")
        assert delivered[0]["isAdmin"] is True
        assert delivered[0]["senderId"] == "admin-1"
        assert message.room_id == guest.joined_room_id
        # 관리자 메시지는 미읽음에 포함되지 않음
        assert gateway.registry.get(guest.joined_room_id).unread_count == 0

    @pytest.mark.asyncio
    async def test_admin_channel_gets_activity(self, gateway, admin_token):
        admin = gateway.connect(admin_token)
        guest = await join_guest(gateway, "Somchai")
        admin.drain_events()

        gateway.router.route(guest, SendMessage(message="I need help"))

        activity = events_of(admin, "conversation_activity")
        assert len(activity) == 1
        assert activity[0]["roomId"] == guest.joined_room_id
        assert activity[0]["preview"] == "I need help"
        assert activity[0]["unreadCount"] == 1


class TestPersistenceFailure:
    """저장 실패 테스트"""

    @pytest.mark.asyncio
    async def test_store_failure_does_not_block_delivery(self, test_settings, caplog):
        """저장소 장애가 있어도 실시간 전달은 계속됨"""
        store = InMemoryChatStore()
        store.create_message = AsyncMock(side_effect=RuntimeError("database unavailable"))
        gateway = ChatGateway(store=store, settings=test_settings)
        guest = await join_guest(gateway, "Somchai")

        with caplog.at_level(logging.ERROR, logger="dorm_chat.services.persistence"):
            gateway.router.route(guest, SendMessage(message="still delivered"))
            delivered = events_of(guest, "message")
            await gateway.persister.drain()

        assert [m["message"] for m in delivered] == ["still delivered"]
        assert "create_message failed: database unavailable" in caplog.text
        assert gateway.persister.pending == 0
