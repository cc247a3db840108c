from dorm_chat.models.chat_rooms import ChatRoom, RoomKind
from dorm_chat.models.identity import Identity, IdentityKind
from dorm_chat.models.messages import ChatMessage
from dorm_chat.utils.time_utils import utcnow
from dorm_chat.websockets.admin_channel import AdminNotificationChannel
from dorm_chat.websockets.connection import Connection

from conftest import events_of


def make_admin(subject="admin-1"):
    return Connection(Identity(kind=IdentityKind.ADMIN, subject_id=subject, name=subject))


def make_room(room_id="g1"):
    return ChatRoom(room_id=room_id, kind=RoomKind.GUEST, display_name="Somchai")


class TestAdminNotificationChannel:
    """관리자 알림 채널 테스트"""

    def test_subscribe_is_idempotent(self):
        channel = AdminNotificationChannel()
        admin = make_admin()

        assert channel.subscribe(admin) is True
        assert channel.subscribe(admin) is False
        assert len(channel) == 1

    def test_new_conversation_fires_once_per_admin(self):
        """관리자 두 명이 각각 정확히 한 번씩 new_conversation 수신"""
        channel = AdminNotificationChannel()
        a1, a2 = make_admin("a1"), make_admin("a2")
        channel.subscribe(a1)
        channel.subscribe(a2)
        room = make_room()

        assert channel.announce_new_conversation(room) is True
        assert channel.announce_new_conversation(room) is False

        for admin in (a1, a2):
            announced = events_of(admin, "new_conversation")
            assert len(announced) == 1
            assert announced[0]["roomId"] == "g1"
            assert announced[0]["userName"] == "Somchai"

    def test_restored_room_is_not_announced(self):
        channel = AdminNotificationChannel()
        admin = make_admin()
        channel.subscribe(admin)

        channel.mark_announced("g1")
        channel.announce_new_conversation(make_room())

        assert events_of(admin, "new_conversation") == []

    def test_activity_carries_truncated_preview(self):
        channel = AdminNotificationChannel(preview_length=5)
        admin = make_admin()
        channel.subscribe(admin)
        room = make_room()
        room.unread_count = 3
        message = ChatMessage(
            id="m1", room_id="g1", sender_id="c1", sender_name="Somchai",
            is_admin=False, body="hello world", timestamp=utcnow()
        )

        channel.announce_activity(room, message)

        activity = events_of(admin, "conversation_activity")[0]
        assert activity["preview"] == "hello..."
        assert activity["unreadCount"] == 3
        assert activity["displayName"] == "Somchai"

    def test_unsubscribed_admin_receives_nothing(self):
        channel = AdminNotificationChannel()
        admin = make_admin()
        channel.subscribe(admin)
        channel.unsubscribe(admin)

        channel.announce_new_conversation(make_room())

        assert admin.drain_events() == []
        assert len(channel) == 0

    def test_announcement_memory_is_bounded(self):
        """알림 기록은 최근 방만 유지"""
        channel = AdminNotificationChannel(max_announced=3)

        for index in range(5):
            assert channel.announce_new_conversation(make_room(f"r{index}")) is True

        # 가장 최근 3개는 중복 알림 방지
        for index in (2, 3, 4):
            assert channel.announce_new_conversation(make_room(f"r{index}")) is False
        assert channel.announce_new_conversation(make_room("r0")) is True
