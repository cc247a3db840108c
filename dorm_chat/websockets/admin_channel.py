import weakref
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from dorm_chat.core.config import settings
from dorm_chat.core.logging import get_logger
from dorm_chat.models.chat_rooms import ChatRoom
from dorm_chat.models.messages import ChatMessage
from dorm_chat.utils.time_utils import isoformat, truncate_preview, utcnow
from dorm_chat.websockets.connection import Connection

logger = get_logger(__name__)


class AdminNotificationChannel:
    """
    모든 관리자 연결이 구독하는 브로드캐스트 그룹.

    관리자가 특정 방을 열어 두지 않아도 새 대화/미리보기/미읽음 갱신을 받습니다.
    """

    def __init__(self, preview_length: Optional[int] = None, max_announced: Optional[int] = None):
        self._members: "weakref.WeakValueDictionary[str, Connection]" = weakref.WeakValueDictionary()
        # 알린 방 ID (삽입 순서, 가장 오래된 기록부터 제거)
        self._announced: "OrderedDict[str, None]" = OrderedDict()
        self.max_announced = max_announced or settings.announced_cache_size
        self.preview_length = preview_length or settings.preview_length

    def subscribe(self, connection: Connection) -> bool:
        """관리자 연결 구독. 이미 구독 중이면 False"""
        if connection.connection_id in self._members:
            return False
        self._members[connection.connection_id] = connection
        logger.info(f"Admin connection {connection.connection_id} joined admin channel")
        return True

    def unsubscribe(self, connection: Connection) -> bool:
        return self._members.pop(connection.connection_id, None) is not None

    @property
    def members(self) -> List[Connection]:
        return list(self._members.values())

    def is_subscribed(self, connection: Connection) -> bool:
        return connection.connection_id in self._members

    def broadcast(self, event_type: str, data: Dict[str, Any]) -> int:
        """구독 중인 모든 관리자에게 한 번씩 전송"""
        delivered = 0
        for member in self.members:
            if member.send(event_type, data):
                delivered += 1
        return delivered

    def announce_new_conversation(self, room: ChatRoom) -> bool:
        """
        채팅방이 처음 생성되었을 때 한 번만 알립니다.
        이미 알린 방이면 아무것도 보내지 않고 False를 반환합니다.
        """
        if room.room_id in self._announced:
            return False
        self._remember(room.room_id)

        self.broadcast("new_conversation", {
            "roomId": room.room_id,
            "userName": room.display_name,
            "kind": room.kind.value,
            "timestamp": isoformat(room.created_at),
        })
        return True

    def mark_announced(self, room_id: str):
        """저장소에서 복원된 방은 다시 알리지 않음"""
        self._remember(room_id)

    def forget(self, room_id: str):
        self._announced.pop(room_id, None)

    def _remember(self, room_id: str):
        self._announced[room_id] = None
        self._announced.move_to_end(room_id)
        while len(self._announced) > self.max_announced:
            self._announced.popitem(last=False)

    def announce_activity(self, room: ChatRoom, message: ChatMessage) -> int:
        """메시지 수락 시 미리보기/미읽음 갱신 알림"""
        return self.broadcast("conversation_activity", {
            "roomId": room.room_id,
            "displayName": room.display_name,
            "preview": truncate_preview(message.body, self.preview_length),
            "senderName": message.sender_name,
            "isAdmin": message.is_admin,
            "unreadCount": room.unread_count,
            "timestamp": isoformat(message.timestamp),
        })

    def announce_read(self, room: ChatRoom) -> int:
        """관리자가 방을 열람/읽음 처리 → 다른 관리자 화면의 배지 초기화"""
        return self.broadcast("conversation_read", {
            "roomId": room.room_id,
            "unreadCount": room.unread_count,
            "timestamp": isoformat(utcnow()),
        })

    def __len__(self):
        return len(self._members)
