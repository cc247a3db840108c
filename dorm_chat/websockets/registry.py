from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from dorm_chat.core.errors import RoomNotFound
from dorm_chat.core.logging import get_logger
from dorm_chat.models.chat_rooms import ChatRoom, RoomMetadata
from dorm_chat.schemas.chat_room import ChatRoomSummary
from dorm_chat.utils.time_utils import utcnow
from dorm_chat.websockets.connection import Connection

logger = get_logger(__name__)


class RoomRegistry:
    """
    메모리 채팅방 레지스트리: {room_id: ChatRoom}

    모든 변경은 동기 메서드로만 수행되어 이벤트 루프 기준 원자적입니다.
    전송 계층 코드는 join/leave/touch를 통해서만 변경해야 합니다.
    """

    def __init__(self):
        self._rooms: Dict[str, ChatRoom] = {}

    def join(
        self,
        room_id: str,
        connection: Connection,
        metadata: Optional[RoomMetadata] = None
    ) -> Tuple[ChatRoom, bool]:
        """
        연결을 채팅방 참여자에 추가합니다.

        Args:
            room_id: 채팅방 ID
            connection: 참여할 연결
            metadata: 생성 정보. 없으면 존재하는 방에만 입장할 수 있음

        Returns:
            (ChatRoom, created): 채팅방과 이번 호출로 생성되었는지 여부

        Raises:
            RoomNotFound: 방이 없고 생성 정보도 없는 경우
        """
        room = self._rooms.get(room_id)
        created = False

        if room is None:
            if metadata is None:
                raise RoomNotFound(details={"room_id": room_id})
            room = ChatRoom.from_metadata(room_id, metadata)
            self._rooms[room_id] = room
            created = True
            logger.info(f"Chat room {room_id} created ({room.kind.value})")

        # 같은 방 재입장은 no-op
        if connection.joined_room_id == room_id and connection.connection_id in room.participants:
            return room, created

        # 연결당 하나의 방만 유지
        if connection.joined_room_id is not None:
            self.leave(connection)

        room.participants[connection.connection_id] = connection
        connection.joined_room_id = room_id
        return room, created

    def register(self, room_id: str, metadata: RoomMetadata) -> Tuple[ChatRoom, bool]:
        """참여자 없이 방만 등록합니다. 이미 있으면 기존 방을 반환"""
        room = self._rooms.get(room_id)
        if room is not None:
            return room, False

        room = ChatRoom.from_metadata(room_id, metadata)
        self._rooms[room_id] = room
        logger.info(f"Chat room {room_id} registered ({room.kind.value})")
        return room, True

    def leave(self, connection: Connection) -> Optional[str]:
        """연결이 속한 방에서 제거합니다. 이미 나간 경우 None (멱등)"""
        room_id = connection.joined_room_id
        if room_id is None:
            return None

        room = self._rooms.get(room_id)
        if room is not None:
            room.participants.pop(connection.connection_id, None)

        connection.joined_room_id = None
        return room_id

    def touch(self, room_id: str, at: Optional[datetime] = None) -> ChatRoom:
        """마지막 활동 시각 갱신"""
        room = self.require(room_id)
        room.last_activity_at = at or utcnow()
        return room

    def get(self, room_id: str) -> Optional[ChatRoom]:
        return self._rooms.get(room_id)

    def require(self, room_id: str) -> ChatRoom:
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFound(details={"room_id": room_id})
        return room

    def record_unread(self, room_id: str) -> int:
        """
        게스트/입주자 메시지 수신 시 미읽음 수를 증가시킵니다.
        관리자가 방을 열어 둔 동안에는 증가하지 않습니다.
        """
        room = self.require(room_id)
        if not room.has_admin_participant:
            room.unread_count += 1
        return room.unread_count

    def mark_opened(self, room_id: str) -> ChatRoom:
        """관리자가 방을 열람 → 미읽음 초기화"""
        room = self.require(room_id)
        room.unread_count = 0
        return room

    def list_active(self) -> List[ChatRoomSummary]:
        """최근 활동 순 채팅방 스냅샷"""
        rooms = sorted(self._rooms.values(), key=lambda room: room.last_activity_at, reverse=True)
        return [
            ChatRoomSummary(
                room_id=room.room_id,
                kind=room.kind.value,
                display_name=room.display_name,
                last_activity_at=room.last_activity_at,
                unread_count=room.unread_count,
                participant_count=room.participant_count,
                tenant_id=room.tenant_id,
            )
            for room in rooms
        ]

    def reap_idle(self, ttl_seconds: int, now: Optional[datetime] = None) -> List[str]:
        """참여자가 없고 ttl 이상 유휴 상태인 방을 제거하고 ID 목록을 반환"""
        threshold = (now or utcnow()) - timedelta(seconds=ttl_seconds)
        expired = [
            room_id for room_id, room in self._rooms.items()
            if room.is_dormant and room.last_activity_at < threshold
        ]
        for room_id in expired:
            del self._rooms[room_id]
        if expired:
            logger.info(f"Reaped {len(expired)} idle chat rooms")
        return expired

    def rooms_for(self, connection: Connection) -> List[str]:
        """연결이 참여자로 등록된 방 ID 목록 (일관성 검사용)"""
        return [
            room_id for room_id, room in self._rooms.items()
            if connection.connection_id in room.participants
        ]

    def __len__(self):
        return len(self._rooms)

    def __contains__(self, room_id: str):
        return room_id in self._rooms
