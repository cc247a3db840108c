"""
Chat persistence layer.

대화 기록은 외부 저장소에 보관됩니다. 실시간 경로는 ChatStore 인터페이스만 사용하며,
개발/테스트용으로 메모리 구현을 제공합니다.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from dorm_chat.models.chat_rooms import ChatRoomRecord
from dorm_chat.models.messages import ChatMessage, StoredMessage
from dorm_chat.utils.time_utils import utcnow


class ChatStore(ABC):
    """대화 저장소 인터페이스"""

    @abstractmethod
    async def create_room(self, room: ChatRoomRecord) -> ChatRoomRecord:
        """채팅방 생성 (이미 있으면 기존 레코드 반환)"""

    @abstractmethod
    async def get_room(self, room_id: str) -> Optional[ChatRoomRecord]:
        """채팅방 조회"""

    @abstractmethod
    async def create_message(self, message: ChatMessage) -> StoredMessage:
        """메시지 저장 및 채팅방 마지막 메시지 시각 갱신"""

    @abstractmethod
    async def list_rooms_ordered_by_activity(self) -> List[Tuple[ChatRoomRecord, int]]:
        """(채팅방, 미읽음 수) 목록을 최근 활동 순으로 반환"""

    @abstractmethod
    async def list_messages(self, room_id: str, limit: int = 50, skip: int = 0) -> List[StoredMessage]:
        """채팅방 메시지를 시간 순으로 반환"""

    @abstractmethod
    async def count_messages(self, room_id: str) -> int:
        """채팅방 메시지 수"""

    @abstractmethod
    async def mark_read(self, room_id: str, read_at: Optional[datetime] = None) -> int:
        """게스트/입주자가 보낸 미읽음 메시지를 읽음 처리하고 처리된 수를 반환"""


class InMemoryChatStore(ChatStore):
    """프로세스 메모리 저장소 (개발 및 테스트용)"""

    def __init__(self):
        self._rooms: Dict[str, ChatRoomRecord] = {}
        self._messages: Dict[str, List[StoredMessage]] = {}
        self._lock = asyncio.Lock()

    async def create_room(self, room: ChatRoomRecord) -> ChatRoomRecord:
        async with self._lock:
            existing = self._rooms.get(room.room_id)
            if existing is not None:
                return existing
            self._rooms[room.room_id] = room
            self._messages.setdefault(room.room_id, [])
            return room

    async def get_room(self, room_id: str) -> Optional[ChatRoomRecord]:
        return self._rooms.get(room_id)

    async def create_message(self, message: ChatMessage) -> StoredMessage:
        async with self._lock:
            room = self._rooms.get(message.room_id)
            if room is None:
                raise LookupError(f"Chat room {message.room_id} does not exist")

            stored = StoredMessage(message=message)
            messages = self._messages.setdefault(message.room_id, [])
            messages.append(stored)
            # 비동기 저장 순서가 뒤섞여도 수락 시각 순서를 유지
            messages.sort(key=lambda item: item.message.timestamp)

            if room.last_message_at is None or message.timestamp > room.last_message_at:
                room.last_message_at = message.timestamp
            return stored

    async def list_rooms_ordered_by_activity(self) -> List[Tuple[ChatRoomRecord, int]]:
        rooms = sorted(
            self._rooms.values(),
            key=lambda room: room.last_message_at or room.created_at,
            reverse=True
        )
        return [(room, self._unread_count(room.room_id)) for room in rooms]

    async def list_messages(self, room_id: str, limit: int = 50, skip: int = 0) -> List[StoredMessage]:
        messages = self._messages.get(room_id, [])
        return messages[skip:skip + limit]

    async def count_messages(self, room_id: str) -> int:
        return len(self._messages.get(room_id, []))

    async def mark_read(self, room_id: str, read_at: Optional[datetime] = None) -> int:
        read_at = read_at or utcnow()
        marked = 0
        async with self._lock:
            for stored in self._messages.get(room_id, []):
                if not stored.message.is_admin and not stored.is_read:
                    stored.is_read = True
                    stored.read_at = read_at
                    marked += 1
        return marked

    def _unread_count(self, room_id: str) -> int:
        return sum(
            1 for stored in self._messages.get(room_id, [])
            if not stored.message.is_admin and not stored.is_read
        )
