import weakref
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, TYPE_CHECKING

from dorm_chat.utils.time_utils import utcnow

if TYPE_CHECKING:
    from dorm_chat.websockets.connection import Connection


class RoomKind(str, Enum):
    GUEST = "guest"
    TENANT = "tenant"
    ADMIN_INITIATED = "admin-initiated"


@dataclass
class RoomMetadata:
    """채팅방 생성 정보. 생성 경로(Resolver)만 전달합니다."""
    kind: RoomKind
    display_name: str
    tenant_id: Optional[str] = None
    admin_id: Optional[str] = None
    created_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    unread_count: int = 0


@dataclass
class ChatRoomRecord:
    """저장소에 보관되는 채팅방 정보 (참여자 없음)"""
    room_id: str
    kind: RoomKind
    display_name: str
    tenant_id: Optional[str] = None
    admin_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    last_message_at: Optional[datetime] = None

    def to_metadata(self, unread_count: int = 0) -> RoomMetadata:
        return RoomMetadata(
            kind=self.kind,
            display_name=self.display_name,
            tenant_id=self.tenant_id,
            admin_id=self.admin_id,
            created_at=self.created_at,
            last_activity_at=self.last_message_at or self.created_at,
            unread_count=unread_count,
        )


@dataclass(eq=False)
class ChatRoom:
    """
    메모리 상의 채팅방 상태.

    participants는 연결 객체를 소유하지 않습니다 (WeakValueDictionary).
    연결 해제 시 RoomRegistry.leave()가 명시적으로 제거합니다.
    """
    room_id: str
    kind: RoomKind
    display_name: str
    tenant_id: Optional[str] = None
    admin_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    last_activity_at: datetime = field(default_factory=utcnow)
    unread_count: int = 0
    last_message_at: Optional[datetime] = None
    participants: "weakref.WeakValueDictionary[str, Connection]" = field(
        default_factory=weakref.WeakValueDictionary, repr=False
    )

    @classmethod
    def from_metadata(cls, room_id: str, metadata: RoomMetadata) -> "ChatRoom":
        now = utcnow()
        return cls(
            room_id=room_id,
            kind=metadata.kind,
            display_name=metadata.display_name,
            tenant_id=metadata.tenant_id,
            admin_id=metadata.admin_id,
            created_at=metadata.created_at or now,
            last_activity_at=metadata.last_activity_at or now,
            unread_count=metadata.unread_count,
        )

    @property
    def participant_count(self) -> int:
        return len(self.participants)

    @property
    def is_dormant(self) -> bool:
        return not self.participants

    @property
    def has_admin_participant(self) -> bool:
        return any(conn.identity.is_admin for conn in self.participants.values())

    def issue_timestamp(self) -> datetime:
        """
        메시지 수락 시각을 발급합니다.

        같은 방 안에서는 항상 증가하도록 보정합니다 (시스템 시계가 되돌아가도 유지).
        """
        now = utcnow()
        if self.last_message_at is not None and now <= self.last_message_at:
            now = self.last_message_at + timedelta(microseconds=1)
        self.last_message_at = now
        return now

    def to_record(self) -> ChatRoomRecord:
        return ChatRoomRecord(
            room_id=self.room_id,
            kind=self.kind,
            display_name=self.display_name,
            tenant_id=self.tenant_id,
            admin_id=self.admin_id,
            created_at=self.created_at,
            last_message_at=self.last_message_at,
        )

    def __repr__(self):
        return f"<ChatRoom(room_id={self.room_id}, kind={self.kind.value}, participants={self.participant_count})>"
