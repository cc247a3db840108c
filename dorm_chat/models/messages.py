from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any

from dorm_chat.utils.time_utils import isoformat


@dataclass(frozen=True)
class ChatMessage:
    """라우터가 수락한 채팅 메시지. 생성 후 변경되지 않습니다."""
    id: str
    room_id: str
    sender_id: str
    sender_name: str
    is_admin: bool
    body: str
    timestamp: datetime  # 서버가 수락 시점에 발급
    client_message_id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """"message" 이벤트 페이로드"""
        return {
            "id": self.id,
            "senderId": self.sender_id,
            "senderName": self.sender_name,
            "message": self.body,
            "timestamp": isoformat(self.timestamp),
            "isAdmin": self.is_admin,
            "roomId": self.room_id,
        }

    def __repr__(self):
        return f"<ChatMessage(id={self.id}, room_id={self.room_id}, sender_id={self.sender_id})>"


@dataclass
class StoredMessage:
    """저장소에 보관되는 메시지와 읽음 상태"""
    message: ChatMessage
    is_read: bool = False
    read_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.message.to_payload()
        data["isRead"] = self.is_read
        data["readAt"] = isoformat(self.read_at)
        return data
