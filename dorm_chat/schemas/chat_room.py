from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatRoomSummary(CamelModel):
    """관리자 대화 목록 항목"""
    room_id: str = Field(..., description="채팅방 ID")
    kind: str = Field(..., description="채팅방 종류: guest, tenant, admin-initiated")
    display_name: str = Field(..., description="게스트 이름 또는 입주자 이름")
    last_activity_at: datetime = Field(..., description="마지막 활동 시각")
    unread_count: int = Field(default=0, description="관리자 미읽음 수")
    participant_count: int = Field(default=0, description="현재 연결된 참여자 수")
    tenant_id: Optional[str] = Field(None, description="연결된 입주자 ID")
    is_live: bool = Field(default=True, description="메모리 레지스트리에 존재하는지 여부")


class ChatRoomList(CamelModel):
    """대화 목록 응답"""
    rooms: List[ChatRoomSummary] = Field(..., description="최근 활동 순 대화 목록")
    total: int = Field(..., description="전체 대화 수")


class ChatMessageItem(CamelModel):
    """대화 기록 메시지"""
    id: str
    room_id: str
    sender_id: str
    sender_name: str
    message: str
    timestamp: datetime
    is_admin: bool
    is_read: bool = False
    read_at: Optional[datetime] = None


class ChatMessageHistory(CamelModel):
    """대화 기록 응답"""
    room_id: str
    messages: List[ChatMessageItem]
    total: int
    limit: int
    skip: int
    has_next: bool


class MarkReadResponse(CamelModel):
    """읽음 처리 응답"""
    room_id: str
    marked: int = Field(..., description="읽음 처리된 메시지 수")
    unread_count: int = Field(default=0)
