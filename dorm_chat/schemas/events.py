"""
WebSocket 이벤트 스키마

모든 프레임은 {"type": <이벤트 이름>, "data": {...}} 형식입니다.
클라이언트 이벤트는 라우터에 들어가기 전에 여기서 타입별 모델로 검증됩니다.
"""

from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from dorm_chat.core.errors import InvalidEvent


class InboundEnvelope(BaseModel):
    """Client → Server 프레임"""
    type: str = Field(..., min_length=1, description="이벤트 이름")
    data: Dict[str, Any] = Field(default_factory=dict, description="이벤트 페이로드")


class ClientEvent(BaseModel):
    """클라이언트 이벤트 기본 스키마 (camelCase 필드 허용)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class JoinPrivateChat(ClientEvent):
    """게스트/입주자 채팅방 입장 또는 재개"""
    name: str = Field(..., min_length=1, max_length=100, description="표시 이름")
    room_id: Optional[str] = Field(None, max_length=200, description="이전에 발급된 세션 토큰")

    @model_validator(mode="after")
    def _strip_name(self):
        self.name = self.name.strip()
        if not self.name:
            raise ValueError("name must not be blank")
        return self


class JoinAdminRoom(ClientEvent):
    """관리자 알림 채널 구독"""
    name: str = Field(..., min_length=1, max_length=100, description="관리자 표시 이름")
    is_admin: bool = Field(default=True, description="클라이언트 주장값, 서버는 토큰으로 판단")


class SendMessage(ClientEvent):
    """메시지 전송"""
    message: str = Field(..., description="메시지 본문 (공백 검사는 라우터에서 수행)")
    room_id: Optional[str] = Field(None, description="관리자 전송 시 대상 채팅방")
    is_admin: bool = Field(default=False, description="클라이언트 주장값, 서버는 토큰으로 판단")
    client_message_id: Optional[str] = Field(None, max_length=100, description="전송 확인용 클라이언트 ID")


class OpenRoom(ClientEvent):
    """관리자가 채팅방을 열람 (또는 입주자 대상으로 생성)"""
    room_id: Optional[str] = Field(None, description="열람할 채팅방 ID")
    tenant_id: Optional[str] = Field(None, description="관리자 주도 대화 대상 입주자 ID")
    name: Optional[str] = Field(None, max_length=100, description="새 대화 표시 이름")

    @model_validator(mode="after")
    def _require_target(self):
        if not self.room_id and not self.tenant_id:
            raise ValueError("roomId or tenantId is required")
        return self


class Typing(ClientEvent):
    """입력 중 표시 (저장하지 않음)"""
    is_typing: bool = Field(default=True, description="입력 중 여부")


class LeaveRoom(ClientEvent):
    """현재 채팅방에서 나가기 (연결은 유지)"""


class Ping(ClientEvent):
    """연결 확인"""


CLIENT_EVENTS: Dict[str, Type[ClientEvent]] = {
    "join_private_chat": JoinPrivateChat,
    "join_admin_room": JoinAdminRoom,
    "send_message": SendMessage,
    "open_room": OpenRoom,
    "typing": Typing,
    "ping": Ping,
    "leave_room": LeaveRoom,
}


def parse_client_event(raw: Any) -> ClientEvent:
    """
    수신 프레임을 타입별 이벤트 모델로 변환합니다.

    Raises:
        InvalidEvent: 프레임 형식 오류, 알 수 없는 이벤트, 페이로드 검증 실패
    """
    try:
        envelope = InboundEnvelope.model_validate(raw)
    except ValidationError as e:
        raise InvalidEvent("Malformed frame", details={"errors": _error_list(e)})

    event_cls = CLIENT_EVENTS.get(envelope.type)
    if event_cls is None:
        raise InvalidEvent(f"Unknown event type: {envelope.type}", details={"type": envelope.type})

    try:
        return event_cls.model_validate(envelope.data)
    except ValidationError as e:
        raise InvalidEvent(
            f"Invalid payload for {envelope.type}",
            details={"type": envelope.type, "errors": _error_list(e)}
        )


def outbound(event_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Server → Client 프레임 생성"""
    return {"type": event_type, "data": data}


def _error_list(error: ValidationError):
    return [
        {"field": ".".join(str(loc) for loc in err["loc"]), "message": err["msg"]}
        for err in error.errors()
    ]
