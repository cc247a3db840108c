import uuid
from typing import Any, Dict, Optional

from dorm_chat.core.config import settings
from dorm_chat.core.errors import EmptyMessage, MessageTooLong, NotInRoom, RoomNotFound
from dorm_chat.core.logging import get_logger
from dorm_chat.models.chat_rooms import ChatRoom
from dorm_chat.models.messages import ChatMessage
from dorm_chat.schemas.events import SendMessage
from dorm_chat.services.chat_store import ChatStore
from dorm_chat.services.persistence import BackgroundPersister
from dorm_chat.websockets.admin_channel import AdminNotificationChannel
from dorm_chat.websockets.connection import Connection
from dorm_chat.websockets.registry import RoomRegistry

logger = get_logger(__name__)


class MessageRouter:
    """
    수신 메시지 검증 및 팬아웃.

    route()는 동기 함수입니다. 수락 → 시각 발급 → 참여자 큐 적재가 중단 없이
    이어지므로 같은 방의 모든 참여자는 서버 수락 순서대로 메시지를 받습니다.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        admin_channel: AdminNotificationChannel,
        store: ChatStore,
        persister: BackgroundPersister,
        max_message_length: Optional[int] = None
    ):
        self.registry = registry
        self.admin_channel = admin_channel
        self.store = store
        self.persister = persister
        self.max_message_length = max_message_length or settings.max_message_length

    def route(self, connection: Connection, event: SendMessage) -> ChatMessage:
        """
        send_message 이벤트를 처리합니다.

        Raises:
            NotInRoom: 입장 전 전송 (관리자는 roomId 미지정)
            EmptyMessage: 공백뿐인 본문
            MessageTooLong: 최대 길이 초과
            RoomNotFound: 관리자가 존재하지 않는 방을 지정
        """
        room_id = self._target_room_id(connection, event)

        body = (event.message or "").strip()
        if not body:
            raise EmptyMessage(details={"room_id": room_id})
        if len(body) > self.max_message_length:
            raise MessageTooLong(
                f"Message exceeds {self.max_message_length} characters",
                details={"room_id": room_id, "max_length": self.max_message_length}
            )

        room = self.registry.get(room_id)
        if room is None:
            raise RoomNotFound(details={"room_id": room_id})

        if event.is_admin and not connection.is_admin:
            logger.warning(f"Connection {connection.connection_id} claimed isAdmin without admin identity")

        message = ChatMessage(
            id=uuid.uuid4().hex,
            room_id=room_id,
            sender_id=connection.identity.subject_id or connection.connection_id,
            sender_name=connection.display_name or connection.identity.name or "Anonymous",
            is_admin=connection.is_admin,
            body=body,
            timestamp=room.issue_timestamp(),
            client_message_id=event.client_message_id,
        )

        self.registry.touch(room_id, message.timestamp)
        if not message.is_admin:
            self.registry.record_unread(room_id)

        # 저장 완료를 기다리지 않음
        self.persister.spawn(self.store.create_message(message), "create_message", room_id)

        self.broadcast(room, "message", message.to_payload())
        self.admin_channel.announce_activity(room, message)

        logger.info(
            f"Message accepted in room {room_id}",
            extra={"message_id": message.id, "is_admin": message.is_admin}
        )
        return message

    def broadcast(
        self,
        room: ChatRoom,
        event_type: str,
        data: Dict[str, Any],
        exclude: Optional[Connection] = None
    ) -> int:
        """채팅방의 모든 참여자에게 전송"""
        delivered = 0
        for participant in list(room.participants.values()):
            if exclude is not None and participant.connection_id == exclude.connection_id:
                continue
            if participant.send(event_type, data):
                delivered += 1
        return delivered

    def _target_room_id(self, connection: Connection, event: SendMessage) -> str:
        # 관리자는 열어 두지 않은 방에도 roomId로 전송 가능, 게스트/입주자는 입장한 방으로 고정
        if connection.is_admin:
            room_id = event.room_id or connection.joined_room_id
        else:
            room_id = connection.joined_room_id

        if not room_id:
            raise NotInRoom()
        return room_id
