"""
채팅 게이트웨이

검증된 클라이언트 이벤트를 Resolver / Registry / Router로 분배하고,
연결 해제 시 정리 작업을 수행합니다.
"""

from typing import Any, Optional

from dorm_chat.core.config import Settings, settings as default_settings
from dorm_chat.core.errors import AdminRequired, ChatException, NotInRoom
from dorm_chat.core.logging import get_logger, log_chat_error, log_websocket_event
from dorm_chat.models.chat_rooms import ChatRoom
from dorm_chat.schemas.events import (
    ClientEvent,
    JoinAdminRoom,
    JoinPrivateChat,
    LeaveRoom,
    OpenRoom,
    Ping,
    SendMessage,
    Typing,
    parse_client_event,
)
from dorm_chat.services.chat_store import ChatStore, InMemoryChatStore
from dorm_chat.services.persistence import BackgroundPersister
from dorm_chat.utils.time_utils import isoformat, utcnow
from dorm_chat.websockets.admin_channel import AdminNotificationChannel
from dorm_chat.websockets.connection import Connection
from dorm_chat.websockets.identity import RoomJoin, SessionIdentityResolver
from dorm_chat.websockets.registry import RoomRegistry
from dorm_chat.websockets.router import MessageRouter

logger = get_logger(__name__)

SYSTEM_SENDER_ID = "system"


class ChatGateway:
    """실시간 채팅 서비스 객체 (레지스트리/채널/라우터를 소유)"""

    def __init__(self, store: Optional[ChatStore] = None, settings: Optional[Settings] = None, token_verifier=None):
        self.settings = settings or default_settings
        self.store = store or InMemoryChatStore()
        self.persister = BackgroundPersister()
        self.registry = RoomRegistry()
        self.admin_channel = AdminNotificationChannel(
            preview_length=self.settings.preview_length,
            max_announced=self.settings.announced_cache_size,
        )

        resolver_kwargs = {"token_verifier": token_verifier} if token_verifier else {}
        self.resolver = SessionIdentityResolver(self.registry, self.store, self.persister, **resolver_kwargs)
        self.router = MessageRouter(
            self.registry,
            self.admin_channel,
            self.store,
            self.persister,
            max_message_length=self.settings.max_message_length,
        )

        self._handlers = {
            JoinPrivateChat: self._handle_join_private_chat,
            JoinAdminRoom: self._handle_join_admin_room,
            SendMessage: self._handle_send_message,
            OpenRoom: self._handle_open_room,
            Typing: self._handle_typing,
            LeaveRoom: self._handle_leave_room,
            Ping: self._handle_ping,
        }

    # =========================================================================
    # 연결 수명 주기
    # =========================================================================

    def connect(self, token: Optional[str] = None) -> Connection:
        """새 연결의 신원을 결정하고 관리자는 알림 채널에 자동 구독합니다."""
        resolved = self.resolver.resolve(token)
        connection = Connection(
            resolved.identity,
            downgraded=resolved.downgraded,
            max_size=self.settings.outbox_max_size,
        )

        if connection.is_admin:
            self.admin_channel.subscribe(connection)

        connection.send("connected", {
            "connectionId": connection.connection_id,
            "identity": connection.identity.to_dict(),
            "downgraded": connection.downgraded,
        })
        log_websocket_event(
            logger, "connected", connection.connection_id, None,
            identity=connection.identity.kind.value, downgraded=connection.downgraded
        )
        return connection

    def disconnect(self, connection: Connection):
        """
        모든 연결 해제 경로(정상/비정상)에서 호출됩니다. 멱등.
        방 참여자 목록과 관리자 채널에서 제거합니다.
        """
        room_id = self.registry.leave(connection)
        self.admin_channel.unsubscribe(connection)
        connection.close()
        log_websocket_event(logger, "disconnected", connection.connection_id, room_id)

    async def dispatch(self, connection: Connection, raw: Any):
        """
        수신 프레임 처리. 거부 사유는 요청한 연결에게만 "error" 이벤트로 전달되며
        연결은 유지됩니다.
        """
        try:
            event = parse_client_event(raw)
            await self._handlers[type(event)](connection, event)
        except ChatException as e:
            log_chat_error(logger, e.error, connection.connection_id, connection.joined_room_id, details=e.details)
            connection.send("error", e.to_dict())

    # =========================================================================
    # 이벤트 핸들러
    # =========================================================================

    async def _handle_join_private_chat(self, connection: Connection, event: JoinPrivateChat):
        joined = await self.resolver.resolve_room(connection, event.name, event.room_id)
        self._after_join(connection, joined)

        if self.settings.welcome_message_enabled and not connection.is_admin:
            self._send_welcome(connection, joined)

    async def _handle_join_admin_room(self, connection: Connection, event: JoinAdminRoom):
        if not connection.is_admin:
            raise AdminRequired(details={"event": "join_admin_room"})

        connection.display_name = event.name
        self.admin_channel.subscribe(connection)
        connection.send("admin_room_joined", {
            "conversations": [
                summary.model_dump(mode="json", by_alias=True)
                for summary in self.registry.list_active()
            ],
        })

    async def _handle_send_message(self, connection: Connection, event: SendMessage):
        if connection.is_admin and event.room_id:
            # 정리되었거나 재시작 후 저장소에만 남은 방에도 답장 가능
            restored = await self.resolver.restore_room(event.room_id)
            if restored is not None:
                self.admin_channel.mark_announced(restored.room_id)

        message = self.router.route(connection, event)
        connection.send("message_ack", {
            "id": message.id,
            "clientMessageId": message.client_message_id,
            "roomId": message.room_id,
            "timestamp": isoformat(message.timestamp),
        })

    async def _handle_open_room(self, connection: Connection, event: OpenRoom):
        if not connection.is_admin:
            raise AdminRequired(details={"event": "open_room"})

        joined = await self.resolver.open_room(connection, event.room_id, event.tenant_id, event.name)
        self._after_join(connection, joined)

        room = self.registry.mark_opened(joined.room.room_id)
        self.persister.spawn(self.store.mark_read(room.room_id), "mark_read", room.room_id)
        self.admin_channel.announce_read(room)
        self.broadcast_read_receipt(room, reader=connection)

    async def _handle_typing(self, connection: Connection, event: Typing):
        if connection.joined_room_id is None:
            raise NotInRoom()

        room = self.registry.require(connection.joined_room_id)
        self.router.broadcast(room, "typing", {
            "roomId": room.room_id,
            "senderName": connection.display_name,
            "isAdmin": connection.is_admin,
            "isTyping": event.is_typing,
        }, exclude=connection)

    async def _handle_leave_room(self, connection: Connection, event: LeaveRoom):
        room_id = self.registry.leave(connection)
        if room_id is None:
            raise NotInRoom()

        connection.send("left", {"roomId": room_id})
        log_websocket_event(logger, "left", connection.connection_id, room_id)

    async def _handle_ping(self, connection: Connection, event: Ping):
        connection.send("pong", {"timestamp": isoformat(utcnow())})

    # =========================================================================
    # 내부 헬퍼
    # =========================================================================

    def broadcast_read_receipt(
        self,
        room: ChatRoom,
        reader: Optional[Connection] = None,
        reader_name: Optional[str] = None
    ) -> int:
        """관리자 읽음 처리를 방 참여자에게 알립니다 (읽은 관리자 본인 제외)"""
        return self.router.broadcast(room, "message_read", {
            "roomId": room.room_id,
            "readBy": reader_name or (reader.display_name if reader else None),
            "readAt": isoformat(utcnow()),
        }, exclude=reader)

    def _after_join(self, connection: Connection, joined: RoomJoin):
        room = joined.room
        connection.send("joined", {
            "roomId": room.room_id,
            "kind": room.kind.value,
            "displayName": room.display_name,
            "created": joined.created and not joined.restored,
        })

        if joined.restored:
            self.admin_channel.mark_announced(room.room_id)
        elif joined.created:
            self.admin_channel.announce_new_conversation(room)

        log_websocket_event(
            logger, "joined", connection.connection_id, room.room_id,
            room_created=joined.created, restored=joined.restored
        )

    def _send_welcome(self, connection: Connection, joined: RoomJoin):
        """입장한 연결에게만 보내는 시스템 환영 메시지 (저장하지 않음)"""
        name = connection.display_name or "Guest"
        connection.send("message", {
            "id": f"welcome-{connection.connection_id}",
            "senderId": SYSTEM_SENDER_ID,
            "senderName": self.settings.system_sender_name,
            "message": f"สวัสดีครับ {name}! มีอะไรให้ช่วยเหลือไหมครับ?",
            "timestamp": isoformat(utcnow()),
            "isAdmin": True,
            "roomId": joined.room.room_id,
        })
