import secrets
from dataclasses import dataclass
from typing import Callable, Optional

from dorm_chat.core.errors import AuthDowngraded, PersistenceFailure, RoomAccessDenied, RoomNotFound
from dorm_chat.core.logging import get_logger, log_authentication_event
from dorm_chat.models.chat_rooms import ChatRoom, ChatRoomRecord, RoomKind, RoomMetadata
from dorm_chat.models.identity import ANONYMOUS_GUEST, Identity
from dorm_chat.services.chat_store import ChatStore
from dorm_chat.services.persistence import BackgroundPersister
from dorm_chat.utils.auth import verify_token
from dorm_chat.websockets.connection import Connection
from dorm_chat.websockets.registry import RoomRegistry

logger = get_logger(__name__)

SESSION_TOKEN_BYTES = 24


@dataclass(frozen=True)
class ResolvedIdentity:
    identity: Identity
    downgraded: bool = False


@dataclass(frozen=True)
class RoomJoin:
    """입장 결과"""
    room: ChatRoom
    created: bool = False  # 이번 입장으로 처음 생성됨
    restored: bool = False  # 저장소에 있던 방을 레지스트리로 복원함


def room_id_for_tenant(tenant_id: str) -> str:
    return f"tenant-{tenant_id}"


def mint_session_token() -> str:
    """추측 불가능한 게스트 세션 토큰 (채팅방 ID로도 사용)"""
    return secrets.token_urlsafe(SESSION_TOKEN_BYTES)


class SessionIdentityResolver:
    """
    연결마다 참여자 신원을 결정하고, 첫 입장 시 채팅방 생성을 요청합니다.

    채팅방 생성은 이 클래스만 수행합니다 (RoomRegistry.join에 metadata 전달).
    """

    def __init__(
        self,
        registry: RoomRegistry,
        store: ChatStore,
        persister: BackgroundPersister,
        token_verifier: Callable[[Optional[str]], Optional[Identity]] = verify_token
    ):
        self.registry = registry
        self.store = store
        self.persister = persister
        self.token_verifier = token_verifier

    def resolve(self, token: Optional[str]) -> ResolvedIdentity:
        """
        인증 토큰으로 신원을 결정합니다.

        토큰이 없으면 익명 게스트, 검증에 실패하면 연결을 거부하지 않고
        익명 게스트로 강등합니다 (공개 채팅 위젯 가용성 유지).
        """
        if not token:
            return ResolvedIdentity(identity=ANONYMOUS_GUEST)

        try:
            identity = self.token_verifier(token)
        except Exception as e:
            logger.error(f"Token verifier error: {e}")
            identity = None

        if identity is None:
            log_authentication_event(logger, "token_verify", success=False, reason=AuthDowngraded.error)
            return ResolvedIdentity(identity=ANONYMOUS_GUEST, downgraded=True)

        log_authentication_event(logger, "token_verify", subject=identity.subject_id, role=identity.kind.value)
        return ResolvedIdentity(identity=identity)

    async def resolve_room(
        self,
        connection: Connection,
        name: str,
        presented_room_id: Optional[str] = None
    ) -> RoomJoin:
        """
        join_private_chat 처리: 게스트/입주자를 자신의 방에 입장시킵니다.

        - 게스트: 제시한 세션 토큰의 방이 있으면 재개, 없으면 새 토큰 발급
        - 입주자: 입주자 ID로 방 결정 (제시한 게스트 토큰은 무시)
        - 관리자: 기존 방 열람만 가능
        """
        identity = connection.identity
        connection.display_name = name

        if identity.is_admin:
            if not presented_room_id:
                raise RoomNotFound("roomId is required for admin connections")
            return await self.join_or_create(connection, presented_room_id)

        if identity.is_tenant:
            metadata = RoomMetadata(
                kind=RoomKind.TENANT,
                display_name=name or identity.name or f"Tenant {identity.subject_id}",
                tenant_id=identity.subject_id,
            )
            return await self.join_or_create(connection, room_id_for_tenant(identity.subject_id), metadata)

        if presented_room_id:
            try:
                return await self.join_or_create(connection, presented_room_id)
            except RoomNotFound:
                logger.info("Unknown guest session token presented, issuing a new one")
            except RoomAccessDenied:
                logger.warning("Guest presented a non-guest room id, issuing a new session token")

        metadata = RoomMetadata(kind=RoomKind.GUEST, display_name=name)
        return await self.join_or_create(connection, mint_session_token(), metadata)

    async def open_room(
        self,
        connection: Connection,
        room_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
        name: Optional[str] = None
    ) -> RoomJoin:
        """관리자가 방을 열람하거나 입주자 대상 대화를 시작합니다."""
        if room_id:
            return await self.join_or_create(connection, room_id)

        metadata = RoomMetadata(
            kind=RoomKind.ADMIN_INITIATED,
            display_name=name or f"Tenant {tenant_id}",
            tenant_id=tenant_id,
            admin_id=connection.identity.subject_id,
        )
        return await self.join_or_create(connection, room_id_for_tenant(tenant_id), metadata)

    async def join_or_create(
        self,
        connection: Connection,
        room_id: str,
        metadata: Optional[RoomMetadata] = None
    ) -> RoomJoin:
        """
        레지스트리 → 저장소 → 새 생성 순서로 입장을 시도합니다.

        Raises:
            RoomNotFound: 어디에도 없고 생성 정보도 없는 경우
            RoomAccessDenied: 연결의 신원으로 입장할 수 없는 방인 경우
        """
        room = self.registry.get(room_id)
        if room is not None:
            self.check_access(connection, room_id, room.kind, room.tenant_id)
            room, created = self.registry.join(room_id, connection)
            return RoomJoin(room=room, created=created)

        record = await self._lookup(room_id)
        if record is not None:
            self.check_access(connection, room_id, record.kind, record.tenant_id)
            unread = await self._stored_unread(room_id)
            room, created = self.registry.join(room_id, connection, record.to_metadata(unread))
            logger.info(f"Chat room {room_id} restored from store")
            return RoomJoin(room=room, created=created, restored=created)

        if metadata is None:
            raise RoomNotFound(details={"room_id": room_id})

        room, created = self.registry.join(room_id, connection, metadata)
        if created:
            self.persister.spawn(self.store.create_room(room.to_record()), "create_room", room_id)
        return RoomJoin(room=room, created=created)

    async def restore_room(self, room_id: str) -> Optional[ChatRoom]:
        """
        저장소에만 남은 방을 참여자 없이 레지스트리에 복원합니다.
        관리자가 열어 두지 않은 방에 답장할 때 사용합니다.

        Returns:
            ChatRoom: 이번 호출로 복원된 방, 이미 있거나 저장소에도 없으면 None
        """
        if room_id in self.registry:
            return None

        record = await self._lookup(room_id)
        if record is None:
            return None

        unread = await self._stored_unread(room_id)
        room, created = self.registry.register(room_id, record.to_metadata(unread))
        if not created:
            return None
        logger.info(f"Chat room {room_id} restored from store without participants")
        return room

    @staticmethod
    def check_access(connection: Connection, room_id: str, kind: RoomKind, tenant_id: Optional[str]):
        """
        신원별 입장 가능 여부.

        - 관리자: 모든 방
        - 입주자: 자신의 tenant_id가 연결된 방
        - 게스트: 게스트 방 (세션 토큰 자체가 권한)
        """
        identity = connection.identity
        if identity.is_admin:
            return
        if identity.is_tenant and tenant_id is not None and tenant_id == identity.subject_id:
            return
        if identity.is_guest and kind == RoomKind.GUEST:
            return
        raise RoomAccessDenied(details={"room_id": room_id})

    async def _lookup(self, room_id: str) -> Optional[ChatRoomRecord]:
        try:
            return await self.store.get_room(room_id)
        except Exception as e:
            failure = PersistenceFailure(f"get_room failed: {e}", details={"room_id": room_id})
            logger.error(failure.message)
            return None

    async def _stored_unread(self, room_id: str) -> int:
        try:
            for record, unread in await self.store.list_rooms_ordered_by_activity():
                if record.room_id == room_id:
                    return unread
        except Exception as e:
            logger.error(f"Failed to load unread count for {room_id}: {e}")
        return 0
