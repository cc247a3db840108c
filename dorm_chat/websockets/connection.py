import asyncio
import uuid
from typing import Any, Dict, Optional

from dorm_chat.core.logging import get_logger
from dorm_chat.models.identity import Identity
from dorm_chat.schemas.events import outbound

logger = get_logger(__name__)


class Connection:
    """
    하나의 WebSocket 연결.

    전송 계층이 소유합니다. 서버 → 클라이언트 이벤트는 outbox 큐에 쌓이고
    엔드포인트의 writer 태스크가 순서대로 전송합니다.
    큐가 가득 차면 (멈춘 소켓) 더 이상 이벤트를 받지 않고 연결을 닫습니다.
    """

    def __init__(
        self,
        identity: Identity,
        connection_id: Optional[str] = None,
        downgraded: bool = False,
        max_size: int = 0
    ):
        self.connection_id = connection_id or uuid.uuid4().hex
        self.identity = identity
        self.downgraded = downgraded
        self.display_name: Optional[str] = identity.name
        self.joined_room_id: Optional[str] = None
        self.outbox: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue(maxsize=max_size)
        self.closed = False
        self.overflowed = False

    @property
    def is_admin(self) -> bool:
        return self.identity.is_admin

    def send(self, event_type: str, data: Dict[str, Any]) -> bool:
        """이벤트를 송신 큐에 넣습니다. 대기하지 않습니다."""
        if self.closed:
            return False
        try:
            self.outbox.put_nowait(outbound(event_type, data))
        except asyncio.QueueFull:
            logger.warning(
                f"Outbox full for connection {self.connection_id}, closing",
                extra={"event_type": "outbox_overflow", "connection_id": self.connection_id}
            )
            self.overflowed = True
            self.close()
            return False
        return True

    async def next_event(self) -> Dict[str, Any]:
        return await self.outbox.get()

    def drain_events(self):
        """큐에 쌓인 이벤트를 모두 꺼냅니다 (테스트/종료 처리용)"""
        events = []
        while not self.outbox.empty():
            events.append(self.outbox.get_nowait())
        return events

    def close(self):
        self.closed = True

    def __repr__(self):
        return (
            f"<Connection(id={self.connection_id}, kind={self.identity.kind.value}, "
            f"room={self.joined_room_id})>"
        )
