"""
유휴 채팅방 정리 서비스

참여자가 없고 일정 시간 이상 활동이 없는 방을 메모리 레지스트리에서 제거합니다.
대화 기록은 저장소에 남아 있으므로 게스트가 같은 토큰으로 돌아오면 복원됩니다.
"""

import asyncio
from typing import List, Optional

from dorm_chat.core.logging import get_logger
from dorm_chat.websockets.admin_channel import AdminNotificationChannel
from dorm_chat.websockets.registry import RoomRegistry

logger = get_logger(__name__)


class RoomReaper:
    """유휴 채팅방 주기적 정리"""

    def __init__(
        self,
        registry: RoomRegistry,
        admin_channel: AdminNotificationChannel,
        ttl_seconds: int,
        interval_seconds: int
    ):
        self.registry = registry
        self.admin_channel = admin_channel
        self.ttl_seconds = ttl_seconds
        self.interval_seconds = interval_seconds
        self.running = False
        self.task: Optional[asyncio.Task] = None

    async def start(self):
        """정리 루프 시작"""
        if self.ttl_seconds <= 0:
            logger.info("Room reaper disabled")
            return

        if self.running:
            logger.warning("Room reaper is already running")
            return

        self.running = True
        self.task = asyncio.create_task(self._run())
        logger.info("Room reaper started")

    async def stop(self):
        """정리 루프 중지"""
        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
        logger.info("Room reaper stopped")

    def reap_once(self) -> List[str]:
        expired = self.registry.reap_idle(self.ttl_seconds)
        for room_id in expired:
            self.admin_channel.forget(room_id)
        return expired

    async def _run(self):
        while self.running:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.reap_once()
            except Exception as e:
                logger.error(f"Error in room reaper: {e}")
