"""
Fire-and-forget 저장 작업 관리

실시간 전달 경로는 저장 완료를 기다리지 않습니다. 실패는 PersistenceFailure로
기록만 하고 전달에는 영향을 주지 않습니다.
"""

import asyncio
from typing import Awaitable, Optional, Set

from dorm_chat.core.errors import PersistenceFailure
from dorm_chat.core.logging import get_logger

logger = get_logger(__name__)


class BackgroundPersister:
    """저장 코루틴을 백그라운드 태스크로 실행하고 참조를 보관"""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, operation: str, room_id: Optional[str] = None) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_done(t, operation, room_id))
        return task

    def _on_done(self, task: asyncio.Task, operation: str, room_id: Optional[str]):
        self._tasks.discard(task)
        if task.cancelled():
            return

        exc = task.exception()
        if exc is not None:
            failure = PersistenceFailure(
                f"{operation} failed: {exc}",
                details={"operation": operation, "room_id": room_id}
            )
            logger.error(
                failure.message,
                exc_info=(type(exc), exc, exc.__traceback__),
                extra={
                    "event_type": "persistence_failure",
                    "operation": operation,
                    "room_id": room_id,
                }
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self):
        """대기 중인 저장 작업 완료 대기 (종료 시 / 테스트용)"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
