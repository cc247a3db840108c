import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from dorm_chat.core.errors import InvalidEvent
from dorm_chat.core.logging import clear_connection_context, set_connection_context
from dorm_chat.websockets.connection import Connection
from dorm_chat.websockets.gateway import ChatGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["WebSocket"])


def extract_token(websocket: WebSocket) -> Optional[str]:
    """
    연결 토큰 추출.

    프론트엔드는 `query.token`을 사용하고, 서버 간 호출은 Authorization 헤더를 사용합니다.
    """
    token = websocket.query_params.get("token")
    if token:
        return token

    auth_header = websocket.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.removeprefix("Bearer ").strip()

    return None


async def _drain_outbox(websocket: WebSocket, connection: Connection):
    """송신 큐를 순서대로 전송하는 writer 루프"""
    while True:
        event = await connection.next_event()
        await websocket.send_json(event)

        # 큐 초과로 닫힌 연결: 남은 이벤트를 보낸 뒤 종료 (1013 Try Again Later)
        if connection.overflowed and connection.outbox.empty():
            logger.warning(f"Closing slow WebSocket connection {connection.connection_id}")
            await websocket.close(code=1013)
            return


@router.websocket("/public-chat")
async def public_chat_endpoint(websocket: WebSocket):
    """
    공개 채팅 WebSocket 엔드포인트

    게스트는 토큰 없이, 입주자/관리자는 JWT 토큰과 함께 연결합니다.
    토큰 검증에 실패해도 연결은 게스트로 유지됩니다.
    """
    gateway: ChatGateway = websocket.app.state.gateway

    await websocket.accept()

    # 1. 신원 결정 (관리자는 알림 채널 자동 구독)
    connection = gateway.connect(extract_token(websocket))
    set_connection_context(connection.connection_id)

    # 2. 송신 큐 writer 시작
    writer = asyncio.create_task(_drain_outbox(websocket, connection))

    try:
        # 3. 메시지 수신 루프
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError as e:
                # JSON 파싱 오류
                logger.warning(f"Invalid JSON from connection {connection.connection_id}: {e}")
                connection.send("error", InvalidEvent("Malformed JSON frame").to_dict())
                continue

            await gateway.dispatch(connection, data)

    except WebSocketDisconnect:
        # 정상적인 연결 해제
        logger.info(f"WebSocket disconnected: {connection.connection_id}")

    except Exception as e:
        logger.error(f"Unexpected error in WebSocket connection {connection.connection_id}: {e}")

    finally:
        # 4. 연결 해제 처리 (명시적 leave 없이도 항상 방에서 제거)
        gateway.disconnect(connection)
        writer.cancel()
        try:
            await writer
        except (asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            pass
        except Exception as e:
            logger.debug(f"Writer task ended with error: {e}")
        clear_connection_context()
