"""
WebSocket 실시간 채팅 모듈

주요 구성 요소:
- identity: 연결별 참여자 신원 결정 (SessionIdentityResolver)
- registry: 메모리 채팅방 레지스트리 (RoomRegistry)
- router: 메시지 검증 및 팬아웃 (MessageRouter)
- admin_channel: 관리자 알림 채널 (AdminNotificationChannel)
- gateway: 이벤트 분배 및 연결 수명 주기 (ChatGateway)
"""

from .connection import Connection
from .registry import RoomRegistry
from .admin_channel import AdminNotificationChannel
from .identity import SessionIdentityResolver, ResolvedIdentity, RoomJoin
from .router import MessageRouter
from .gateway import ChatGateway

__all__ = [
    "Connection",
    "RoomRegistry",
    "AdminNotificationChannel",
    "SessionIdentityResolver",
    "ResolvedIdentity",
    "RoomJoin",
    "MessageRouter",
    "ChatGateway",
]
