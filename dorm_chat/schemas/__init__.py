# WebSocket event schemas
from .events import (
    InboundEnvelope,
    ClientEvent,
    JoinPrivateChat,
    JoinAdminRoom,
    SendMessage,
    OpenRoom,
    Typing,
    LeaveRoom,
    Ping,
    parse_client_event,
    outbound
)

# Chat Room schemas
from .chat_room import (
    ChatRoomSummary,
    ChatRoomList,
    ChatMessageItem,
    ChatMessageHistory,
    MarkReadResponse
)

__all__ = [
    "InboundEnvelope",
    "ClientEvent",
    "JoinPrivateChat",
    "JoinAdminRoom",
    "SendMessage",
    "OpenRoom",
    "Typing",
    "LeaveRoom",
    "Ping",
    "parse_client_event",
    "outbound",
    "ChatRoomSummary",
    "ChatRoomList",
    "ChatMessageItem",
    "ChatMessageHistory",
    "MarkReadResponse",
]
