from .identity import Identity, IdentityKind, ANONYMOUS_GUEST
from .chat_rooms import ChatRoom, ChatRoomRecord, RoomKind, RoomMetadata
from .messages import ChatMessage, StoredMessage

__all__ = [
    "Identity",
    "IdentityKind",
    "ANONYMOUS_GUEST",
    "ChatRoom",
    "ChatRoomRecord",
    "RoomKind",
    "RoomMetadata",
    "ChatMessage",
    "StoredMessage",
]
