"""
Services layer for persistence and background work.

This layer handles:
- Conversation storage (ChatStore)
- Fire-and-forget persistence tasks
- Idle room cleanup
"""

from . import chat_store
from . import persistence

__all__ = [
    "chat_store",
    "persistence"
]
