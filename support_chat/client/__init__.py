"""Chat widget session client."""

from .id_cache import FileIdCache, IdCache, MemoryIdCache
from .session import (
    ChatSession,
    ConfirmedEntry,
    LocalNoticeEntry,
    PendingEntry,
    ServerMessage,
    SessionState,
)

__all__ = [
    "ChatSession",
    "ConfirmedEntry",
    "FileIdCache",
    "IdCache",
    "LocalNoticeEntry",
    "MemoryIdCache",
    "PendingEntry",
    "ServerMessage",
    "SessionState",
]
