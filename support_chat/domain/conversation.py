from dataclasses import dataclass
from datetime import datetime
from typing import List, Protocol

from .models import Sender


@dataclass
class Conversation:
    id: int
    created_at: datetime


@dataclass(frozen=True)
class MessageRecord:
    id: int
    conversation_id: int
    sender: Sender
    text: str
    created_at: datetime


class MessageStore(Protocol):
    """有序追加日志。id 按插入顺序严格递增，消息一经写入不可修改。"""

    def create_conversation(self) -> Conversation:
        ...

    def conversation_exists(self, conversation_id: int) -> bool:
        ...

    def get_conversation(self, conversation_id: int) -> Conversation:
        ...

    def append_message(self, conversation_id: int, sender: Sender, text: str) -> MessageRecord:
        ...

    def list_messages(self, conversation_id: int) -> List[MessageRecord]:
        ...

    def list_recent_messages(self, conversation_id: int, before_id: int, limit: int) -> List[MessageRecord]:
        """返回 id < before_id 的最新 limit 条消息，按 id 倒序。"""
        ...
