"""进程内消息存储，供测试与 storage_backend=memory 使用。"""

import threading
from datetime import datetime, timezone
from typing import Dict, List

from support_chat.domain.conversation import Conversation, MessageRecord, MessageStore
from support_chat.domain.exceptions import ConversationNotFound
from support_chat.domain.models import Sender


class InMemoryMessageStore(MessageStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._conversations: Dict[int, Conversation] = {}
        self._messages: Dict[int, List[MessageRecord]] = {}
        self._next_conversation_id = 1
        self._next_message_id = 1

    def create_conversation(self) -> Conversation:
        with self._lock:
            conv = Conversation(id=self._next_conversation_id, created_at=datetime.now(timezone.utc))
            self._next_conversation_id += 1
            self._conversations[conv.id] = conv
            self._messages[conv.id] = []
            return conv

    def conversation_exists(self, conversation_id: int) -> bool:
        with self._lock:
            return conversation_id in self._conversations

    def get_conversation(self, conversation_id: int) -> Conversation:
        with self._lock:
            try:
                return self._conversations[conversation_id]
            except KeyError:
                raise ConversationNotFound(conversation_id) from None

    def append_message(self, conversation_id: int, sender: Sender, text: str) -> MessageRecord:
        # id 分配与追加在同一把锁内完成
        with self._lock:
            if conversation_id not in self._conversations:
                raise ConversationNotFound(conversation_id)
            msg = MessageRecord(
                id=self._next_message_id,
                conversation_id=conversation_id,
                sender=Sender(sender),
                text=text,
                created_at=datetime.now(timezone.utc),
            )
            self._next_message_id += 1
            self._messages[conversation_id].append(msg)
            return msg

    def list_messages(self, conversation_id: int) -> List[MessageRecord]:
        with self._lock:
            return list(self._messages.get(conversation_id, []))

    def list_recent_messages(self, conversation_id: int, before_id: int, limit: int) -> List[MessageRecord]:
        with self._lock:
            earlier = [m for m in self._messages.get(conversation_id, []) if m.id < before_id]
        return list(reversed(earlier))[:limit]
