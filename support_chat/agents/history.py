"""历史窗口构建。

从存储中取出新消息之前的最近若干条消息，恢复为时间正序，
并把存储层的 Sender 映射为 LLM 的两方角色。
"""

from typing import List

from support_chat.domain.conversation import MessageStore
from support_chat.domain.exceptions import InvalidArgument
from support_chat.domain.models import ChatMessage, Role, Sender

DEFAULT_WINDOW_SIZE = 10


def to_provider_role(sender: Sender) -> Role:
    """Sender -> LLM 角色：user 映射为 "user"，其余一律为 "assistant"。"""

    if sender == Sender.USER:
        return "user"
    return "assistant"


def build_context(
    store: MessageStore,
    conversation_id: int,
    before_message_id: int,
    window_size: int = DEFAULT_WINDOW_SIZE,
) -> List[ChatMessage]:
    """返回 id < before_message_id 的最近 window_size 条消息（时间正序）。

    Raises:
        InvalidArgument: window_size <= 0。
    """

    if window_size <= 0:
        raise InvalidArgument(f"window_size must be positive, got {window_size}")
    recent = store.list_recent_messages(conversation_id, before_message_id, window_size)
    # 存储按 id 倒序返回，这里恢复为正序
    ordered = sorted(recent, key=lambda m: m.id)
    return [ChatMessage(role=to_provider_role(m.sender), content=m.text) for m in ordered]
