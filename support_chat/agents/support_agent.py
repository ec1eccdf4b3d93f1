"""客服对话编排。

一次 process_message 的步骤严格有序：
写入用户消息 -> 构建历史窗口 -> 生成回复 -> 写入 AI 消息 -> 返回两条消息。
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import uuid4
import logging
import time

from support_chat.agents.history import build_context
from support_chat.agents.reply_generator import ReplyGenerator
from support_chat.config.settings import settings
from support_chat.domain.conversation import Conversation, MessageRecord, MessageStore
from support_chat.domain.exceptions import ValidationError
from support_chat.domain.models import Sender
from support_chat.infrastructure.logging.logger import logger


@dataclass
class ChatTurn:
    """一轮对话的结果。conversation_id 可能是本轮新建的。"""

    conversation_id: int
    user_message: MessageRecord
    ai_message: MessageRecord


class SupportAgent:
    def __init__(self, store: MessageStore, generator: ReplyGenerator, cfg=settings):
        self._store = store
        self._generator = generator
        self._window_size = getattr(cfg, "max_context_messages", 10)
        self._max_length = getattr(cfg, "max_message_length", 500)

    def create_conversation(self) -> Conversation:
        conv = self._store.create_conversation()
        logger.info("Created new conversation", extra={"extra": {"conversation_id": conv.id}})
        return conv

    def get_messages(self, conversation_id: int) -> List[MessageRecord]:
        """返回会话的全部消息；会话不存在时抛出 ConversationNotFound。"""

        self._store.get_conversation(conversation_id)
        return self._store.list_messages(conversation_id)

    def process_message(self, conversation_id: Optional[int], text: str) -> ChatTurn:
        """处理一条用户消息。

        Args:
            conversation_id: 会话ID（可选，不提供则新建会话）
            text: 用户输入，1~max_message_length 个字符且不能全是空白

        Returns:
            ChatTurn，包含会话ID、已持久化的用户消息与 AI 消息

        Raises:
            ValidationError: text 不合法。
            ConversationNotFound: conversation_id 不存在。
            StorageUnavailable: 写入用户消息或 AI 消息时存储不可用。
              若发生在写入 AI 消息时，用户消息已保留，不做回滚。
        """
        self._validate_text(text)
        start_time = time.time()
        log_ctx: Dict[str, Any] = {"trace_id": f"tr-{uuid4().hex}"}

        if conversation_id is None:
            conversation_id = self.create_conversation().id
        log_ctx["conversation_id"] = conversation_id

        # 1. 写入用户消息
        user_rec = self._store.append_message(conversation_id, Sender.USER, text)
        self._log(logging.INFO, "Stored user message", log_ctx, message_id=user_rec.id)

        # 2. 历史窗口：只看这条用户消息之前的消息
        context = build_context(self._store, conversation_id, user_rec.id, self._window_size)

        # 3. 生成回复（不会抛出）
        reply_text = self._generator.generate_reply(context, text)

        # 4. 写入 AI 消息
        ai_rec = self._store.append_message(conversation_id, Sender.AI, reply_text)

        self._log(
            logging.INFO,
            "Completed chat turn",
            log_ctx,
            elapsed_seconds=round(time.time() - start_time, 2),
            context_size=len(context),
            user_message_id=user_rec.id,
            ai_message_id=ai_rec.id,
        )
        return ChatTurn(conversation_id=conversation_id, user_message=user_rec, ai_message=ai_rec)

    def _validate_text(self, text: str) -> None:
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Message text must not be empty", field="text")
        if len(text) > self._max_length:
            raise ValidationError(
                f"Message text must be at most {self._max_length} characters",
                field="text",
            )

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
