"""HTTP 请求/响应模型，字段以 camelCase 对外暴露。"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from support_chat.domain.conversation import Conversation, MessageRecord


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConversationOut(CamelModel):
    id: int
    created_at: datetime

    @classmethod
    def from_record(cls, conv: Conversation) -> "ConversationOut":
        return cls(id=conv.id, created_at=conv.created_at)


class MessageOut(CamelModel):
    id: int
    conversation_id: int
    sender: Literal["user", "ai"]
    text: str
    created_at: datetime

    @classmethod
    def from_record(cls, msg: MessageRecord) -> "MessageOut":
        return cls(
            id=msg.id,
            conversation_id=msg.conversation_id,
            sender=msg.sender.value,
            text=msg.text,
            created_at=msg.created_at,
        )


class ChatIn(CamelModel):
    conversation_id: Optional[int] = Field(default=None, gt=0, strict=True, description="为空时自动新建会话")
    # 长度上限由 SupportAgent 按 max_message_length 校验
    text: str = Field(..., min_length=1)

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("text must not be blank")
        return v


class ChatOut(CamelModel):
    user_message: MessageOut
    ai_message: MessageOut
    conversation_id: int
