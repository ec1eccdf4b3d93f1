"""统一的对话与结果数据模型。

本模块定义了在存储层、窗口构建与 Provider 之间共享的标准数据结构：

- Sender: 消息发送方（user / ai），即存储层的封闭枚举。
- ChatMessage: 发给 LLM 的一条消息（user / assistant 两种角色）。
- ChatRequest: 发给底层 LLM Provider 的完整请求。
- ChatResult: 从 Provider 解析后的统一响应结果。

Provider 适配器（如 AnthropicClient）只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Optional


class Sender(str, Enum):
    """消息发送方。存储层只认这两个取值。"""

    USER = "user"
    AI = "ai"


# LLM 侧只有两方角色
Role = Literal["user", "assistant"]


@dataclass
class ChatMessage:
    """发给 Provider 的一条消息。"""

    role: Role
    content: str


@dataclass
class ChatRequest:
    """一次完整的聊天请求。

    system 与 messages 分开传递：Anthropic Messages API 不接受 role=system 的消息。
    """

    provider: str  # 逻辑 Provider 名，如 "anthropic"
    model: str  # 逻辑模型名，如 "support-chat"（再由 registry 映射为真实模型名）
    system: str
    messages: List[ChatMessage]
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None


@dataclass
class ContentBlock:
    """响应中的一个内容块，type 为 "text" 时 text 有值。"""

    type: str
    text: Optional[str] = None


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    input_tokens: int
    output_tokens: int


@dataclass
class ChatResult:
    """一次对话调用的最终结果。"""

    provider: str
    model: str
    content: List[ContentBlock] = field(default_factory=list)
    stop_reason: Optional[str] = None
    usage: Optional[ChatUsage] = None
    raw: Optional[Dict[str, Any]] = None

    def first_text(self) -> Optional[str]:
        """返回第一个 text 类型内容块的文本；没有则返回 None。"""

        for block in self.content:
            if block.type == "text" and block.text is not None:
                return block.text
        return None
