"""Provider 抽象接口。

ReplyGenerator 不直接依赖具体厂商的 HTTP API，而是依赖此协议：

- 每个厂商实现一个 ProviderClient（如 AnthropicClient）。
- 负责：将 ChatRequest 转成具体 API 请求，并把响应 JSON 解析为 ChatResult。
- 失败时抛出 domain.exceptions 中的 Provider 侧异常。
"""

from typing import Protocol

from support_chat.domain.models import ChatRequest, ChatResult


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志/统计。
    - is_configured(): 是否配置了凭据；未配置时上层不会发起网络调用。
    - chat(req): 执行一次非流式对话调用，返回统一的 ChatResult。
    """

    name: str

    def is_configured(self) -> bool:
        ...

    def chat(self, req: ChatRequest) -> ChatResult:
        ...
