"""Anthropic Provider 适配器。

本模块负责：

1. 接收统一的 ChatRequest。
2. 将其转换为 Anthropic Messages API（POST {base_url}/v1/messages）的请求格式。
3. 调用 HTTP 接口并把网络/认证/限流/其他 API 错误映射为领域异常。
4. 将响应 JSON 解析为统一的 ChatResult 结构。

认证方式：x-api-key 请求头 + anthropic-version 请求头。
"""

from typing import Any, Dict

import httpx

from support_chat.config.settings import settings
from support_chat.domain.exceptions import (
    ApiError,
    AuthenticationError,
    NetworkError,
    RateLimitError,
    ValidationError,
)
from support_chat.domain.models import ChatRequest, ChatResult, ChatUsage, ContentBlock
from support_chat.providers.registry import ANTHROPIC_CONFIG, ModelConfig, ProviderConfig


class AnthropicClient:
    """Anthropic 提供方客户端实现。

    - name: Provider 名称（供日志/调试使用）。
    - chat: 对外统一调用入口，返回 ChatResult。
    """

    name = "anthropic"

    def __init__(self, cfg=settings, provider_cfg: ProviderConfig = ANTHROPIC_CONFIG):
        # Settings 里包含 base_url、api_key、超时等配置
        self._settings = cfg
        self._provider_cfg = provider_cfg

    def is_configured(self) -> bool:
        key = getattr(self._settings, "anthropic_api_key", None)
        return bool(key) and key != "dummy-key"

    def chat(self, req: ChatRequest) -> ChatResult:
        """执行一次非流式对话调用。

        步骤：
        1. 读取模型配置（logical model -> provider model）。
        2. 构造 HTTP 请求 payload。
        3. 发送请求并把网络错误/认证失败/限流/服务端错误转换为领域异常。
        4. 使用统一的解析函数构造 ChatResult。
        """

        if not self.is_configured():
            # 配置缺失走 ValidationError，方便上层统一处理
            raise ValidationError(code="MISSING_API_KEY", message="ANTHROPIC_API_KEY not set")
        model_cfg = self._provider_cfg.models.get(req.model)
        if model_cfg is None:
            raise ValidationError(code="UNKNOWN_MODEL", message=f"Unknown model: {req.model}")
        payload = self._build_payload(req, model_cfg)
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                base = getattr(self._settings, "anthropic_base_url", None) or self._provider_cfg.base_url
                resp = client.post(
                    f"{base.rstrip('/')}/v1/messages",
                    json=payload,
                    headers={
                        "x-api-key": self._settings.anthropic_api_key,
                        "anthropic-version": getattr(self._settings, "anthropic_version", "2023-06-01"),
                        "content-type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        if resp.status_code in (401, 403):
            raise AuthenticationError(code="AUTH_ERROR", message=resp.text, http_status=resp.status_code)
        if resp.status_code in (429, 529):
            # 529 是 Anthropic 的 overloaded_error
            raise RateLimitError(code="RATE_LIMIT", message="Anthropic rate limit", http_status=resp.status_code)
        if resp.status_code >= 400:
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(code="BAD_RESPONSE", message=f"Malformed response body: {e}", http_status=502)
        return self._parse_response(data, req)

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> Dict[str, Any]:
        """将 ChatRequest 转成 Messages API 所需的请求 JSON。"""

        payload: Dict[str, Any] = {
            "model": model_cfg.provider_model,
            "max_tokens": req.max_tokens or model_cfg.max_tokens,
            "system": req.system,
            "messages": [{"role": m.role, "content": m.content} for m in req.messages],
            "temperature": req.temperature if req.temperature is not None else model_cfg.default_temperature,
        }
        return payload

    def _parse_response(self, data: Any, req: ChatRequest) -> ChatResult:
        """将原始响应 JSON 解析为统一的 ChatResult。"""

        if not isinstance(data, dict) or not isinstance(data.get("content"), list):
            raise ApiError(code="BAD_RESPONSE", message="Response has no content list", http_status=502)
        blocks = []
        for item in data["content"]:
            if not isinstance(item, dict):
                continue
            text = item.get("text")
            blocks.append(ContentBlock(type=str(item.get("type") or ""), text=text if isinstance(text, str) else None))
        usage_raw = data.get("usage") or {}
        usage = ChatUsage(
            input_tokens=usage_raw.get("input_tokens", 0),
            output_tokens=usage_raw.get("output_tokens", 0),
        )
        return ChatResult(
            provider=self.name,
            model=req.model,
            content=blocks,
            stop_reason=data.get("stop_reason"),
            usage=usage,
            raw=data,
        )
