"""回复生成器。

把历史窗口 + 当前用户消息交给 Provider，得到助手回复文本。
Provider 的任何失败都不会抛出本模块，而是转换为固定的兜底文案，
保证会话中始终能落一条 AI 消息。
"""

from typing import List, Optional

from support_chat.config.settings import settings
from support_chat.domain.exceptions import AuthenticationError, BusinessError, RateLimitError
from support_chat.domain.models import ChatMessage, ChatRequest
from support_chat.infrastructure.logging.logger import logger
from support_chat.prompts import load_system_prompt
from support_chat.providers.base import ProviderClient

NOT_CONFIGURED_REPLY = "I'm a dummy AI. Please configure ANTHROPIC_API_KEY in your environment."
NO_TEXT_REPLY = "I couldn't generate a text response."
AUTH_ERROR_REPLY = "Configuration Error: Invalid API Key."
OVERLOADED_REPLY = "I'm currently overloaded. Please try again in a moment."
CONNECTION_ERROR_REPLY = "I'm having trouble connecting right now. Please try again."


class ReplyGenerator:
    def __init__(
        self,
        provider: ProviderClient,
        cfg=settings,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
    ):
        self._provider = provider
        self._settings = cfg
        self._system_prompt = system_prompt or load_system_prompt("support-agent")
        self._model = model or getattr(cfg, "default_model", "support-chat")

    def generate_reply(self, context: List[ChatMessage], user_message: str) -> str:
        if not self._provider.is_configured():
            logger.info("Provider not configured, returning placeholder reply")
            return NOT_CONFIGURED_REPLY

        req = ChatRequest(
            provider=self._provider.name,
            model=self._model,
            system=self._system_prompt,
            messages=[*context, ChatMessage(role="user", content=user_message)],
        )
        log_ctx = {"provider": self._provider.name, "model": self._model, "context_size": len(context)}
        try:
            result = self._provider.chat(req)
        except AuthenticationError as e:
            self._log_failure(e, log_ctx)
            return AUTH_ERROR_REPLY
        except RateLimitError as e:
            self._log_failure(e, log_ctx)
            return OVERLOADED_REPLY
        except BusinessError as e:
            self._log_failure(e, log_ctx)
            return CONNECTION_ERROR_REPLY
        except Exception as e:
            # 解析异常等非预期错误同样只降级为兜底文案
            logger.exception(f"Unexpected provider failure: {e}", extra={"extra": log_ctx})
            return CONNECTION_ERROR_REPLY

        text = result.first_text()
        if text is None:
            logger.warning("Provider returned no text block", extra={"extra": {**log_ctx, "stop_reason": result.stop_reason}})
            return NO_TEXT_REPLY
        return text

    @staticmethod
    def _log_failure(error: BusinessError, log_ctx: dict) -> None:
        logger.error(
            f"Provider call failed: {error.message}",
            extra={"extra": {**log_ctx, "code": error.code, "http_status": error.http_status}},
        )
