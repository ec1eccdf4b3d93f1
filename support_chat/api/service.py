"""对外服务组装模块。

根据配置构造存储、Provider、ReplyGenerator 与 SupportAgent。
所有依赖都在这里显式创建并向下传递，不保留模块级单例。
"""

from typing import Optional

from support_chat.agents.reply_generator import ReplyGenerator
from support_chat.agents.support_agent import SupportAgent
from support_chat.config.settings import settings
from support_chat.domain.conversation import MessageStore
from support_chat.infrastructure.logging.logger import logger
from support_chat.infrastructure.storage.memory_store import InMemoryMessageStore
from support_chat.infrastructure.storage.sql_store import SqlMessageStore
from support_chat.providers import create_provider
from support_chat.providers.base import ProviderClient


def build_store(cfg=settings) -> MessageStore:
    """按 storage_backend 创建消息存储。"""
    if cfg.storage_backend == "memory":
        return InMemoryMessageStore()
    return SqlMessageStore(database_url=cfg.database_url)


def build_agent(
    cfg=settings,
    store: Optional[MessageStore] = None,
    provider: Optional[ProviderClient] = None,
) -> SupportAgent:
    """构造 SupportAgent；store / provider 可由调用方注入（测试用假实现）。"""
    store = store if store is not None else build_store(cfg)
    provider = provider if provider is not None else create_provider(cfg=cfg)
    if not provider.is_configured():
        logger.warning(
            "Provider credential missing, replies will use the placeholder text",
            extra={"extra": {"provider": provider.name}},
        )
    return SupportAgent(store=store, generator=ReplyGenerator(provider, cfg), cfg=cfg)
