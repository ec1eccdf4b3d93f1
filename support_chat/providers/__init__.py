"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供各厂商的具体实现 (如 anthropic_client)。
"""

from typing import Callable, Dict, Optional

from support_chat.config.settings import settings
from support_chat.providers.anthropic_client import AnthropicClient
from support_chat.providers.base import ProviderClient
from support_chat.providers.registry import ProviderConfig, get_provider_config

_CLIENT_FACTORIES: Dict[str, Callable[..., ProviderClient]] = {
    "anthropic": AnthropicClient,
}


def create_provider(name: Optional[str] = None, cfg=None) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。

    Raises:
        KeyError: registry 中没有该 provider。
    """

    cfg = cfg if cfg is not None else settings
    provider_cfg: ProviderConfig = get_provider_config(name or getattr(cfg, "default_provider", "anthropic"))
    return _CLIENT_FACTORIES[provider_cfg.name](cfg, provider_cfg)
