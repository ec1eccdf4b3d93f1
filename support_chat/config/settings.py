"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("SUPPORT_CHAT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except Exception as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class AppSettings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Provider 相关配置 ----
    default_provider: str = Field(default="anthropic", description="默认使用的 Provider 名称")
    default_model: str = Field(
        default="support-chat",
        description="逻辑模型名，由 registry 映射为具体厂商模型",
    )
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API 密钥")
    anthropic_base_url: str = Field(
        default="https://api.anthropic.com",
        description="Anthropic API 基础URL",
    )
    anthropic_version: str = Field(default="2023-06-01", description="anthropic-version 请求头")
    http_timeout: float = Field(default=60.0, ge=1.0, description="HTTP 超时时间（秒）")

    # ---- 存储 ----
    storage_backend: Literal["sql", "memory"] = Field(default="sql", description="消息存储后端")
    database_url: str = Field(
        default="sqlite:///.storage/support_chat.db",
        description="SQLAlchemy 数据库 URL",
    )

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    # ---- 对话 ----
    max_context_messages: int = Field(default=10, ge=1, le=100, description="历史窗口的最大消息数")
    max_message_length: int = Field(default=500, ge=1, description="用户单条消息最大长度")

    # ---- HTTP 服务 ----
    chat_rate_limit: str = Field(default="20/minute", description="/chat 接口的限流规则（slowapi 语法）")
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:5173"],
        description="允许跨域的前端地址",
    )
    host: str = Field(default="0.0.0.0", description="监听地址")
    port: int = Field(default=3000, ge=1, le=65535, description="监听端口")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("anthropic_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v == "dummy-key":
            # 占位值等同于未配置
            return None
        if v and len(v) < 10:
            # 不阻止启动：无效密钥由 provider 的 401 降级为固定回复
            warnings.warn("ANTHROPIC_API_KEY seems too short")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = AppSettings()
