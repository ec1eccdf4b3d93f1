"""系统提示词加载工具。

按 Agent 类型与语言(locale) 从 prompts/<locale> 目录读取对应的
system prompt 文本，作为 ChatRequest.system 发给 Provider。
"""

from functools import lru_cache
from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent


@lru_cache(maxsize=8)
def load_system_prompt(agent_type: str = "support-agent", locale: str = "en") -> str:
    """根据 Agent 类型和语言加载系统提示词文本。

    文件名由 agent_type 推导：support-agent -> support_agent_system.md。
    """

    fname = PROMPTS_DIR / locale / f"{agent_type.replace('-', '_')}_system.md"
    return fname.read_text(encoding="utf-8").strip()
