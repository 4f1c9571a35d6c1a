"""LLM 配置模块

评分模型使用 OpenAI 兼容的 chat completions 接口，支持直连 OpenAI 或经由 OpenRouter。
缺少 API key 不是启动错误：评估流程会改用兜底结果。
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict


DEFAULT_GRADING_MODEL = "gpt-4o"
DEFAULT_TIMEOUT_SECONDS = 25.0


class LLMProvider(Enum):
    """LLM 服务提供商"""
    OPENAI = "openai"
    OPENROUTER = "openrouter"


_DEFAULT_BASE_URLS = {
    LLMProvider.OPENAI: "https://api.openai.com/v1",
    LLMProvider.OPENROUTER: "https://openrouter.ai/api/v1",
}


def _read_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _read_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass
class LLMConfig:
    """LLM 配置类"""

    provider: LLMProvider = LLMProvider.OPENAI
    api_key: str = ""
    base_url: str = _DEFAULT_BASE_URLS[LLMProvider.OPENAI]
    model: str = DEFAULT_GRADING_MODEL

    # 单次评分调用的硬超时（秒），提交流程可能同步等待
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    temperature: float = 0.3
    max_tokens: int = 1000

    # OpenRouter 额外 headers
    site_url: str = "https://examgrade.app"
    site_title: str = "examgrade answer evaluation"

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    @classmethod
    def from_env(cls) -> "LLMConfig":
        """从环境变量加载配置

        优先级：
        1. LLM_PROVIDER 显式指定
        2. 有 OPENAI_API_KEY 时直连 OpenAI
        3. 只有 OPENROUTER_API_KEY 时使用 OpenRouter
        """
        openai_key = os.getenv("OPENAI_API_KEY", "").strip()
        openrouter_key = os.getenv("OPENROUTER_API_KEY", "").strip()
        provider_str = os.getenv("LLM_PROVIDER", "").strip().lower()

        if provider_str == "openrouter":
            provider = LLMProvider.OPENROUTER
            api_key = openrouter_key or openai_key
        elif provider_str == "openai":
            provider = LLMProvider.OPENAI
            api_key = openai_key
        elif openai_key:
            provider = LLMProvider.OPENAI
            api_key = openai_key
        elif openrouter_key:
            provider = LLMProvider.OPENROUTER
            api_key = openrouter_key
        else:
            # 没有任何 key，保留默认 provider，评估时走兜底
            provider = LLMProvider.OPENAI
            api_key = ""

        return cls(
            provider=provider,
            api_key=api_key,
            base_url=os.getenv("LLM_BASE_URL", _DEFAULT_BASE_URLS[provider]).rstrip("/"),
            model=os.getenv("LLM_GRADING_MODEL", DEFAULT_GRADING_MODEL),
            timeout_seconds=max(1.0, _read_float("LLM_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)),
            temperature=_read_float("LLM_TEMPERATURE", 0.3),
            max_tokens=max(1, _read_int("LLM_MAX_TOKENS", 1000)),
            site_url=os.getenv("LLM_SITE_URL", "https://examgrade.app"),
            site_title=os.getenv("LLM_SITE_TITLE", "examgrade answer evaluation"),
        )

    def get_headers(self) -> Dict[str, str]:
        """获取 OpenRouter 需要的额外 headers"""
        if self.provider == LLMProvider.OPENROUTER:
            return {
                "HTTP-Referer": self.site_url,
                "X-Title": self.site_title,
            }
        return {}
