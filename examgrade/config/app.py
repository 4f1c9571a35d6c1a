"""应用配置

启动时从环境变量构建一次，之后显式传给各组件。
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from examgrade.config.deployment_mode import DeploymentMode, detect_deployment_mode
from examgrade.config.llm import LLMConfig
from examgrade.utils.database import DatabaseConfig


def _env_truthy(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "y", "on")


@dataclass
class QueueConfig:
    """评估任务队列配置"""

    enabled: bool = True
    redis_url: Optional[str] = None
    max_workers: int = 4
    task_ttl: int = 3600

    @classmethod
    def from_env(cls) -> "QueueConfig":
        redis_url = os.getenv("REDIS_URL", "").strip() or None
        try:
            workers = int(os.getenv("EVALUATION_QUEUE_WORKERS", "4"))
        except ValueError:
            workers = 4
        return cls(
            enabled=_env_truthy("EVALUATION_QUEUE_ENABLED", default=True),
            redis_url=redis_url,
            max_workers=max(1, workers),
        )


@dataclass
class AppConfig:
    """应用整体配置"""

    llm: LLMConfig = field(default_factory=LLMConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)

    @property
    def deployment_mode(self) -> DeploymentMode:
        return detect_deployment_mode(self.database.database_url)

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            llm=LLMConfig.from_env(),
            database=DatabaseConfig.from_env(),
            queue=QueueConfig.from_env(),
        )
