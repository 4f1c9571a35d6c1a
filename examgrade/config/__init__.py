from .llm import LLMConfig, LLMProvider
from .deployment_mode import DeploymentMode, detect_deployment_mode
from .app import AppConfig, QueueConfig

__all__ = [
    "LLMConfig",
    "LLMProvider",
    "DeploymentMode",
    "detect_deployment_mode",
    "AppConfig",
    "QueueConfig",
]
