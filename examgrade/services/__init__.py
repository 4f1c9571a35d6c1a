from .context_assembler import ContextAssembler
from .llm_client import GradingModelClient
from .result_normalizer import fallback_result, normalize
from .evaluation_orchestrator import EvaluationOrchestrator, create_orchestrator
from .evaluation_queue import EvaluationQueue, TaskInfo, TaskStatus

__all__ = [
    "ContextAssembler",
    "GradingModelClient",
    "fallback_result",
    "normalize",
    "EvaluationOrchestrator",
    "create_orchestrator",
    "EvaluationQueue",
    "TaskInfo",
    "TaskStatus",
]
