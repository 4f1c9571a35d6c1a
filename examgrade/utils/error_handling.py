"""错误处理工具模块

评估流水线的异常类型，以及用于结构化记录失败的 ErrorLog。
模型侧的异常在编排器内被吸收为兜底结果，只有持久化失败会返回给调用方。
"""

import logging
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from examgrade.models.enums import TransportErrorKind


logger = logging.getLogger(__name__)


class EvaluationPipelineError(Exception):
    """评估流水线异常基类"""


class AnswerNotFoundError(EvaluationPipelineError):
    """答案不存在，或 题目/考试/课程 链路断开"""

    def __init__(self, answer_id: str, reason: str = "answer does not exist"):
        self.answer_id = answer_id
        self.reason = reason
        super().__init__(f"Answer {answer_id} not found: {reason}")


class MissingCredentialsError(EvaluationPipelineError):
    """未配置评分模型的 API key"""

    def __init__(self, message: str = "No grading model credential configured"):
        super().__init__(message)


class TransportError(EvaluationPipelineError):
    """评分模型调用失败（超时、非 2xx、响应结构异常、网络错误）"""

    def __init__(
        self,
        kind: TransportErrorKind,
        message: str,
        status_code: Optional[int] = None,
    ):
        self.kind = kind
        self.status_code = status_code
        super().__init__(message)

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"[{self.kind.value}] HTTP {self.status_code}: {base}"
        return f"[{self.kind.value}] {base}"


class PersistenceError(EvaluationPipelineError):
    """评估结果写回失败"""


@dataclass
class ErrorLog:
    """
    详细错误日志

    记录错误类型、上下文、堆栈信息。
    """

    timestamp: str
    error_type: str
    error_message: str
    context: Dict[str, Any] = field(default_factory=dict)
    stack_trace: str = ""
    answer_id: Optional[str] = None
    stage: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """序列化为字典"""
        return {
            "timestamp": self.timestamp,
            "error_type": self.error_type,
            "error_message": self.error_message,
            "context": self.context,
            "stack_trace": self.stack_trace,
            "answer_id": self.answer_id,
            "stage": self.stage,
        }

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        context: Optional[Dict[str, Any]] = None,
        answer_id: Optional[str] = None,
        stage: Optional[str] = None,
    ) -> "ErrorLog":
        """从异常创建错误日志"""
        return cls(
            timestamp=datetime.now(timezone.utc).isoformat(),
            error_type=type(exc).__name__,
            error_message=str(exc),
            context=context or {},
            stack_trace="".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            ),
            answer_id=answer_id,
            stage=stage,
        )

    def log(self, level: int = logging.ERROR) -> None:
        logger.log(
            level,
            "[%s] %s during %s for answer %s: %s",
            self.error_type,
            self.timestamp,
            self.stage or "unknown stage",
            self.answer_id or "-",
            self.error_message,
        )
        if self.stack_trace:
            logger.debug(self.stack_trace)
