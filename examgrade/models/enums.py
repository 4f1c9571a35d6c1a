"""枚举类型定义"""

from enum import Enum


class QualitativeLabel(str, Enum):
    """答案定性评价"""

    CORRECT = "Correct"
    INCORRECT = "Incorrect"
    PARTIALLY_CORRECT = "PartiallyCorrect"
    PENDING = "Pending"


class FallbackReason(str, Enum):
    """兜底结果的来源

    模型给出的正常结果不带此字段（None）。
    """

    MISSING_CREDENTIALS = "missing_credentials"
    UPSTREAM_FAILURE = "upstream_failure"
    PARSE_FAILURE = "parse_failure"


class TransportErrorKind(str, Enum):
    """模型调用传输错误类型"""

    TIMEOUT = "timeout"
    UPSTREAM = "upstream"
    NETWORK = "network"


class EvaluationErrorKind(str, Enum):
    """评估流水线对调用方暴露的失败类型"""

    NOT_FOUND = "not_found"
    PERSISTENCE = "persistence"
    INTERNAL = "internal"
