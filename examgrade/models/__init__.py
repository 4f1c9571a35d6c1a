"""数据模型"""

from .enums import (
    EvaluationErrorKind,
    FallbackReason,
    QualitativeLabel,
    TransportErrorKind,
)
from .taxonomy import (
    Board,
    Course,
    Exam,
    Qualification,
    Question,
    Subject,
    YearGroup,
)
from .evaluation import (
    ErrorResponse,
    EvaluateAnswerRequest,
    EvaluateAnswerResponse,
    EvaluationContext,
    EvaluationOutcome,
    EvaluationResult,
)
from .answer import (
    AnswerContextRow,
    AnswerSubmissionItem,
    ExamSubmissionRequest,
    ExamSubmissionResponse,
    SubmittedAnswer,
    SubmittedAnswerRef,
)

__all__ = [
    "EvaluationErrorKind",
    "FallbackReason",
    "QualitativeLabel",
    "TransportErrorKind",
    "Board",
    "Course",
    "Exam",
    "Qualification",
    "Question",
    "Subject",
    "YearGroup",
    "ErrorResponse",
    "EvaluateAnswerRequest",
    "EvaluateAnswerResponse",
    "EvaluationContext",
    "EvaluationOutcome",
    "EvaluationResult",
    "AnswerContextRow",
    "AnswerSubmissionItem",
    "ExamSubmissionRequest",
    "ExamSubmissionResponse",
    "SubmittedAnswer",
    "SubmittedAnswerRef",
]
