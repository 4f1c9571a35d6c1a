"""评估相关数据模型"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import EvaluationErrorKind, FallbackReason, QualitativeLabel


class EvaluationResult(BaseModel):
    """单个答案的评估结果（持久化到 student_answers.evaluated_result）"""

    model_config = ConfigDict(
        protected_namespaces=(),
        json_schema_extra={
            "example": {
                "score": 4,
                "model_answer": "Photosynthesis uses light energy to convert carbon dioxide and water into glucose and oxygen.",
                "positive_feedback": "Correctly identifies glucose as a product.",
                "constructive_feedback": "Mention light energy, chlorophyll and oxygen as a by-product.",
                "qualitative_label": "PartiallyCorrect",
                "fallback_reason": None,
            }
        }
    )

    score: int = Field(..., ge=0, description="得分")
    model_answer: str = Field(..., description="参考答案")
    positive_feedback: str = Field(..., description="答对的部分")
    constructive_feedback: str = Field(..., description="改进建议")
    qualitative_label: QualitativeLabel = Field(..., description="定性评价")
    fallback_reason: Optional[FallbackReason] = Field(
        None, description="兜底结果来源，模型正常评估时为空"
    )

    @property
    def is_fallback(self) -> bool:
        return self.fallback_reason is not None

    def is_within(self, max_marks: int) -> bool:
        """分数是否落在 [0, max_marks]"""
        return 0 <= self.score <= max_marks


class EvaluationContext(BaseModel):
    """发送给评分模型的上下文"""

    answer_id: str
    student_name: str = ""
    subject: str
    board: str
    qualification: str
    question_text: str
    question_image_url: Optional[str] = None
    answer_image_url: Optional[str] = None
    answer_text: str = ""
    max_marks: int = Field(..., ge=1)

    @property
    def has_images(self) -> bool:
        return bool(self.question_image_url or self.answer_image_url)


class EvaluationOutcome(BaseModel):
    """编排器返回值：成功带结果，失败带错误类型"""

    answer_id: str
    success: bool
    result: Optional[EvaluationResult] = None
    error_kind: Optional[EvaluationErrorKind] = None
    detail: str = ""

    @classmethod
    def succeeded(cls, answer_id: str, result: EvaluationResult) -> "EvaluationOutcome":
        return cls(answer_id=answer_id, success=True, result=result)

    @classmethod
    def failed(
        cls, answer_id: str, error_kind: EvaluationErrorKind, detail: str
    ) -> "EvaluationOutcome":
        return cls(answer_id=answer_id, success=False, error_kind=error_kind, detail=detail)


class EvaluateAnswerRequest(BaseModel):
    """评估接口请求"""

    model_config = ConfigDict(populate_by_name=True)

    answer_id: str = Field(..., alias="answerId", min_length=1, description="答案 ID")


class EvaluateAnswerResponse(BaseModel):
    """评估接口成功响应"""

    success: bool = True
    evaluation: EvaluationResult
    message: str = "Answer evaluated successfully"


class ErrorResponse(BaseModel):
    """错误响应"""

    error: str
    details: str = ""
