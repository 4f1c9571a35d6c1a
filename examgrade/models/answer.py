"""学生答案相关数据模型"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .evaluation import EvaluationResult


class SubmittedAnswer(BaseModel):
    """学生提交的答案

    提交后只会写入 evaluated_result，其余字段不变。
    """

    id: str = Field(..., description="答案 ID")
    question_id: str = Field(..., description="题目 ID")
    student_name: str = Field(..., description="学生姓名（自由文本）")
    text_answer: Optional[str] = Field(None, description="文字答案")
    image_answer_url: Optional[str] = Field(None, description="图片答案 URL")
    submitted_at: datetime = Field(..., description="提交时间")
    evaluated_result: Optional[EvaluationResult] = Field(None, description="评估结果")


class AnswerContextRow(BaseModel):
    """answer -> question -> exam -> course -> taxonomy 的联表结果

    使用 LEFT JOIN，链路断开时对应列为 None。
    """

    answer_id: str
    student_name: str
    text_answer: Optional[str] = None
    image_answer_url: Optional[str] = None
    question_id: Optional[str] = None
    question_text: Optional[str] = None
    question_image_url: Optional[str] = None
    max_marks: Optional[int] = None
    exam_id: Optional[str] = None
    course_id: Optional[str] = None
    qualification_name: Optional[str] = None
    board_name: Optional[str] = None
    subject_name: Optional[str] = None

    @property
    def chain_complete(self) -> bool:
        return (
            self.question_id is not None
            and self.question_text is not None
            and self.max_marks is not None
            and self.exam_id is not None
            and self.course_id is not None
        )


class AnswerSubmissionItem(BaseModel):
    """单题作答"""

    question_id: str = Field(..., description="题目 ID")
    text_answer: Optional[str] = Field(None, description="文字答案")
    image_answer_url: Optional[str] = Field(None, description="已上传图片的公开 URL")


class ExamSubmissionRequest(BaseModel):
    """整卷提交请求"""

    student_name: str = Field(..., min_length=1, description="学生姓名")
    answers: List[AnswerSubmissionItem] = Field(..., min_length=1, description="各题作答")


class SubmittedAnswerRef(BaseModel):
    answer_id: str
    question_id: str
    task_id: Optional[str] = None


class ExamSubmissionResponse(BaseModel):
    """整卷提交响应，评估在后台进行"""

    exam_id: str
    student_name: str
    answers: List[SubmittedAnswerRef]
    message: str = "Answers submitted, evaluation is starting"
