"""评估上下文组装"""

import logging

from examgrade.models import EvaluationContext
from examgrade.repositories import AnswerRepository
from examgrade.utils.error_handling import AnswerNotFoundError


logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "General"
DEFAULT_BOARD = "AQA"
DEFAULT_QUALIFICATION = "GCSE"


class ContextAssembler:
    """读取答案并拼装评分上下文，只读"""

    def __init__(self, repository: AnswerRepository):
        self.repository = repository

    async def assemble(self, answer_id: str) -> EvaluationContext:
        row = await self.repository.fetch_with_context(answer_id)
        if row is None:
            raise AnswerNotFoundError(answer_id)
        if not row.chain_complete:
            # 题目/考试/课程 任一缺失都视为找不到，不重试
            raise AnswerNotFoundError(answer_id, "question, exam or course link is broken")

        context = EvaluationContext(
            answer_id=row.answer_id,
            student_name=row.student_name,
            subject=row.subject_name or DEFAULT_SUBJECT,
            board=row.board_name or DEFAULT_BOARD,
            qualification=row.qualification_name or DEFAULT_QUALIFICATION,
            question_text=row.question_text,
            question_image_url=row.question_image_url or None,
            answer_image_url=row.image_answer_url or None,
            answer_text=row.text_answer or "",
            max_marks=row.max_marks,
        )
        logger.debug(
            "[Evaluation] context ready answer=%s subject=%s max_marks=%s images=%s",
            answer_id,
            context.subject,
            context.max_marks,
            context.has_images,
        )
        return context
