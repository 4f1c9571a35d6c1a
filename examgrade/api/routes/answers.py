"""Answer submission and result browsing routes."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from examgrade.api.dependencies import get_queue, get_repository
from examgrade.models import (
    ExamSubmissionRequest,
    ExamSubmissionResponse,
    SubmittedAnswer,
    SubmittedAnswerRef,
)
from examgrade.repositories import AnswerRepository
from examgrade.services.evaluation_queue import EvaluationQueue
from examgrade.utils.error_handling import ErrorLog


logger = logging.getLogger(__name__)

router = APIRouter(tags=["answers"])


@router.post(
    "/exams/{exam_id}/submissions",
    response_model=ExamSubmissionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_exam(
    exam_id: str,
    request: ExamSubmissionRequest,
    repository: AnswerRepository = Depends(get_repository),
    queue: Optional[EvaluationQueue] = Depends(get_queue),
) -> ExamSubmissionResponse:
    """保存学生整卷作答，并为每道题提交评估任务（不等待评估完成）"""
    question_ids = await repository.get_question_ids_for_exam(exam_id)
    if question_ids is None:
        raise HTTPException(status_code=404, detail="Exam not found")

    unknown = [item.question_id for item in request.answers if item.question_id not in question_ids]
    if unknown:
        raise HTTPException(
            status_code=400,
            detail=f"Questions not in exam {exam_id}: {', '.join(unknown)}",
        )

    refs: List[SubmittedAnswerRef] = []
    for item in request.answers:
        answer = await repository.create_answer(
            question_id=item.question_id,
            student_name=request.student_name,
            text_answer=item.text_answer,
            image_answer_url=item.image_answer_url,
        )
        refs.append(SubmittedAnswerRef(answer_id=answer.id, question_id=answer.question_id))

    # 全部保存后再提交评估，入队失败不影响提交结果，task_id 留空
    if queue is not None:
        for ref in refs:
            try:
                ref.task_id = await queue.submit(ref.answer_id)
            except Exception as e:
                ErrorLog.from_exception(
                    e, context={"exam_id": exam_id}, answer_id=ref.answer_id, stage="enqueueing"
                ).log(logging.WARNING)

    logger.info(f"考试 {exam_id} 收到 {request.student_name} 的 {len(refs)} 个答案")
    return ExamSubmissionResponse(exam_id=exam_id, student_name=request.student_name, answers=refs)


@router.get("/exams/{exam_id}/answers", response_model=List[SubmittedAnswer])
async def list_exam_answers(
    exam_id: str,
    repository: AnswerRepository = Depends(get_repository),
) -> List[SubmittedAnswer]:
    return await repository.list_answers_for_exam(exam_id)


@router.get("/answers/{answer_id}", response_model=SubmittedAnswer)
async def get_answer(
    answer_id: str,
    repository: AnswerRepository = Depends(get_repository),
) -> SubmittedAnswer:
    answer = await repository.get_answer(answer_id)
    if answer is None:
        raise HTTPException(status_code=404, detail="Answer not found")
    return answer


@router.post("/answers/{answer_id}/re-evaluate", status_code=status.HTTP_202_ACCEPTED)
async def reevaluate_answer(
    answer_id: str,
    repository: AnswerRepository = Depends(get_repository),
    queue: Optional[EvaluationQueue] = Depends(get_queue),
) -> Dict[str, Any]:
    """手动重新评估：覆盖之前的结果"""
    if queue is None:
        raise HTTPException(status_code=503, detail="Evaluation queue is disabled")
    if await repository.get_answer(answer_id) is None:
        raise HTTPException(status_code=404, detail="Answer not found")
    task_id = await queue.submit(answer_id)
    return {"answer_id": answer_id, "task_id": task_id}


@router.get("/evaluation-tasks/{task_id}")
async def get_evaluation_task(
    task_id: str,
    queue: Optional[EvaluationQueue] = Depends(get_queue),
) -> Dict[str, Any]:
    if queue is None:
        raise HTTPException(status_code=503, detail="Evaluation queue is disabled")
    task = await queue.get_task(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task.to_dict()
