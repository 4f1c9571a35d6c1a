"""Shared fixtures: a seeded in-memory answer store and a fake grading model."""

from datetime import datetime, timezone
from typing import Any, Callable, Optional

import pytest

from examgrade.config.app import AppConfig
from examgrade.config.llm import LLMConfig
from examgrade.models import (
    Board,
    Course,
    Exam,
    Qualification,
    Question,
    Subject,
    SubmittedAnswer,
    YearGroup,
)
from examgrade.repositories import InMemoryAnswerRepository
from examgrade.services.evaluation_orchestrator import create_orchestrator
from examgrade.services.llm_client import GradingModelClient
from tests.fakes import PHOTOSYNTHESIS_ANSWER, FakeGradingModel


@pytest.fixture
def repository() -> InMemoryAnswerRepository:
    repo = InMemoryAnswerRepository()
    repo.add_qualification(Qualification(id="qual-gcse", name="GCSE"))
    repo.add_board(Board(id="board-ocr", name="OCR"))
    repo.add_subject(Subject(id="subj-bio", name="Biology"))
    repo.add_year_group(YearGroup(id="yg-10", name="Year 10"))
    repo.add_course(
        Course(
            id="course-bio",
            name="GCSE Biology",
            qualification_id="qual-gcse",
            board_id="board-ocr",
            subject_id="subj-bio",
            year_group_id="yg-10",
        )
    )
    # 课程没有分类信息，用于测试默认名称
    repo.add_course(Course(id="course-bare", name="Open course"))
    repo.add_exam(Exam(id="exam-bio", name="Plant biology", course_id="course-bio"))
    repo.add_exam(Exam(id="exam-bare", name="Mixed quiz", course_id="course-bare"))
    repo.add_exam(Exam(id="exam-orphan", name="Orphan", course_id="course-deleted"))
    repo.add_question(
        Question(
            id="q-photo",
            exam_id="exam-bio",
            text="Describe what happens during photosynthesis.",
            max_marks=6,
            question_order=1,
        )
    )
    repo.add_question(
        Question(
            id="q-leaf",
            exam_id="exam-bio",
            text="Label the diagram of the leaf.",
            image_url="https://storage.example.com/questions/leaf.png",
            max_marks=10,
            question_order=2,
        )
    )
    repo.add_question(
        Question(id="q-bare", exam_id="exam-bare", text="What is 2 + 2?", max_marks=1)
    )
    repo.add_question(
        Question(id="q-orphan", exam_id="exam-orphan", text="Orphaned question", max_marks=3)
    )

    submitted_at = datetime(2026, 10, 1, 9, 30, tzinfo=timezone.utc)
    for answer in (
        SubmittedAnswer(
            id="ans-photo",
            question_id="q-photo",
            student_name="Sam Patel",
            text_answer=PHOTOSYNTHESIS_ANSWER,
            submitted_at=submitted_at,
        ),
        SubmittedAnswer(
            id="ans-leaf",
            question_id="q-leaf",
            student_name="Sam Patel",
            image_answer_url="https://storage.example.com/answers/leaf-sam.jpg",
            submitted_at=submitted_at,
        ),
        SubmittedAnswer(
            id="ans-bare",
            question_id="q-bare",
            student_name="Alex Kim",
            text_answer="4",
            submitted_at=submitted_at,
        ),
        SubmittedAnswer(
            id="ans-dangling",
            question_id="q-deleted",
            student_name="Alex Kim",
            text_answer="Something",
            submitted_at=submitted_at,
        ),
        SubmittedAnswer(
            id="ans-orphan",
            question_id="q-orphan",
            student_name="Alex Kim",
            text_answer="Something else",
            submitted_at=submitted_at,
        ),
    ):
        repo.add_answer(answer)
    return repo


@pytest.fixture
def llm_config() -> LLMConfig:
    return LLMConfig(api_key="sk-test", timeout_seconds=0.5)


@pytest.fixture
def build_orchestrator(repository, llm_config) -> Callable[..., Any]:
    def _build(model: Optional[FakeGradingModel] = None, config: Optional[LLMConfig] = None, repo=None):
        llm = config or llm_config
        app_config = AppConfig(llm=llm)
        client = GradingModelClient(llm, transport=(model or FakeGradingModel()).transport)
        return create_orchestrator(app_config, repo or repository, client=client)

    return _build
