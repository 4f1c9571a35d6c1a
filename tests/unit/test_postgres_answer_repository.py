"""PostgreSQL 答案仓储测试（使用模拟游标，不连接数据库）"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

import pytest
from psycopg.types.json import Jsonb

from examgrade.models import FallbackReason
from examgrade.repositories import PostgresAnswerRepository
from examgrade.services.result_normalizer import fallback_result


ANSWER_ID = "3f2a9c1d-7b44-4c1e-9a7e-2f9d1c2b3a4d"
QUESTION_ID = "9b1c2d3e-4f50-4a6b-8c7d-1e2f3a4b5c6d"
EXAM_ID = "1a2b3c4d-5e6f-4a7b-8c9d-0e1f2a3b4c5d"
COURSE_ID = "7e8f9a0b-1c2d-4e3f-9a5b-6c7d8e9f0a1b"


class _FakeCursor:
    def __init__(self, rows: List[Optional[Dict[str, Any]]], rowcount: int):
        self.rows = list(rows)
        self.rowcount = rowcount
        self.executed: List[tuple] = []

    async def __aenter__(self) -> "_FakeCursor":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def execute(self, query: str, params: Dict[str, Any]) -> None:
        self.executed.append((query, params))

    async def fetchone(self) -> Optional[Dict[str, Any]]:
        return self.rows.pop(0) if self.rows else None

    async def fetchall(self) -> List[Dict[str, Any]]:
        rows, self.rows = self.rows, []
        return rows


class _FakeDatabase:
    def __init__(self, rows=(), rowcount: int = 0):
        self.cursor = _FakeCursor(list(rows), rowcount)

    @asynccontextmanager
    async def connection(self):
        db = self

        class _Connection:
            def cursor(self):
                return db.cursor

        yield _Connection()


def _context_row(**overrides) -> Dict[str, Any]:
    row = {
        "answer_id": UUID(ANSWER_ID),
        "student_name": "Sam Patel",
        "text_answer": "Photosynthesis converts CO2 into glucose",
        "image_answer_url": None,
        "question_id": UUID(QUESTION_ID),
        "question_text": "Describe what happens during photosynthesis.",
        "question_image_url": None,
        "max_marks": 6,
        "exam_id": UUID(EXAM_ID),
        "course_id": UUID(COURSE_ID),
        "qualification_name": "GCSE",
        "board_name": None,
        "subject_name": "Biology",
    }
    row.update(overrides)
    return row


@pytest.mark.asyncio
async def test_fetch_with_context_maps_join_row():
    db = _FakeDatabase(rows=[_context_row()])
    repo = PostgresAnswerRepository(db)

    row = await repo.fetch_with_context(ANSWER_ID)

    query, params = db.cursor.executed[0]
    assert params == {"answer_id": UUID(ANSWER_ID)}
    assert "LEFT JOIN questions q ON q.id = sa.question_id" in query
    assert "LEFT JOIN courses c ON c.id = e.course_id" in query
    assert row.answer_id == ANSWER_ID
    assert row.question_id == QUESTION_ID and row.course_id == COURSE_ID
    assert row.chain_complete
    assert row.board_name is None


@pytest.mark.asyncio
async def test_fetch_with_context_broken_chain():
    db = _FakeDatabase(rows=[_context_row(exam_id=None, course_id=None, subject_name=None)])

    row = await PostgresAnswerRepository(db).fetch_with_context(ANSWER_ID)

    assert row.exam_id is None
    assert not row.chain_complete


@pytest.mark.asyncio
async def test_fetch_with_context_missing_and_malformed_id():
    db = _FakeDatabase(rows=[None])
    repo = PostgresAnswerRepository(db)

    assert await repo.fetch_with_context(ANSWER_ID) is None
    assert await repo.fetch_with_context("not-a-uuid") is None
    assert len(db.cursor.executed) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("rowcount, expected", [(1, True), (0, False)])
async def test_save_evaluation_rowcount(rowcount, expected):
    db = _FakeDatabase(rowcount=rowcount)
    result = fallback_result(6, FallbackReason.UPSTREAM_FAILURE)

    saved = await PostgresAnswerRepository(db).save_evaluation(ANSWER_ID, result)

    assert saved is expected
    query, params = db.cursor.executed[0]
    assert "SET evaluated_result = %(evaluated_result)s" in query
    assert params["answer_id"] == UUID(ANSWER_ID)
    assert isinstance(params["evaluated_result"], Jsonb)
    assert params["evaluated_result"].obj == result.model_dump(mode="json")


@pytest.mark.asyncio
async def test_save_evaluation_malformed_id_skips_query():
    db = _FakeDatabase(rowcount=1)
    result = fallback_result(6, FallbackReason.UPSTREAM_FAILURE)

    assert await PostgresAnswerRepository(db).save_evaluation("ans-photo", result) is False
    assert db.cursor.executed == []


@pytest.mark.asyncio
async def test_get_answer_loads_stored_result():
    stored = fallback_result(6, FallbackReason.MISSING_CREDENTIALS).model_dump(mode="json")
    db = _FakeDatabase(
        rows=[
            {
                "id": UUID(ANSWER_ID),
                "question_id": UUID(QUESTION_ID),
                "student_name": "Sam Patel",
                "text_answer": None,
                "image_answer_url": "https://storage.example.com/answers/leaf-sam.jpg",
                "submitted_at": datetime(2026, 10, 1, 9, 30, tzinfo=timezone.utc),
                "evaluated_result": stored,
            }
        ]
    )

    answer = await PostgresAnswerRepository(db).get_answer(ANSWER_ID)

    assert answer.id == ANSWER_ID and answer.question_id == QUESTION_ID
    assert answer.evaluated_result.score == 3
    assert answer.evaluated_result.fallback_reason == FallbackReason.MISSING_CREDENTIALS


@pytest.mark.asyncio
async def test_question_ids_for_unknown_exam():
    db = _FakeDatabase(rows=[None])

    assert await PostgresAnswerRepository(db).get_question_ids_for_exam(EXAM_ID) is None
    assert len(db.cursor.executed) == 1
