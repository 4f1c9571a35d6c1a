"""学生答案仓储

AnswerRepository 定义评估流水线需要的读写操作：
- fetch_with_context: 答案 -> 题目 -> 考试 -> 课程 -> 分类名称 联表读取
- save_evaluation: 只写 evaluated_result 一个字段

PostgresAnswerRepository 用于数据库模式，InMemoryAnswerRepository 用于无数据库模式。
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from psycopg.types.json import Jsonb

from examgrade.models import (
    AnswerContextRow,
    Board,
    Course,
    EvaluationResult,
    Exam,
    Qualification,
    Question,
    Subject,
    SubmittedAnswer,
    YearGroup,
)
from examgrade.utils.database import Database


class AnswerRepository(ABC):
    """答案仓储接口"""

    @abstractmethod
    async def fetch_with_context(self, answer_id: str) -> Optional[AnswerContextRow]:
        """联表读取答案及其题目、课程信息，答案不存在时返回 None"""

    @abstractmethod
    async def save_evaluation(self, answer_id: str, result: EvaluationResult) -> bool:
        """写入评估结果，没有匹配的行时返回 False"""

    @abstractmethod
    async def create_answer(
        self,
        question_id: str,
        student_name: str,
        text_answer: Optional[str] = None,
        image_answer_url: Optional[str] = None,
    ) -> SubmittedAnswer:
        """创建答案记录"""

    @abstractmethod
    async def get_answer(self, answer_id: str) -> Optional[SubmittedAnswer]:
        """根据 ID 获取答案"""

    @abstractmethod
    async def list_answers_for_exam(self, exam_id: str) -> List[SubmittedAnswer]:
        """获取某场考试的全部答案，按提交时间倒序"""

    @abstractmethod
    async def get_question_ids_for_exam(self, exam_id: str) -> Optional[List[str]]:
        """获取考试下的题目 ID，考试不存在时返回 None"""


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except (ValueError, TypeError):
        return None


def _format_answer(row: Dict[str, Any]) -> SubmittedAnswer:
    return SubmittedAnswer(
        id=str(row["id"]),
        question_id=str(row["question_id"]),
        student_name=row["student_name"],
        text_answer=row.get("text_answer"),
        image_answer_url=row.get("image_answer_url"),
        submitted_at=row["submitted_at"],
        evaluated_result=_load_result(row.get("evaluated_result")),
    )


def _load_result(document: Any) -> Optional[EvaluationResult]:
    # 旧版本写入的结构不符合当前 schema 时按未评估处理
    if not isinstance(document, dict):
        return None
    try:
        return EvaluationResult.model_validate(document)
    except ValueError:
        return None


class PostgresAnswerRepository(AnswerRepository):
    """PostgreSQL 答案仓储"""

    _ANSWER_COLUMNS = """
        sa.id, sa.question_id, sa.student_name, sa.text_answer,
        sa.image_answer_url, sa.submitted_at, sa.evaluated_result
    """

    def __init__(self, db: Database):
        self.db = db

    async def fetch_with_context(self, answer_id: str) -> Optional[AnswerContextRow]:
        answer_uuid = _parse_uuid(answer_id)
        if answer_uuid is None:
            return None

        query = """
            SELECT sa.id AS answer_id, sa.student_name, sa.text_answer,
                   sa.image_answer_url,
                   q.id AS question_id, q.text AS question_text,
                   q.image_url AS question_image_url, q.max_marks,
                   e.id AS exam_id, c.id AS course_id,
                   ql.name AS qualification_name, b.name AS board_name,
                   s.name AS subject_name
            FROM student_answers sa
            LEFT JOIN questions q ON q.id = sa.question_id
            LEFT JOIN exams e ON e.id = q.exam_id
            LEFT JOIN courses c ON c.id = e.course_id
            LEFT JOIN qualifications ql ON ql.id = c.qualification_id
            LEFT JOIN boards b ON b.id = c.board_id
            LEFT JOIN subjects s ON s.id = c.subject_id
            WHERE sa.id = %(answer_id)s
        """

        async with self.db.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, {"answer_id": answer_uuid})
                row = await cur.fetchone()

        if not row:
            return None
        for key in ("answer_id", "question_id", "exam_id", "course_id"):
            if row.get(key) is not None:
                row[key] = str(row[key])
        return AnswerContextRow(**row)

    async def save_evaluation(self, answer_id: str, result: EvaluationResult) -> bool:
        answer_uuid = _parse_uuid(answer_id)
        if answer_uuid is None:
            return False

        query = """
            UPDATE student_answers
            SET evaluated_result = %(evaluated_result)s
            WHERE id = %(answer_id)s
        """

        async with self.db.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    query,
                    {
                        "answer_id": answer_uuid,
                        "evaluated_result": Jsonb(result.model_dump(mode="json")),
                    },
                )
                return cur.rowcount > 0

    async def create_answer(
        self,
        question_id: str,
        student_name: str,
        text_answer: Optional[str] = None,
        image_answer_url: Optional[str] = None,
    ) -> SubmittedAnswer:
        query = f"""
            INSERT INTO student_answers AS sa
                (question_id, student_name, text_answer, image_answer_url)
            VALUES (%(question_id)s, %(student_name)s, %(text_answer)s, %(image_answer_url)s)
            RETURNING {self._ANSWER_COLUMNS}
        """

        async with self.db.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    query,
                    {
                        "question_id": UUID(question_id),
                        "student_name": student_name,
                        "text_answer": text_answer,
                        "image_answer_url": image_answer_url,
                    },
                )
                row = await cur.fetchone()
                return _format_answer(row)

    async def get_answer(self, answer_id: str) -> Optional[SubmittedAnswer]:
        answer_uuid = _parse_uuid(answer_id)
        if answer_uuid is None:
            return None

        query = f"""
            SELECT {self._ANSWER_COLUMNS}
            FROM student_answers sa
            WHERE sa.id = %(answer_id)s
        """

        async with self.db.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, {"answer_id": answer_uuid})
                row = await cur.fetchone()
                return _format_answer(row) if row else None

    async def list_answers_for_exam(self, exam_id: str) -> List[SubmittedAnswer]:
        exam_uuid = _parse_uuid(exam_id)
        if exam_uuid is None:
            return []

        query = f"""
            SELECT {self._ANSWER_COLUMNS}
            FROM student_answers sa
            JOIN questions q ON q.id = sa.question_id
            WHERE q.exam_id = %(exam_id)s
            ORDER BY sa.submitted_at DESC, q.question_order ASC
        """

        async with self.db.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, {"exam_id": exam_uuid})
                rows = await cur.fetchall()
                return [_format_answer(row) for row in rows]

    async def get_question_ids_for_exam(self, exam_id: str) -> Optional[List[str]]:
        exam_uuid = _parse_uuid(exam_id)
        if exam_uuid is None:
            return None

        async with self.db.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "SELECT 1 FROM exams WHERE id = %(exam_id)s", {"exam_id": exam_uuid}
                )
                if await cur.fetchone() is None:
                    return None
                await cur.execute(
                    """
                    SELECT id FROM questions
                    WHERE exam_id = %(exam_id)s
                    ORDER BY question_order ASC
                    """,
                    {"exam_id": exam_uuid},
                )
                rows = await cur.fetchall()
                return [str(row["id"]) for row in rows]


class InMemoryAnswerRepository(AnswerRepository):
    """内存答案仓储（无数据库模式）

    保存与数据库相同的表结构，联表语义与 PostgresAnswerRepository 一致。
    """

    def __init__(self) -> None:
        self.qualifications: Dict[str, Qualification] = {}
        self.boards: Dict[str, Board] = {}
        self.subjects: Dict[str, Subject] = {}
        self.year_groups: Dict[str, YearGroup] = {}
        self.courses: Dict[str, Course] = {}
        self.exams: Dict[str, Exam] = {}
        self.questions: Dict[str, Question] = {}
        self.answers: Dict[str, SubmittedAnswer] = {}
        self.evaluation_writes = 0
        self._lock = asyncio.Lock()

    def add_qualification(self, item: Qualification) -> Qualification:
        self.qualifications[item.id] = item
        return item

    def add_board(self, item: Board) -> Board:
        self.boards[item.id] = item
        return item

    def add_subject(self, item: Subject) -> Subject:
        self.subjects[item.id] = item
        return item

    def add_year_group(self, item: YearGroup) -> YearGroup:
        self.year_groups[item.id] = item
        return item

    def add_course(self, course: Course) -> Course:
        self.courses[course.id] = course
        return course

    def add_exam(self, exam: Exam) -> Exam:
        self.exams[exam.id] = exam
        return exam

    def add_question(self, question: Question) -> Question:
        self.questions[question.id] = question
        return question

    def add_answer(self, answer: SubmittedAnswer) -> SubmittedAnswer:
        self.answers[answer.id] = answer
        return answer

    @staticmethod
    def _name(table: Dict[str, Any], key: Optional[str]) -> Optional[str]:
        if key is None or key not in table:
            return None
        return table[key].name

    async def fetch_with_context(self, answer_id: str) -> Optional[AnswerContextRow]:
        answer = self.answers.get(answer_id)
        if answer is None:
            return None

        row = AnswerContextRow(
            answer_id=answer.id,
            student_name=answer.student_name,
            text_answer=answer.text_answer,
            image_answer_url=answer.image_answer_url,
        )
        question = self.questions.get(answer.question_id)
        if question is None:
            return row
        row.question_id = question.id
        row.question_text = question.text
        row.question_image_url = question.image_url
        row.max_marks = question.max_marks

        exam = self.exams.get(question.exam_id)
        if exam is None:
            return row
        row.exam_id = exam.id

        course = self.courses.get(exam.course_id)
        if course is None:
            return row
        row.course_id = course.id
        row.qualification_name = self._name(self.qualifications, course.qualification_id)
        row.board_name = self._name(self.boards, course.board_id)
        row.subject_name = self._name(self.subjects, course.subject_id)
        return row

    async def save_evaluation(self, answer_id: str, result: EvaluationResult) -> bool:
        async with self._lock:
            answer = self.answers.get(answer_id)
            if answer is None:
                return False
            self.answers[answer_id] = answer.model_copy(
                update={"evaluated_result": result.model_copy()}
            )
            self.evaluation_writes += 1
            return True

    async def create_answer(
        self,
        question_id: str,
        student_name: str,
        text_answer: Optional[str] = None,
        image_answer_url: Optional[str] = None,
    ) -> SubmittedAnswer:
        if question_id not in self.questions:
            raise ValueError(f"Question {question_id} does not exist")
        answer = SubmittedAnswer(
            id=str(uuid.uuid4()),
            question_id=question_id,
            student_name=student_name,
            text_answer=text_answer,
            image_answer_url=image_answer_url,
            submitted_at=datetime.now(timezone.utc),
        )
        self.answers[answer.id] = answer
        return answer

    async def get_answer(self, answer_id: str) -> Optional[SubmittedAnswer]:
        return self.answers.get(answer_id)

    async def list_answers_for_exam(self, exam_id: str) -> List[SubmittedAnswer]:
        question_ids = {q.id for q in self.questions.values() if q.exam_id == exam_id}
        answers = [a for a in self.answers.values() if a.question_id in question_ids]
        return sorted(answers, key=lambda a: a.submitted_at, reverse=True)

    async def get_question_ids_for_exam(self, exam_id: str) -> Optional[List[str]]:
        if exam_id not in self.exams:
            return None
        questions = [q for q in self.questions.values() if q.exam_id == exam_id]
        return [q.id for q in sorted(questions, key=lambda q: q.question_order)]
