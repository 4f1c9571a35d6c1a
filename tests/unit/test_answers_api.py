from typing import Optional

from fastapi import FastAPI
from fastapi.testclient import TestClient

from examgrade.api.routes import answers as answers_route
from examgrade.config.app import QueueConfig
from examgrade.models import FallbackReason
from examgrade.services.evaluation_queue import EvaluationQueue
from examgrade.services.result_normalizer import fallback_result
from tests.fakes import FakeRedis


class _FakeQueue:
    def __init__(self):
        self.submitted = []

    async def submit(self, answer_id: str) -> str:
        self.submitted.append(answer_id)
        return f"task-{len(self.submitted)}"

    async def get_task(self, task_id: str):
        return None


def _build_client(repository, queue: Optional[_FakeQueue]) -> TestClient:
    app = FastAPI()
    app.include_router(answers_route.router)
    app.dependency_overrides[answers_route.get_repository] = lambda: repository
    app.dependency_overrides[answers_route.get_queue] = lambda: queue
    return TestClient(app)


def test_submit_exam_creates_answers_and_queues(repository) -> None:
    queue = _FakeQueue()
    client = _build_client(repository, queue)

    resp = client.post(
        "/exams/exam-bio/submissions",
        json={
            "student_name": "Jo Smith",
            "answers": [
                {"question_id": "q-photo", "text_answer": "Light makes sugar"},
                {"question_id": "q-leaf", "image_answer_url": "https://storage.example.com/answers/jo.png"},
            ],
        },
    )

    assert resp.status_code == 201
    payload = resp.json()
    assert payload["exam_id"] == "exam-bio"
    assert [ref["question_id"] for ref in payload["answers"]] == ["q-photo", "q-leaf"]
    assert [ref["task_id"] for ref in payload["answers"]] == ["task-1", "task-2"]
    assert queue.submitted == [ref["answer_id"] for ref in payload["answers"]]
    stored = repository.answers[payload["answers"][0]["answer_id"]]
    assert stored.student_name == "Jo Smith"
    assert stored.evaluated_result is None


def test_submit_exam_without_queue(repository) -> None:
    client = _build_client(repository, None)

    resp = client.post(
        "/exams/exam-bare/submissions",
        json={"student_name": "Jo Smith", "answers": [{"question_id": "q-bare", "text_answer": "4"}]},
    )

    assert resp.status_code == 201
    assert resp.json()["answers"][0]["task_id"] is None


def test_submit_exam_unknown_exam(repository) -> None:
    client = _build_client(repository, _FakeQueue())

    resp = client.post(
        "/exams/exam-missing/submissions",
        json={"student_name": "Jo Smith", "answers": [{"question_id": "q-bare"}]},
    )

    assert resp.status_code == 404


def test_submit_exam_rejects_foreign_question(repository) -> None:
    queue = _FakeQueue()
    client = _build_client(repository, queue)
    answers_before = len(repository.answers)

    resp = client.post(
        "/exams/exam-bio/submissions",
        json={"student_name": "Jo Smith", "answers": [{"question_id": "q-bare", "text_answer": "4"}]},
    )

    assert resp.status_code == 400
    assert len(repository.answers) == answers_before
    assert queue.submitted == []


def test_submit_exam_requires_answers(repository) -> None:
    client = _build_client(repository, _FakeQueue())

    resp = client.post("/exams/exam-bio/submissions", json={"student_name": "Jo Smith", "answers": []})

    assert resp.status_code == 422


def test_get_answer_with_result(repository) -> None:
    repository.answers["ans-photo"] = repository.answers["ans-photo"].model_copy(
        update={"evaluated_result": fallback_result(6, FallbackReason.UPSTREAM_FAILURE)}
    )
    client = _build_client(repository, None)

    resp = client.get("/answers/ans-photo")

    assert resp.status_code == 200
    result = resp.json()["evaluated_result"]
    assert result["score"] == 4
    assert result["fallback_reason"] == "upstream_failure"
    assert client.get("/answers/nope").status_code == 404


def test_list_exam_answers(repository) -> None:
    client = _build_client(repository, None)

    resp = client.get("/exams/exam-bio/answers")

    assert resp.status_code == 200
    assert {item["id"] for item in resp.json()} == {"ans-photo", "ans-leaf"}


def test_reevaluate(repository) -> None:
    queue = _FakeQueue()
    client = _build_client(repository, queue)

    resp = client.post("/answers/ans-photo/re-evaluate")

    assert resp.status_code == 202
    assert resp.json() == {"answer_id": "ans-photo", "task_id": "task-1"}
    assert client.post("/answers/nope/re-evaluate").status_code == 404
    assert queue.submitted == ["ans-photo"]


def test_reevaluate_queue_disabled(repository) -> None:
    client = _build_client(repository, None)

    assert client.post("/answers/ans-photo/re-evaluate").status_code == 503
    assert client.get("/evaluation-tasks/task-1").status_code == 503


def test_unknown_task(repository) -> None:
    client = _build_client(repository, _FakeQueue())

    assert client.get("/evaluation-tasks/task-1").status_code == 404


def test_submit_exam_survives_enqueue_failure(repository) -> None:
    async def _never_called(answer_id: str):
        raise AssertionError("no worker is running")

    fake = FakeRedis(fail_lpush=1)
    queue = EvaluationQueue(_never_called, QueueConfig(redis_url="redis://fake"))
    queue._redis = fake
    client = _build_client(repository, queue)
    answers_before = len(repository.answers)

    resp = client.post(
        "/exams/exam-bio/submissions",
        json={
            "student_name": "Jo Smith",
            "answers": [
                {"question_id": "q-photo", "text_answer": "Light makes sugar"},
                {"question_id": "q-leaf", "text_answer": "Palisade layer"},
            ],
        },
    )

    assert resp.status_code == 201
    refs = resp.json()["answers"]
    assert refs[0]["task_id"] is None
    assert refs[1]["task_id"] is not None
    assert len(repository.answers) == answers_before + 2
    assert len(fake.pushed) == 1

    retry = client.post(f"/answers/{refs[0]['answer_id']}/re-evaluate")

    assert retry.status_code == 202
    assert retry.json()["task_id"] not in (None, refs[1]["task_id"])
    assert len(fake.pushed) == 2
