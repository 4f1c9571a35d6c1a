"""评分模型客户端测试"""

import httpx
import pytest

from examgrade.config.llm import LLMConfig, LLMProvider
from examgrade.models import EvaluationContext, TransportErrorKind
from examgrade.services.llm_client import GradingModelClient
from examgrade.utils.error_handling import MissingCredentialsError, TransportError
from tests.fakes import FakeGradingModel, chat_completion, evaluation_json


def _context(**overrides) -> EvaluationContext:
    data = dict(
        answer_id="ans-1",
        student_name="Sam Patel",
        subject="Biology",
        board="OCR",
        qualification="GCSE",
        question_text="Describe what happens during photosynthesis.",
        answer_text="Photosynthesis converts CO2 into glucose",
        max_marks=6,
    )
    data.update(overrides)
    return EvaluationContext(**data)


def _client(model: FakeGradingModel, **config) -> GradingModelClient:
    config.setdefault("api_key", "sk-test")
    config.setdefault("timeout_seconds", 0.5)
    return GradingModelClient(LLMConfig(**config), transport=model.transport)


@pytest.mark.asyncio
async def test_returns_raw_message_content():
    model = FakeGradingModel(content=evaluation_json(score=4))
    client = _client(model)

    raw = await client.request_evaluation(_context())

    assert raw == evaluation_json(score=4)
    request = model.requests[0]
    assert request.url == "https://api.openai.com/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    await client.close()


@pytest.mark.asyncio
async def test_payload_contains_context():
    model = FakeGradingModel()
    client = _client(model)

    await client.request_evaluation(_context())
    payload = model.last_payload()

    assert payload["model"] == "gpt-4o"
    assert payload["response_format"] == {"type": "json_object"}
    system, user = payload["messages"]
    assert system["role"] == "system"
    assert "Biology" in system["content"]
    assert "OCR" in system["content"]
    assert "6" in user["content"]
    assert "Photosynthesis converts CO2 into glucose" in user["content"]


@pytest.mark.asyncio
async def test_image_parts_are_attached():
    model = FakeGradingModel()
    client = _client(model)

    await client.request_evaluation(
        _context(
            answer_text="",
            question_image_url="https://img.example.com/q.png",
            answer_image_url="https://img.example.com/a.jpg",
        )
    )
    messages = model.last_payload()["messages"]

    assert len(messages) == 3
    assert "No text answer provided" in messages[1]["content"]
    parts = messages[2]["content"]
    assert parts[0] == {"type": "text", "text": "Question Image:"}
    assert parts[1]["image_url"]["url"] == "https://img.example.com/q.png"
    assert parts[2] == {"type": "text", "text": "Student's Image Answer:"}
    assert parts[3]["image_url"]["url"] == "https://img.example.com/a.jpg"


@pytest.mark.asyncio
async def test_openrouter_headers_and_no_response_format():
    model = FakeGradingModel()
    client = _client(
        model,
        provider=LLMProvider.OPENROUTER,
        base_url="https://openrouter.ai/api/v1",
    )

    await client.request_evaluation(_context())

    request = model.requests[0]
    assert request.url == "https://openrouter.ai/api/v1/chat/completions"
    assert request.headers["HTTP-Referer"] == "https://examgrade.app"
    assert "response_format" not in model.last_payload()


@pytest.mark.asyncio
async def test_missing_credentials_makes_no_request():
    model = FakeGradingModel()
    client = _client(model, api_key="  ")

    with pytest.raises(MissingCredentialsError):
        await client.request_evaluation(_context())
    assert model.requests == []


@pytest.mark.asyncio
async def test_timeout():
    client = _client(FakeGradingModel(delay=2.0), timeout_seconds=0.1)

    with pytest.raises(TransportError) as exc_info:
        await client.request_evaluation(_context())
    assert exc_info.value.kind == TransportErrorKind.TIMEOUT


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [400, 429, 500, 503])
async def test_non_success_status(status_code):
    client = _client(FakeGradingModel(status_code=status_code, body={"error": "nope"}))

    with pytest.raises(TransportError) as exc_info:
        await client.request_evaluation(_context())
    assert exc_info.value.kind == TransportErrorKind.UPSTREAM
    assert exc_info.value.status_code == status_code


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        "<html>bad gateway</html>",
        {"choices": []},
        {"object": "chat.completion"},
        chat_completion(None),
        chat_completion("   "),
        [1, 2],
    ],
)
async def test_malformed_envelope(body):
    client = _client(FakeGradingModel(body=body))

    with pytest.raises(TransportError) as exc_info:
        await client.request_evaluation(_context())
    assert exc_info.value.kind == TransportErrorKind.UPSTREAM


@pytest.mark.asyncio
async def test_list_content_is_joined():
    content = [{"type": "text", "text": '{"score": '}, {"type": "text", "text": "3}"}]
    client = _client(FakeGradingModel(body=chat_completion(content)))

    assert await client.request_evaluation(_context()) == '{"score": 3}'


@pytest.mark.asyncio
async def test_network_error():
    client = _client(FakeGradingModel(error=httpx.ConnectError("connection refused")))

    with pytest.raises(TransportError) as exc_info:
        await client.request_evaluation(_context())
    assert exc_info.value.kind == TransportErrorKind.NETWORK
    assert "connection refused" in str(exc_info.value)


@pytest.mark.asyncio
async def test_transport_read_timeout_is_timeout():
    client = _client(FakeGradingModel(error=httpx.ReadTimeout("read timed out")))

    with pytest.raises(TransportError) as exc_info:
        await client.request_evaluation(_context())
    assert exc_info.value.kind == TransportErrorKind.TIMEOUT
