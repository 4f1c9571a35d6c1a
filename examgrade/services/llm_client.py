"""Grading model client for OpenAI-compatible chat completion APIs.

This is the only network boundary of the evaluation pipeline. It never retries:
a failed call is reported to the orchestrator, which substitutes a fallback result.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import httpx

from examgrade.config.llm import LLMConfig, LLMProvider
from examgrade.models import EvaluationContext, TransportErrorKind
from examgrade.services.prompts import build_system_prompt, build_user_prompt
from examgrade.utils.error_handling import MissingCredentialsError, TransportError

logger = logging.getLogger(__name__)


@dataclass
class LLMMessage:
    """LLM message."""

    role: str
    content: Union[str, List[Dict[str, Any]]]


class GradingModelClient:
    """Sends an assembled evaluation context to the grading model."""

    def __init__(
        self,
        config: LLMConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            # The hard ceiling is enforced with asyncio.wait_for; the httpx timeout
            # is a second guard for stalled sockets.
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _build_headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        headers.update(self.config.get_headers())
        return headers

    @staticmethod
    def create_image_content(image_url: str) -> Dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": image_url}}

    @staticmethod
    def create_text_content(text: str) -> Dict[str, Any]:
        return {"type": "text", "text": text}

    def build_messages(self, context: EvaluationContext) -> List[LLMMessage]:
        messages = [
            LLMMessage(role="system", content=build_system_prompt(context)),
            LLMMessage(role="user", content=build_user_prompt(context)),
        ]
        if context.has_images:
            parts: List[Dict[str, Any]] = []
            if context.question_image_url:
                parts.append(self.create_text_content("Question Image:"))
                parts.append(self.create_image_content(context.question_image_url))
            if context.answer_image_url:
                parts.append(self.create_text_content("Student's Image Answer:"))
                parts.append(self.create_image_content(context.answer_image_url))
            messages.append(LLMMessage(role="user", content=parts))
        return messages

    def build_payload(self, context: EvaluationContext) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.config.model,
            "messages": [
                {"role": msg.role, "content": msg.content}
                for msg in self.build_messages(context)
            ],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if self.config.provider == LLMProvider.OPENAI:
            payload["response_format"] = {"type": "json_object"}
        return payload

    @staticmethod
    def _extract_content(data: Any) -> str:
        if not isinstance(data, dict):
            raise TransportError(TransportErrorKind.UPSTREAM, "Response body is not an object")
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise TransportError(TransportErrorKind.UPSTREAM, "Response has no choices")
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None

        if isinstance(content, list):
            text_parts = []
            for part in content:
                if isinstance(part, str):
                    text_parts.append(part)
                elif isinstance(part, dict) and "text" in part:
                    text_parts.append(str(part["text"]))
            content = "".join(text_parts)

        if not isinstance(content, str) or not content.strip():
            raise TransportError(TransportErrorKind.UPSTREAM, "Response message has no content")
        return content

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        client = await self._get_client()
        return await client.post(
            f"{self.config.base_url}/chat/completions",
            headers=self._build_headers(),
            json=payload,
        )

    async def request_evaluation(self, context: EvaluationContext) -> str:
        """Return the raw model text for ``context``.

        Raises:
            MissingCredentialsError: no API key is configured.
            TransportError: timeout, non-success status, malformed envelope or
                network failure.
        """
        if not self.config.has_credentials:
            raise MissingCredentialsError()

        payload = self.build_payload(context)
        logger.debug(
            "[LLM] evaluate answer=%s model=%s messages=%s",
            context.answer_id,
            self.config.model,
            len(payload["messages"]),
        )

        try:
            response = await asyncio.wait_for(
                self._post(payload), timeout=self.config.timeout_seconds
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            logger.warning(
                "[LLM] no response within %.1fs for answer %s",
                self.config.timeout_seconds,
                context.answer_id,
            )
            raise TransportError(
                TransportErrorKind.TIMEOUT,
                f"Grading model did not respond within {self.config.timeout_seconds}s",
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("[LLM] request failed: %s", exc)
            raise TransportError(TransportErrorKind.NETWORK, str(exc) or type(exc).__name__) from exc

        if response.status_code < 200 or response.status_code >= 300:
            logger.error("[LLM] HTTP error %s: %s", response.status_code, response.text[:500])
            raise TransportError(
                TransportErrorKind.UPSTREAM,
                "Grading model returned a non-success status",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise TransportError(TransportErrorKind.UPSTREAM, "Response body is not JSON") from exc

        content = self._extract_content(data)
        logger.debug("[LLM] response chars=%s usage=%s", len(content), data.get("usage"))
        return content
