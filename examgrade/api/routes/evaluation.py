"""Answer evaluation API route.

All responses carry permissive CORS headers so the route can be called from the
browser directly, including a bare OPTIONS pre-flight.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from examgrade.api.dependencies import get_orchestrator
from examgrade.models import (
    ErrorResponse,
    EvaluateAnswerRequest,
    EvaluateAnswerResponse,
    EvaluationErrorKind,
)
from examgrade.services.evaluation_orchestrator import EvaluationOrchestrator


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions", tags=["evaluation"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


def _json(status_code: int, body: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body, headers=CORS_HEADERS)


def _error(status_code: int, error: str, details: str) -> JSONResponse:
    return _json(status_code, ErrorResponse(error=error, details=details).model_dump())


@router.options("/evaluate-answer")
async def evaluate_answer_preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post(
    "/evaluate-answer",
    response_model=EvaluateAnswerResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def evaluate_answer(
    request: Request,
    orchestrator: Optional[EvaluationOrchestrator] = Depends(get_orchestrator),
) -> JSONResponse:
    try:
        body = await request.json()
        payload = EvaluateAnswerRequest.model_validate(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _error(400, "Invalid request", "Request body must be JSON")
    except ValidationError as e:
        return _error(400, "Invalid request", f"answerId is required ({e.error_count()} error(s))")

    if orchestrator is None:
        return _error(500, "Evaluation failed", "Evaluation service is not initialized")

    try:
        outcome = await orchestrator.evaluate(payload.answer_id)
    except Exception as e:
        logger.error(f"Error in evaluate-answer: {e}", exc_info=True)
        return _error(500, "Evaluation failed", str(e))

    if outcome.success and outcome.result is not None:
        response = EvaluateAnswerResponse(evaluation=outcome.result)
        return _json(200, response.model_dump(mode="json"))

    if outcome.error_kind == EvaluationErrorKind.NOT_FOUND:
        return _error(404, "Answer not found", outcome.detail)
    if outcome.error_kind == EvaluationErrorKind.PERSISTENCE:
        return _error(500, "Failed to save evaluation", outcome.detail)
    return _error(500, "Evaluation failed", outcome.detail)
