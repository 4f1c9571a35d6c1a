"""评分结果规范化

把模型返回的原始文本解析为 EvaluationResult。normalize 是全函数：
任何输入都返回结构完整、分数在 [0, max_marks] 内的结果，不会抛异常。
"""

import json
import logging
import math
import re
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from examgrade.models import EvaluationResult, FallbackReason, QualitativeLabel


logger = logging.getLogger(__name__)


# 兜底分数比例，不同失败原因分开保留
MISSING_CREDENTIALS_FALLBACK_RATIO = 0.5
PARSE_FAILURE_FALLBACK_RATIO = 0.5
UPSTREAM_FAILURE_FALLBACK_RATIO = 0.6

_FALLBACK_RATIOS = {
    FallbackReason.MISSING_CREDENTIALS: MISSING_CREDENTIALS_FALLBACK_RATIO,
    FallbackReason.PARSE_FAILURE: PARSE_FAILURE_FALLBACK_RATIO,
    FallbackReason.UPSTREAM_FAILURE: UPSTREAM_FAILURE_FALLBACK_RATIO,
}

_FALLBACK_TEXT = {
    FallbackReason.MISSING_CREDENTIALS: {
        "model_answer": "AI evaluation is not configured, so no model answer could be generated.",
        "positive_feedback": "Your answer has been saved and will be reviewed.",
        "constructive_feedback": "Automatic evaluation is unavailable. Ask your teacher to review this answer or retry once AI evaluation is enabled.",
    },
    FallbackReason.UPSTREAM_FAILURE: {
        "model_answer": "Unable to generate a model answer because the evaluation service did not respond.",
        "positive_feedback": "Your answer has been saved and will be reviewed.",
        "constructive_feedback": "Automatic evaluation could not be completed. Please retry the evaluation for detailed feedback.",
    },
    FallbackReason.PARSE_FAILURE: {
        "model_answer": "Unable to generate a model answer due to an evaluation error.",
        "positive_feedback": "Your answer has been saved and will be reviewed.",
        "constructive_feedback": "The automatic evaluation could not be read. Please retry the evaluation for detailed feedback.",
    },
}

# 模型漏掉文字字段时使用
MISSING_MODEL_ANSWER = "No model answer was provided."
MISSING_POSITIVE_FEEDBACK = "No positive feedback was provided."
MISSING_CONSTRUCTIVE_FEEDBACK = "No constructive feedback was provided."

_LABEL_ALIASES = {
    "correct": QualitativeLabel.CORRECT,
    "incorrect": QualitativeLabel.INCORRECT,
    "partiallycorrect": QualitativeLabel.PARTIALLY_CORRECT,
    "partial": QualitativeLabel.PARTIALLY_CORRECT,
    "pending": QualitativeLabel.PENDING,
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(score: int, max_marks: int) -> int:
    return max(0, min(score, max_marks))


def fallback_result(max_marks: int, reason: FallbackReason) -> EvaluationResult:
    """确定性的兜底结果，不依赖模型输出"""
    text = _FALLBACK_TEXT[reason]
    score = clamp_score(round_half_up(max_marks * _FALLBACK_RATIOS[reason]), max(max_marks, 0))
    return EvaluationResult(
        score=score,
        model_answer=text["model_answer"],
        positive_feedback=text["positive_feedback"],
        constructive_feedback=text["constructive_feedback"],
        qualitative_label=QualitativeLabel.PENDING,
        fallback_reason=reason,
    )


class _ModelEvaluationPayload(BaseModel):
    """模型输出的宽松解码结构

    同时接受当前字段名和旧版本提示词使用过的字段名。
    """

    model_config = ConfigDict(extra="ignore", protected_namespaces=())

    score: float = Field(validation_alias=AliasChoices("score", "marks_awarded", "marksAwarded", "marks"))
    model_answer: Optional[str] = Field(
        None, validation_alias=AliasChoices("model_answer", "modelAnswer", "ideal_answer", "idealAnswer")
    )
    positive_feedback: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("positive_feedback", "positiveFeedback", "correct_points", "questionFeedback"),
    )
    constructive_feedback: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("constructive_feedback", "constructiveFeedback", "incorrect_points"),
    )
    suggestions: Optional[str] = None
    qualitative_label: Optional[str] = Field(
        None, validation_alias=AliasChoices("qualitative_label", "qualitativeLabel", "label")
    )

    @field_validator("score", mode="before")
    @classmethod
    def _numeric_score(cls, value: Any) -> float:
        if isinstance(value, bool) or value is None:
            raise ValueError("score must be a number")
        if isinstance(value, str):
            value = value.strip()
        try:
            number = float(value)
        except (TypeError, ValueError, OverflowError) as exc:
            raise ValueError("score must be a number") from exc
        if not math.isfinite(number) or number < 0:
            raise ValueError("score must be a finite non-negative number")
        return number

    @field_validator(
        "model_answer", "positive_feedback", "constructive_feedback", "suggestions", "qualitative_label",
        mode="before",
    )
    @classmethod
    def _text(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, (list, tuple)):
            value = "\n".join(str(item) for item in value if item is not None)
        elif not isinstance(value, str):
            value = str(value)
        value = value.strip()
        return value or None


def strip_code_fences(text: str) -> str:
    """去掉模型包裹在输出外的 ``` / ```json 代码块标记"""
    t = (text or "").strip()
    m = re.search(r"```(?:json|JSON)?\s*\n?(.*?)\n?```", t, re.DOTALL)
    if m:
        return m.group(1).strip()
    return t


def _extract_object_block(text: str) -> Optional[str]:
    start = text.find("{")
    if start == -1:
        return None
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def _escape_invalid_backslashes(text: str) -> str:
    return re.sub(r'\\(?!["\\/bfnrtu])', r"\\\\", text)


def _strip_control_chars(text: str) -> str:
    cleaned = re.sub(r"[\x00-\x1F]", " ", text)
    return re.sub(r"[\u2028\u2029]", " ", cleaned)


def _load_json_with_repair(text: str) -> Optional[Dict[str, Any]]:
    if not text:
        return None
    try:
        parsed = json.loads(text)
    except (ValueError, RecursionError):
        repaired = _escape_invalid_backslashes(text)
        repaired = _strip_control_chars(repaired)
        # 去掉右括号前多余的逗号
        repaired = re.sub(r",\s*([}\]])", r"\1", repaired)
        try:
            parsed = json.loads(repaired, strict=False)
        except (ValueError, RecursionError):
            return None
    return parsed if isinstance(parsed, dict) else None


def parse_model_output(raw_output: Optional[str]) -> Optional[Dict[str, Any]]:
    """尽力从模型文本中取出 JSON 对象，失败返回 None"""
    if not isinstance(raw_output, str):
        return None
    cleaned = strip_code_fences(raw_output)
    parsed = _load_json_with_repair(cleaned)
    if parsed is None:
        block = _extract_object_block(cleaned)
        if block is not None and block != cleaned:
            parsed = _load_json_with_repair(block)
    return parsed


def _resolve_label(raw_label: Optional[str], score: int, max_marks: int) -> QualitativeLabel:
    if raw_label:
        key = re.sub(r"[\s_\-]", "", raw_label).lower()
        label = _LABEL_ALIASES.get(key)
        if label is not None and label != QualitativeLabel.PENDING:
            return label
    if score >= max_marks:
        return QualitativeLabel.CORRECT
    if score <= 0:
        return QualitativeLabel.INCORRECT
    return QualitativeLabel.PARTIALLY_CORRECT


def normalize(raw_output: Optional[str], max_marks: int) -> EvaluationResult:
    """把模型原始输出转换为分数受限的 EvaluationResult"""
    max_marks = max(int(max_marks), 0)

    data = parse_model_output(raw_output)
    if data is None:
        logger.warning("[Evaluation] model output is not a JSON object, using fallback")
        return fallback_result(max_marks, FallbackReason.PARSE_FAILURE)

    try:
        payload = _ModelEvaluationPayload.model_validate(data)
    except ValidationError as e:
        logger.warning(
            "[Evaluation] model output failed validation (%s error(s)), using fallback",
            e.error_count(),
        )
        return fallback_result(max_marks, FallbackReason.PARSE_FAILURE)

    score = clamp_score(round_half_up(payload.score), max_marks)

    constructive = payload.constructive_feedback
    if payload.suggestions:
        constructive = f"{constructive}\n{payload.suggestions}" if constructive else payload.suggestions

    return EvaluationResult(
        score=score,
        model_answer=payload.model_answer or MISSING_MODEL_ANSWER,
        positive_feedback=payload.positive_feedback or MISSING_POSITIVE_FEEDBACK,
        constructive_feedback=constructive or MISSING_CONSTRUCTIVE_FEEDBACK,
        qualitative_label=_resolve_label(payload.qualitative_label, score, max_marks),
    )
