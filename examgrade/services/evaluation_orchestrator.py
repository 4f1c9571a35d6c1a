"""答案评估编排器

流程（线性，不持久化中间状态）：
1. 读取上下文：答案不存在 -> not_found，不写库
2. 调用评分模型：缺少 key / 传输失败 -> 走兜底结果，仍然继续
3. 规范化：总能得到合法结果
4. 写回 evaluated_result：失败 -> persistence，本次计算结果丢弃

evaluate 不会抛出异常。同一答案的并发评估不加锁，后写入者覆盖先写入者。
"""

import logging
from typing import Optional

from examgrade.config.app import AppConfig
from examgrade.models import (
    EvaluationContext,
    EvaluationErrorKind,
    EvaluationOutcome,
    EvaluationResult,
    FallbackReason,
)
from examgrade.repositories import AnswerRepository
from examgrade.services.context_assembler import ContextAssembler
from examgrade.services.llm_client import GradingModelClient
from examgrade.services.result_normalizer import fallback_result, normalize
from examgrade.utils.error_handling import (
    AnswerNotFoundError,
    ErrorLog,
    MissingCredentialsError,
    PersistenceError,
    TransportError,
)


logger = logging.getLogger(__name__)


class EvaluationOrchestrator:
    """评估流水线入口"""

    def __init__(
        self,
        assembler: ContextAssembler,
        client: GradingModelClient,
        repository: AnswerRepository,
    ):
        self.assembler = assembler
        self.client = client
        self.repository = repository

    async def _grade(self, context: EvaluationContext) -> EvaluationResult:
        try:
            raw_output = await self.client.request_evaluation(context)
        except MissingCredentialsError:
            logger.warning(
                "[Evaluation] no grading model credential, fallback result for answer %s",
                context.answer_id,
            )
            return fallback_result(context.max_marks, FallbackReason.MISSING_CREDENTIALS)
        except TransportError as e:
            logger.warning(
                "[Evaluation] grading model unavailable for answer %s: %s",
                context.answer_id,
                e,
            )
            return fallback_result(context.max_marks, FallbackReason.UPSTREAM_FAILURE)

        logger.debug("[Evaluation] raw model output for %s: %s", context.answer_id, raw_output)
        return normalize(raw_output, context.max_marks)

    async def _persist(self, answer_id: str, result: EvaluationResult) -> None:
        try:
            updated = await self.repository.save_evaluation(answer_id, result)
        except Exception as e:
            raise PersistenceError(f"Failed to save evaluation: {e}") from e
        if not updated:
            raise PersistenceError("Failed to save evaluation: answer no longer exists")

    async def evaluate(self, answer_id: str) -> EvaluationOutcome:
        logger.info(f"[Evaluation] start answer={answer_id}")

        try:
            context = await self.assembler.assemble(answer_id)
        except AnswerNotFoundError as e:
            logger.info(f"[Evaluation] answer not found: {answer_id} ({e.reason})")
            return EvaluationOutcome.failed(answer_id, EvaluationErrorKind.NOT_FOUND, str(e))
        except Exception as e:
            ErrorLog.from_exception(e, answer_id=answer_id, stage="fetching").log()
            return EvaluationOutcome.failed(
                answer_id, EvaluationErrorKind.INTERNAL, f"Failed to fetch answer data: {e}"
            )

        try:
            result = await self._grade(context)
        except Exception as e:
            # normalize 和兜底都不会抛异常，这里只会是编程错误
            ErrorLog.from_exception(e, answer_id=answer_id, stage="requesting").log()
            result = fallback_result(context.max_marks, FallbackReason.UPSTREAM_FAILURE)

        if not result.is_within(context.max_marks):
            return EvaluationOutcome.failed(
                answer_id,
                EvaluationErrorKind.INTERNAL,
                f"Score {result.score} outside [0, {context.max_marks}]",
            )

        try:
            await self._persist(answer_id, result)
        except PersistenceError as e:
            ErrorLog.from_exception(
                e,
                context={"score": result.score, "max_marks": context.max_marks},
                answer_id=answer_id,
                stage="persisting",
            ).log()
            return EvaluationOutcome.failed(answer_id, EvaluationErrorKind.PERSISTENCE, str(e))

        logger.info(
            "[Evaluation] done answer=%s score=%s/%s label=%s fallback=%s",
            answer_id,
            result.score,
            context.max_marks,
            result.qualitative_label.value,
            result.fallback_reason.value if result.fallback_reason else None,
        )
        return EvaluationOutcome.succeeded(answer_id, result)

    async def close(self) -> None:
        await self.client.close()


def create_orchestrator(
    config: AppConfig,
    repository: AnswerRepository,
    client: Optional[GradingModelClient] = None,
) -> EvaluationOrchestrator:
    """工厂函数：按配置组装编排器"""
    return EvaluationOrchestrator(
        assembler=ContextAssembler(repository),
        client=client or GradingModelClient(config.llm),
        repository=repository,
    )
