"""API 依赖注入

启动时按配置创建仓储、编排器和任务队列，路由通过 Depends 获取。
"""

import logging
from typing import Optional

from fastapi import HTTPException

from examgrade.config.app import AppConfig
from examgrade.config.deployment_mode import DeploymentMode
from examgrade.repositories import (
    AnswerRepository,
    InMemoryAnswerRepository,
    PostgresAnswerRepository,
)
from examgrade.services.evaluation_orchestrator import EvaluationOrchestrator, create_orchestrator
from examgrade.services.evaluation_queue import EvaluationQueue
from examgrade.utils.database import Database


logger = logging.getLogger(__name__)


_database: Optional[Database] = None
_repository: Optional[AnswerRepository] = None
_orchestrator: Optional[EvaluationOrchestrator] = None
_queue: Optional[EvaluationQueue] = None


async def _create_repository(config: AppConfig) -> AnswerRepository:
    global _database

    if config.deployment_mode == DeploymentMode.NO_DATABASE:
        return InMemoryAnswerRepository()

    database = Database(config.database)
    try:
        await database.connect()
    except Exception as e:
        logger.error(f"数据库不可用，降级到内存仓储: {e}")
        return InMemoryAnswerRepository()
    _database = database
    return PostgresAnswerRepository(database)


async def init_services(config: AppConfig) -> None:
    """初始化仓储、编排器和评估队列"""
    global _repository, _orchestrator, _queue

    _repository = await _create_repository(config)
    _orchestrator = create_orchestrator(config, _repository)
    if not config.llm.has_credentials:
        logger.warning("未配置评分模型 API key，所有评估将返回兜底结果")

    if config.queue.enabled:
        _queue = EvaluationQueue(_orchestrator.evaluate, config.queue)
        await _queue.connect()
        await _queue.start_workers()
    else:
        logger.info("评估队列已关闭，提交后需手动触发评估")

    logger.info(
        "服务初始化完成 repository=%s queue=%s",
        type(_repository).__name__,
        ("redis" if _queue.uses_redis else "local") if _queue else "disabled",
    )


async def close_services() -> None:
    """关闭服务"""
    global _database, _repository, _orchestrator, _queue

    if _queue is not None:
        await _queue.stop_workers()
        await _queue.disconnect()
        _queue = None
    if _orchestrator is not None:
        await _orchestrator.close()
        _orchestrator = None
    if _database is not None:
        await _database.disconnect()
        _database = None
    _repository = None


async def get_repository() -> AnswerRepository:
    if _repository is None:
        raise HTTPException(status_code=503, detail="Answer store is not initialized")
    return _repository


async def get_orchestrator() -> Optional[EvaluationOrchestrator]:
    return _orchestrator


async def get_queue() -> Optional[EvaluationQueue]:
    return _queue
