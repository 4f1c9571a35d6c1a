"""
评估任务队列

提交答案后不等待评估，而是把评估任务交给队列，由 worker 调用编排器。

- 配置了 REDIS_URL：任务写入 Redis 列表，worker 协程 BRPOP 消费，先进先出
- 未配置：本地模式，直接创建 asyncio 任务执行

同一答案已有排队或执行中的任务时，再次提交会返回已有任务 ID。
"""

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from examgrade.config.app import QueueConfig
from examgrade.models import EvaluationOutcome


logger = logging.getLogger(__name__)

EvaluationHandler = Callable[[str], Awaitable[EvaluationOutcome]]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class TaskStatus(str, Enum):
    """任务状态"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TaskInfo:
    """任务信息"""
    task_id: str
    answer_id: str
    status: TaskStatus = TaskStatus.PENDING
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: str = field(default_factory=_now)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status in (TaskStatus.PENDING, TaskStatus.RUNNING)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "answer_id": self.answer_id,
            "status": self.status.value,
            "result": self.result,
            "error": self.error,
            "created_at": self.created_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskInfo":
        return cls(
            task_id=data["task_id"],
            answer_id=data["answer_id"],
            status=TaskStatus(data["status"]),
            result=data.get("result"),
            error=data.get("error"),
            created_at=data.get("created_at", _now()),
            started_at=data.get("started_at"),
            completed_at=data.get("completed_at"),
        )


class EvaluationQueue:
    """评估任务队列"""

    TASK_KEY_PREFIX = "examgrade:eval_task:"
    ACTIVE_KEY_PREFIX = "examgrade:eval_active:"
    QUEUE_KEY = "examgrade:eval_queue"

    def __init__(self, handler: EvaluationHandler, config: Optional[QueueConfig] = None):
        self.handler = handler
        self.config = config or QueueConfig()
        self._redis: Optional[aioredis.Redis] = None
        self._workers: List[asyncio.Task] = []
        self._running = False
        self._local_tasks: Dict[str, TaskInfo] = {}
        self._local_active: Dict[str, str] = {}
        self._local_jobs: Set[asyncio.Task] = set()

    @property
    def uses_redis(self) -> bool:
        return self._redis is not None

    async def connect(self) -> bool:
        """连接 Redis，未配置或连接失败时使用本地模式"""
        if not self.config.redis_url:
            logger.info("[EvaluationQueue] REDIS_URL 未设置，使用本地模式")
            return False

        client = aioredis.from_url(
            self.config.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.warning(f"[EvaluationQueue] Redis 连接失败: {e}，使用本地模式")
            await client.aclose()
            return False

        self._redis = client
        logger.info("[EvaluationQueue] 已连接到 Redis")
        return True

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("[EvaluationQueue] 已断开 Redis 连接")

    async def submit(self, answer_id: str) -> str:
        """提交评估任务，返回任务 ID"""
        if self._redis:
            return await self._submit_redis(answer_id)
        return self._submit_local(answer_id)

    def _submit_local(self, answer_id: str) -> str:
        existing_id = self._local_active.get(answer_id)
        if existing_id:
            existing = self._local_tasks.get(existing_id)
            if existing and existing.is_active:
                logger.info(f"[EvaluationQueue] 答案 {answer_id} 已有评估任务 {existing_id}")
                return existing_id

        task_info = TaskInfo(task_id=str(uuid.uuid4()), answer_id=answer_id)
        self._local_tasks[task_info.task_id] = task_info
        self._local_active[answer_id] = task_info.task_id

        job = asyncio.create_task(self._execute_local(task_info))
        self._local_jobs.add(job)
        job.add_done_callback(self._local_jobs.discard)

        logger.info(f"[EvaluationQueue] 任务已提交到本地队列: {task_info.task_id}")
        return task_info.task_id

    async def _submit_redis(self, answer_id: str) -> str:
        assert self._redis is not None
        task_info = TaskInfo(task_id=str(uuid.uuid4()), answer_id=answer_id)
        active_key = f"{self.ACTIVE_KEY_PREFIX}{answer_id}"

        claimed = await self._redis.set(
            active_key, task_info.task_id, nx=True, ex=self.config.task_ttl
        )
        if not claimed:
            existing_id = await self._redis.get(active_key)
            if existing_id:
                logger.info(f"[EvaluationQueue] 答案 {answer_id} 已有评估任务 {existing_id}")
                return existing_id
            await self._redis.set(active_key, task_info.task_id, ex=self.config.task_ttl)

        try:
            await self._save_task(task_info)
            await self._redis.lpush(
                self.QUEUE_KEY,
                json.dumps({"task_id": task_info.task_id, "answer_id": answer_id}),
            )
        except (RedisError, OSError):
            # 入队失败：释放答案占用和任务记录
            await self._release_claim(active_key, task_info.task_id)
            raise
        logger.info(f"[EvaluationQueue] 任务已提交到 Redis: {task_info.task_id}")
        return task_info.task_id

    async def _release_claim(self, active_key: str, task_id: str) -> None:
        assert self._redis is not None
        try:
            await self._redis.delete(f"{self.TASK_KEY_PREFIX}{task_id}")
            if await self._redis.get(active_key) == task_id:
                await self._redis.delete(active_key)
        except (RedisError, OSError) as e:
            logger.error(f"[EvaluationQueue] 释放任务 {task_id} 失败: {e}")

    async def get_task(self, task_id: str) -> Optional[TaskInfo]:
        """获取任务状态"""
        if self._redis:
            data = await self._redis.get(f"{self.TASK_KEY_PREFIX}{task_id}")
            return TaskInfo.from_dict(json.loads(data)) if data else None
        return self._local_tasks.get(task_id)

    async def _save_task(self, task_info: TaskInfo) -> None:
        if self._redis:
            await self._redis.set(
                f"{self.TASK_KEY_PREFIX}{task_info.task_id}",
                json.dumps(task_info.to_dict()),
                ex=self.config.task_ttl,
            )
        else:
            self._local_tasks[task_info.task_id] = task_info

    async def _run(self, task_info: TaskInfo) -> None:
        """执行一次评估并记录结果，handler 本身不抛异常"""
        task_info.status = TaskStatus.RUNNING
        task_info.started_at = _now()
        await self._save_task(task_info)

        try:
            outcome = await self.handler(task_info.answer_id)
        except Exception as e:
            logger.error(f"[EvaluationQueue] 任务执行失败: {task_info.task_id}, {e}")
            task_info.status = TaskStatus.FAILED
            task_info.error = str(e)
        else:
            task_info.result = outcome.model_dump(mode="json")
            if outcome.success:
                task_info.status = TaskStatus.COMPLETED
            else:
                task_info.status = TaskStatus.FAILED
                task_info.error = outcome.detail
        task_info.completed_at = _now()
        await self._save_task(task_info)

    async def _execute_local(self, task_info: TaskInfo) -> None:
        try:
            await self._run(task_info)
        finally:
            if self._local_active.get(task_info.answer_id) == task_info.task_id:
                del self._local_active[task_info.answer_id]

    async def _execute_redis(self, task_id: str, answer_id: str) -> None:
        assert self._redis is not None
        try:
            task_info = await self.get_task(task_id) or TaskInfo(task_id=task_id, answer_id=answer_id)
            await self._run(task_info)
        finally:
            active_key = f"{self.ACTIVE_KEY_PREFIX}{answer_id}"
            if await self._redis.get(active_key) == task_id:
                await self._redis.delete(active_key)

    async def start_workers(self) -> None:
        """启动 worker 协程"""
        if not self._redis:
            logger.info("[EvaluationQueue] 本地模式，无需启动 worker")
            return

        self._running = True
        for i in range(self.config.max_workers):
            self._workers.append(asyncio.create_task(self._worker_loop(i)))
        logger.info(f"[EvaluationQueue] 已启动 {self.config.max_workers} 个 worker")

    async def stop_workers(self) -> None:
        """停止 worker，并等待本地任务结束"""
        self._running = False
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        await self.drain()

    async def drain(self) -> None:
        """等待本地模式下所有已提交任务完成"""
        while self._local_jobs:
            await asyncio.gather(*list(self._local_jobs), return_exceptions=True)

    async def _worker_loop(self, worker_id: int) -> None:
        logger.info(f"[EvaluationQueue] worker {worker_id} 已启动")

        while self._running and self._redis is not None:
            try:
                item = await self._redis.brpop(self.QUEUE_KEY, timeout=5)
                if not item:
                    continue
                _, raw = item
                job = json.loads(raw)
                await self._execute_redis(job["task_id"], job["answer_id"])
            except asyncio.CancelledError:
                break
            except (RedisError, ValueError, KeyError) as e:
                logger.error(f"[EvaluationQueue] worker {worker_id} 错误: {e}")
                await asyncio.sleep(1)

        logger.info(f"[EvaluationQueue] worker {worker_id} 已停止")


__all__ = [
    "EvaluationHandler",
    "EvaluationQueue",
    "TaskInfo",
    "TaskStatus",
]
