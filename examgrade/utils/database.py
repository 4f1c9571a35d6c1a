"""
数据库连接工具

封装 psycopg 异步连接池，行以 dict 形式返回。
"""

import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool


logger = logging.getLogger(__name__)


@dataclass
class DatabaseConfig:
    """数据库配置"""

    database_url: str = ""
    min_size: int = 2
    max_size: int = 10
    connect_timeout: float = 5.0

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        # 优先使用 DATABASE_URL，否则从分离的环境变量构建
        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url and os.getenv("DB_HOST"):
            database_url = (
                f"postgresql://{os.getenv('DB_USER', 'postgres')}:"
                f"{os.getenv('DB_PASSWORD', 'postgres')}@"
                f"{os.getenv('DB_HOST')}:{os.getenv('DB_PORT', '5432')}/"
                f"{os.getenv('DB_NAME', 'examgrade')}"
            )
        return cls(
            database_url=database_url,
            min_size=int(os.getenv("DB_POOL_MIN_SIZE", "2")),
            max_size=int(os.getenv("DB_POOL_MAX_SIZE", "10")),
        )


class Database:
    """数据库连接池管理器"""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._pool: Optional[AsyncConnectionPool] = None

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """初始化连接池"""
        if self._pool is not None:
            return
        if not self.config.database_url:
            raise RuntimeError("DATABASE_URL 未配置，无法连接数据库")

        pool = AsyncConnectionPool(
            conninfo=self.config.database_url,
            min_size=self.config.min_size,
            max_size=self.config.max_size,
            kwargs={"row_factory": dict_row},
            open=False,
        )
        try:
            await pool.open(wait=True, timeout=self.config.connect_timeout)
        except psycopg.Error as e:
            logger.error(f"无法连接到数据库: {e}")
            await pool.close()
            raise
        self._pool = pool
        logger.info("数据库连接池已打开")

    async def disconnect(self) -> None:
        """关闭连接池"""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("数据库连接池已关闭")

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[psycopg.AsyncConnection]:
        """获取数据库连接，退出时自动提交"""
        if self._pool is None:
            await self.connect()
        assert self._pool is not None
        async with self._pool.connection() as conn:
            yield conn
