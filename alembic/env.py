"""examgrade 迁移环境

连接串与应用使用同一套规则：DATABASE_URL 优先，其次 DB_HOST/DB_USER/... 分离变量。
"""
import logging
from logging.config import fileConfig

from sqlalchemy import create_engine, pool

from alembic import context

from examgrade.config.deployment_mode import mask_connection_string
from examgrade.utils.database import DatabaseConfig


config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

# 迁移脚本使用 op.* 和原生 SQL，没有 ORM 元数据
target_metadata = None


def _sqlalchemy_url() -> str:
    url = DatabaseConfig.from_env().database_url or config.get_main_option("sqlalchemy.url") or ""
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def run_migrations_offline(url: str) -> None:
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online(url: str) -> None:
    engine = create_engine(url, poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()
    engine.dispose()


db_url = _sqlalchemy_url()
logger.info("migrating %s", mask_connection_string(db_url))

if context.is_offline_mode():
    run_migrations_offline(db_url)
else:
    run_migrations_online(db_url)
