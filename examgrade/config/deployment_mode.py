"""
部署模式检测

支持两种运行模式：
1. 数据库模式：答案存储在 PostgreSQL
2. 无数据库模式：答案存储在进程内存，适合本地调试和演示
"""

import logging
from enum import Enum
from typing import Optional


logger = logging.getLogger(__name__)


class DeploymentMode(Enum):
    """部署模式枚举"""
    DATABASE = "database"
    NO_DATABASE = "no_database"


def mask_connection_string(conn_str: str) -> str:
    """遮蔽连接字符串中的密码"""
    if not conn_str:
        return ""
    if "://" not in conn_str or "@" not in conn_str:
        return conn_str
    scheme, rest = conn_str.split("://", 1)
    credentials, host = rest.rsplit("@", 1)
    if ":" in credentials:
        user = credentials.split(":", 1)[0]
        return f"{scheme}://{user}:***@{host}"
    return f"{scheme}://{credentials}@{host}"


def detect_deployment_mode(database_url: Optional[str]) -> DeploymentMode:
    """根据 DATABASE_URL 判断部署模式"""
    url = (database_url or "").strip()
    if not url:
        logger.info("检测到无数据库模式：DATABASE_URL 未设置，答案仅保存在内存")
        return DeploymentMode.NO_DATABASE
    logger.info(f"检测到数据库模式: {mask_connection_string(url)}")
    return DeploymentMode.DATABASE
