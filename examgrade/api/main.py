"""FastAPI 应用主入口"""

import logging
import os
import sys
from contextlib import asynccontextmanager

# 加载环境变量（必须在读取配置之前）
from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, HTTPException, Request

from examgrade import __version__
from examgrade.api.dependencies import close_services, get_queue, get_repository, init_services
from examgrade.api.routes import api_router
from examgrade.api.routes.evaluation import CORS_HEADERS
from examgrade.config.app import AppConfig


# 配置日志
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logging.basicConfig(
    level=LOG_LEVEL_VALUE,
    format=LOG_FORMAT,
    stream=sys.stdout,
    force=True,
)

# 禁用噪音日志
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("psycopg.pool").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = AppConfig.from_env()
    app.state.config = config
    await init_services(config)
    logger.info("examgrade %s 已启动", __version__)
    try:
        yield
    finally:
        await close_services()
        logger.info("examgrade 已关闭")


app = FastAPI(
    title="examgrade",
    description="Exam delivery backend with AI-assisted answer evaluation",
    version=__version__,
    lifespan=lifespan,
)


@app.middleware("http")
async def apply_cors_headers(request: Request, call_next):
    """所有响应都带上宽松的 CORS 头"""
    response = await call_next(request)
    for key, value in CORS_HEADERS.items():
        response.headers.setdefault(key, value)
    return response


app.include_router(api_router)


@app.get("/health")
async def health():
    try:
        repository = await get_repository()
    except HTTPException:
        repository = None
    queue = await get_queue()
    return {
        "status": "healthy" if repository is not None else "starting",
        "version": __version__,
        "repository": type(repository).__name__ if repository is not None else None,
        "queue": ("redis" if queue.uses_redis else "local") if queue is not None else "disabled",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("examgrade.api.main:app", host="0.0.0.0", port=8001, reload=True)
