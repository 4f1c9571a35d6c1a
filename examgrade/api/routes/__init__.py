# API Routes Package

from fastapi import APIRouter

from .answers import router as answers_router
from .evaluation import router as evaluation_router

api_router = APIRouter()
api_router.include_router(evaluation_router)
api_router.include_router(answers_router)

__all__ = ["api_router", "answers_router", "evaluation_router"]
