from fastapi import APIRouter

from .assistant import router as assistant_router
from .health import router as health_router
from .pipeline import router as pipeline_router


api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(pipeline_router)
api_router.include_router(assistant_router)
