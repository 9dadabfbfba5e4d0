from fastapi import APIRouter

from .health import router as health_router
from .icons import router as icons_router


# Public API router; the relay has no authentication
api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(icons_router)
