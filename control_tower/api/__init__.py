"""
Control Tower API package initialization.

This package contains FastAPI router modules:
- overview: Consolidated executive overview (GET /api/dashboard/overview)
"""

from fastapi import APIRouter

from control_tower.api.overview import router as overview_router

# Create main API router
api_router = APIRouter()

api_router.include_router(overview_router, prefix="/api/dashboard", tags=["overview"])

__all__ = [
    "api_router",
    "overview_router",
]
