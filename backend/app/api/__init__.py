"""
StillMotion API routes package.

Contains all API endpoint routers for the application.
"""

from fastapi import APIRouter

from .generate import router as generate_router

# Main API router that includes all sub-routers
api_router = APIRouter()

api_router.include_router(generate_router, prefix="/generate", tags=["generate"])

__all__ = [
    "api_router",
    "generate_router",
]
