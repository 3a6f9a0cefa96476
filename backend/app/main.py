"""
StillMotion Backend API

Main FastAPI application entry point.

Usage:
    uvicorn backend.app.main:app
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import api_router
from .core.config import get_settings
from .core.redis import check_redis_health, close_connection_pool

logger = logging.getLogger(__name__)

# Load settings
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.app_name} {settings.version} starting, storage at {settings.storage_path}")
    yield
    close_connection_pool()


app = FastAPI(
    title=settings.app_name,
    description="Still image to video generation backend",
    version=settings.version,
    debug=settings.debug,
    lifespan=lifespan,
)


# Request body size limit middleware
@app.middleware("http")
async def limit_request_body_size(request: Request, call_next):
    """
    Middleware to enforce maximum request body size.

    Prevents uploads larger than MAX_UPLOAD_SIZE (default 25MB).
    """
    content_length = request.headers.get("content-length")

    if content_length and content_length.isdigit():
        if int(content_length) > settings.max_upload_size:
            return JSONResponse(
                status_code=413,
                content={
                    "error": "request_entity_too_large",
                    "message": f"Request body too large. Maximum size: {settings.max_upload_size} bytes ({settings.max_upload_size // (1024 * 1024)}MB)",
                    "max_size_bytes": settings.max_upload_size,
                },
            )

    return await call_next(request)


# CORS configuration (loaded from environment)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint - API info."""
    return {
        "name": settings.app_name,
        "version": settings.version,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """
    Health check endpoint for Docker/orchestration.

    Checks the Redis connection the job queue depends on.
    """
    redis_status = check_redis_health()

    if redis_status.healthy:
        checks = {"redis": {"status": "healthy", "latency_ms": redis_status.latency_ms}}
    else:
        checks = {"redis": {"status": "unhealthy", "error": redis_status.error}}

    return {
        "status": "healthy" if redis_status.healthy else "unhealthy",
        "checks": checks,
        "version": settings.version,
    }
