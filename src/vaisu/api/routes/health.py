"""
Service information and health check endpoints.
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from vaisu.core.config import settings
from vaisu.core.logging import get_logger

router = APIRouter(tags=["health"])

logger = get_logger()


@router.get("/")
async def root():
    logger.info("API root endpoint accessed")
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "status": "running",
    }


@router.get("/api/health")
async def health_check():
    """Liveness probe; does not touch storage or the LLM."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
    }
