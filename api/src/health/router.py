"""Health check endpoints."""

from fastapi import APIRouter, Request

from src.config import get_settings
from src.core.redis import get_redis


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> dict[str, str | bool]:
    """Readiness probe - reports which tracking services are wired.

    Progress tracking and quiz recording need Cassandra; completion
    notifications additionally need Redis. Missing pieces degrade the
    status instead of failing the probe.
    """
    settings = get_settings()
    progress = getattr(request.app.state, "progress_service", None) is not None
    assessments = getattr(request.app.state, "assessment_service", None) is not None
    notifications = get_redis() is not None

    return {
        "status": "ready" if progress and assessments else "degraded",
        "environment": settings.environment,
        "debug": settings.debug,
        "progress": progress,
        "assessments": assessments,
        "notifications": notifications,
    }


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
