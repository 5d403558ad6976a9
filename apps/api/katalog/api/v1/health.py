"""Health check endpoints."""

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import text

from katalog.core.config import settings
from katalog.core.deps import DBSession, RedisClient
from katalog.schemas.common import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DBSession, redis: RedisClient) -> HealthResponse:
    """
    Health check endpoint.

    Checks database and Redis connectivity and returns service status.
    """
    checks: dict[str, str] = {}

    # Storefront data
    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        checks["database"] = f"unhealthy: {str(e)}"

    # Device storage and analytics events
    try:
        await redis.ping()
        checks["redis"] = "healthy"
    except Exception as e:
        checks["redis"] = f"unhealthy: {str(e)}"

    healthy = all(check == "healthy" for check in checks.values())
    return HealthResponse(
        status="healthy" if healthy else "unhealthy",
        version=settings.version,
        environment=settings.environment,
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Liveness probe for Kubernetes/container orchestration.

    Simple check that the service is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(db: DBSession, redis: RedisClient) -> dict[str, str]:
    """
    Readiness probe for Kubernetes/container orchestration.

    The API needs both the database and Redis before it can take traffic.
    """
    try:
        await db.execute(text("SELECT 1"))
        await redis.ping()
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Not ready: {e}",
        ) from e

    return {"status": "ready"}
