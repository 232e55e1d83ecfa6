"""Health check endpoints."""

import time
from datetime import UTC, datetime

import structlog
from fastapi import APIRouter
from pydantic import BaseModel, Field
from redis import Redis
from redis.exceptions import RedisError

from api.config import get_settings
from api.deps import ReportServiceDep

router = APIRouter(tags=["Health"])
logger = structlog.get_logger(__name__)

API_VERSION = "0.1.0"

# Track server start time for uptime calculation
_server_start_time = time.time()


class DependencyCheck(BaseModel):
    """Individual dependency check result."""

    status: str = Field(..., description="Status: healthy, unhealthy")
    latency_ms: float | None = Field(None, description="Check latency in milliseconds")
    error: str | None = Field(None, description="Error message if unhealthy")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Health status: healthy, degraded, unhealthy")
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    version: str = Field(..., description="API version")
    uptime_seconds: int = Field(..., description="Server uptime in seconds")
    scheduler_running: bool = Field(..., description="Whether the job scheduler loop is ticking")
    jobs_processing: int = Field(..., description="Jobs currently holding a worker slot")
    checks: dict[str, DependencyCheck] = Field(default_factory=dict)


def _check_redis(url: str) -> DependencyCheck:
    try:
        start = time.perf_counter()
        redis = Redis.from_url(url, socket_timeout=2)
        redis.ping()
        redis.close()
    except RedisError as e:
        logger.warning("redis_health_check_failed", error=str(e))
        return DependencyCheck(status="unhealthy", error=str(e))
    return DependencyCheck(
        status="healthy",
        latency_ms=round((time.perf_counter() - start) * 1000, 2),
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(service: ReportServiceDep) -> HealthResponse:
    """
    Health check.

    Reports scheduler state and, when Redis storage is configured, Redis
    connectivity.
    """
    settings = get_settings()
    checks: dict[str, DependencyCheck] = {}
    if settings.uses_redis:
        checks["redis"] = _check_redis(str(settings.redis_url))

    overall = "healthy"
    if any(c.status == "unhealthy" for c in checks.values()):
        overall = "unhealthy"
    elif settings.scheduler_enabled and not service.scheduler.is_running:
        overall = "degraded"

    return HealthResponse(
        status=overall,
        timestamp=datetime.now(UTC).isoformat(),
        version=API_VERSION,
        uptime_seconds=int(time.time() - _server_start_time),
        scheduler_running=service.scheduler.is_running,
        jobs_processing=service.scheduler.processing_count,
        checks=checks,
    )
