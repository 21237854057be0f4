"""Health check endpoints for load balancers and monitoring."""

from datetime import datetime

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from mehustaja.config import settings
from mehustaja.database import engine
from mehustaja.deps import get_event_bus
from mehustaja.events.bus import EventBus, RedisEventBus

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Lightweight health check (no DB/Redis check)."""
    return {
        "status": "ok",
        "service": "Mehustaja",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment,
    }


@router.get("/health/ready")
async def readiness_check(bus: EventBus = Depends(get_event_bus)):
    """Readiness check including the database and, when used, Redis.

    Returns 200 only if all dependencies are healthy.
    """
    checks = {
        "service": "ok",
        "database": "unknown",
        "events": settings.event_backend,
    }
    overall_healthy = True

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {str(e)[:100]}"
        overall_healthy = False

    if isinstance(bus, RedisEventBus):
        try:
            import redis.asyncio as redis

            redis_client = redis.from_url(settings.redis_url, decode_responses=True)
            await redis_client.ping()
            await redis_client.aclose()
            checks["events"] = "redis ok"
        except Exception as e:
            checks["events"] = f"error: {str(e)[:100]}"
            overall_healthy = False

    return JSONResponse(
        status_code=status.HTTP_200_OK if overall_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if overall_healthy else "unhealthy",
            "service": "Mehustaja",
            "checks": checks,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
