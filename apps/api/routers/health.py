"""
Health check endpoints.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
import redis.asyncio as redis

from config import settings

router = APIRouter()


def _provider_status() -> dict:
    return {
        "llm": "configured" if settings.GROQ_API_KEY else "missing",
        "primary_image_generator": "configured" if settings.NEBIUS_API_KEY else "missing",
        "fallback_image_generator": "configured" if settings.REPLICATE_API_TOKEN else "missing",
        "artifact_store": "configured" if settings.SUPABASE_URL and settings.SUPABASE_SERVICE_KEY else "missing",
    }


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Reports database and Redis reachability plus provider configuration.
    """
    health_status = {
        "status": "healthy",
        "api": "up",
        "database": "unknown",
        "redis": "unknown",
        "providers": _provider_status(),
    }

    try:
        from database import engine
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        health_status["database"] = "up"
    except Exception as e:
        health_status["database"] = f"down: {str(e)}"
        health_status["status"] = "degraded"

    # Redis backs rate limiting only
    try:
        r = redis.from_url(settings.REDIS_URL)
        await r.ping()
        await r.aclose()
        health_status["redis"] = "up"
    except Exception as e:
        health_status["redis"] = f"down: {str(e)}"
        health_status["status"] = "degraded"

    return health_status


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes-style readiness probe."""
    missing = []
    if not settings.GROQ_API_KEY:
        missing.append("GROQ_API_KEY")
    if not settings.NEBIUS_API_KEY and not settings.REPLICATE_API_TOKEN:
        missing.append("NEBIUS_API_KEY or REPLICATE_API_TOKEN")
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
        missing.append("SUPABASE_URL/SUPABASE_SERVICE_KEY")

    if missing:
        return JSONResponse(
            status_code=503,
            content={"ready": False, "missing": missing},
        )
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes-style liveness probe."""
    return {"alive": True}
