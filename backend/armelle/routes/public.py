# /armelle/routes/public.py

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest
from datetime import datetime, timezone

from armelle.config.settings import settings
from armelle.models.api import APIResponse
from armelle.utils.dependencies import verify_metrics_access

# This file defines public-facing endpoints that do not require user authentication,
# such as health checks. The /metrics endpoint is conditionally protected by an API key.

router = APIRouter()

@router.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": "1.0.0",
        "status": "operational",
        "environment": settings.environment
    }

@router.get("/health", summary="Basic Health Check")
async def health_check():
    """Basic health check for load balancers."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc)}

@router.get("/health/ready", summary="Readiness Probe")
async def readiness_check(request: Request):
    """Readiness probe checking the session store connection."""
    redis_client = getattr(request.app.state, "redis", None)
    if redis_client is None:
        return {"status": "ready", "session_store": "memory"}
    try:
        await redis_client.ping()
        return {"status": "ready", "session_store": "redis"}
    except Exception as e:
        raise HTTPException(status_code=503, detail=f"Service not ready: {e}")

@router.get("/health/detailed", response_model=APIResponse, tags=["Admin"])
async def detailed_health_check(request: Request):
    """Provides detailed health status of the bot services."""
    health_status = {"status": "healthy", "services": {}}

    redis_client = getattr(request.app.state, "redis", None)
    if redis_client is None:
        health_status["services"]["session_store"] = "memory"
    else:
        try:
            await redis_client.ping()
            health_status["services"]["session_store"] = "connected"
        except Exception:
            health_status["services"]["session_store"] = "error"
            health_status["status"] = "degraded"

    dgi_service = getattr(request.app.state, "dgi_service", None)
    health_status["services"]["dgi"] = dgi_service.circuit_breaker.state.value if dgi_service else "not_configured"

    registry = getattr(request.app.state, "workflow_registry", None)
    health_status["workflows"] = registry.ids() if registry else []

    return APIResponse(
        success=True,
        message="Detailed health status retrieved.",
        data=health_status,
        version=settings.api_version
    )

@router.get("/metrics", tags=["Monitoring"])
async def metrics(_: bool = Depends(verify_metrics_access)):
    """Prometheus metrics endpoint, protected when API_KEY is set."""
    return PlainTextResponse(generate_latest(), media_type="text/plain")
