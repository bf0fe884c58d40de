"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready) checks.
Readiness reports whether both contact stores have adapters configured.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from src.crm_sync.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check. No external dependencies are checked."""
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: 200 if both stores are configured, 503 otherwise."""
    state = request.app.state
    checks = {
        "supabase": "ok" if getattr(state, "source_adapter", None) is not None else "not_configured",
        "hubspot": "ok" if getattr(state, "crm_adapter", None) is not None else "not_configured",
    }
    all_ready = all(value == "ok" for value in checks.values())

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if all_ready else "degraded",
            "checks": checks,
        },
    )
