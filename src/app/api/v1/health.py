"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready). Readiness reports
the database as unavailable when the lifespan could not connect or the
database stops answering.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from src.app.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check. No external dependencies are checked."""
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: 200 if the database answers, 503 otherwise."""
    database = getattr(request.app.state, "database", None)
    checks = {"database": "unavailable"}
    if database is not None:
        checks["database"] = "ok" if await database.ping() else "error"

    healthy = checks["database"] == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if healthy else "degraded", "checks": checks},
    )
