"""Health check endpoints.

/health/live   - Liveness probe: is the process up?
/health/ready  - Readiness probe: is at least one provider registered?

These are public endpoints - no auth required.
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Request

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict:
    """Liveness probe - always returns 200 if the process is running."""
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


@router.get("/ready")
async def readiness(request: Request) -> dict:
    registry = getattr(request.app.state, "registry", None)
    catalog = getattr(request.app.state, "catalog", None)
    providers = registry.providers() if registry is not None else []

    is_ready = bool(providers) and catalog is not None and len(catalog) > 0
    return {
        "status": "ready" if is_ready else "not_ready",
        "providers": providers,
        "models": len(catalog) if catalog is not None else 0,
        "timestamp": datetime.now(UTC).isoformat(),
    }
