"""System health endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ...runtime import Runtime
from ..dependencies import get_runtime

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/healthz")
def healthcheck(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    """Return coarse-grained readiness information."""

    settings = runtime.settings
    feature_flags: Dict[str, Any] = settings.features or {}
    snapshot = getattr(runtime.metrics, "snapshot", None)

    return {
        "status": "ok",
        "environment": settings.environment,
        "entryStore": "database" if settings.use_database else "memory",
        "jobQueue": list(runtime.dispatcher.job_types),
        "cacheEntries": len(runtime.cache),
        "featureFlags": feature_flags,
        "metrics": snapshot() if callable(snapshot) else {},
    }
