"""Health check endpoints."""

from fastapi import APIRouter, Request, Response, status

from playtrack.config import get_settings


router = APIRouter(prefix="/health", tags=["health"])


def _backend_components(request: Request) -> dict[str, bool]:
    state = request.app.state
    return {
        "catalog": getattr(state, "catalog", None) is not None,
        "progress_store": getattr(state, "progress_store", None) is not None,
    }


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request, response: Response) -> dict[str, object]:
    """Readiness probe - 503 until the catalog and progress store are wired.

    The lifespan keeps serving when backend initialization fails, so this
    is where an orchestrator sees the degraded state.
    """
    settings = get_settings()
    components = _backend_components(request)
    ready = all(components.values())
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "ready" if ready else "starting",
        "environment": settings.environment,
        "store_backend": settings.store_backend,
        "components": components,
        "debug": settings.debug,
    }


@router.get("")
async def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
