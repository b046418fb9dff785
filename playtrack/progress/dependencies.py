"""FastAPI dependencies for training progress.

Provides dependency injection for:
- Catalog provider and progress store (wired by the app lifespan)
- Caller identity (``X-User-Id`` header)
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from playtrack.catalog.provider import CatalogProvider
from playtrack.core.exceptions import TrackingError

from .store import ProgressStore


async def get_catalog(request: Request) -> CatalogProvider:
    """Get the catalog provider from app state."""
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Catalog not available",
        )
    return catalog


async def get_progress_store(request: Request) -> ProgressStore:
    """Get the progress store from app state."""
    store = getattr(request.app.state, "progress_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Progress store not available",
        )
    return store


async def get_current_user_id(
    request: Request,
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """Identity of the caller, set by the portal gateway.

    ``RequestContextMiddleware`` normalizes the header onto
    ``request.state``; the raw header is the fallback when the app runs
    without the middleware.
    """
    user_id = getattr(request.state, "user_id", None) or (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return user_id


# Type aliases for dependency injection
CatalogDep = Annotated[CatalogProvider, Depends(get_catalog)]
ProgressStoreDep = Annotated[ProgressStore, Depends(get_progress_store)]
CurrentUserId = Annotated[str, Depends(get_current_user_id)]


def handle_tracking_error(error: TrackingError) -> HTTPException:
    """Convert tracking errors to HTTP exceptions.

    Args:
        error: Tracking error

    Returns:
        HTTPException with appropriate status code
    """
    status_map = {
        "catalog_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
        "store_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
        "invalid_session_state": status.HTTP_409_CONFLICT,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
