"""Training progress API endpoints.

Read-only views over a user's training list: the merged rows shown on the
training screen and the completion statistics shown above it. Progress
writes come from playback sessions, never from these routes.
"""

from fastapi import APIRouter, Query

from playtrack.catalog.models import Audience
from playtrack.core.exceptions import CatalogUnavailable

from .dependencies import (
    CatalogDep,
    CurrentUserId,
    ProgressStoreDep,
    handle_tracking_error,
)
from .schemas import ProgressStats, StatusFilter, ViewRowListResponse
from .service import TrainingProgressService


router = APIRouter(prefix="/v1/trainings", tags=["trainings"])


async def _load_service(
    catalog: CatalogDep,
    store: ProgressStoreDep,
    user_id: str,
    audience: Audience | None,
) -> TrainingProgressService:
    service = TrainingProgressService(catalog, store, user_id, audience=audience)
    try:
        await service.load()
    except CatalogUnavailable as e:
        raise handle_tracking_error(e) from e
    return service


@router.get(
    "/progress",
    response_model=ViewRowListResponse,
    summary="List trainings with progress",
)
async def list_training_progress(
    catalog: CatalogDep,
    store: ProgressStoreDep,
    user_id: CurrentUserId,
    search: str = Query(default="", max_length=200),
    status: StatusFilter = Query(default=StatusFilter.ALL),
    audience: Audience | None = Query(default=None),
) -> ViewRowListResponse:
    """Training list of the caller, filtered by text, status and audience."""
    service = await _load_service(catalog, store, user_id, audience)
    rows = service.rows(search=search, status=status)
    return ViewRowListResponse(items=rows, total=len(rows))


@router.get(
    "/progress/stats",
    response_model=ProgressStats,
    summary="Training completion statistics",
)
async def get_training_stats(
    catalog: CatalogDep,
    store: ProgressStoreDep,
    user_id: CurrentUserId,
    audience: Audience | None = Query(default=None),
) -> ProgressStats:
    """Completed / in-progress / not-started counts for the caller."""
    service = await _load_service(catalog, store, user_id, audience)
    return service.stats()
