# Core infrastructure
from playtrack.core.context import (
    ViewingContext,
    clear_context,
    get_context,
    get_request_id,
    get_user_id,
    set_request_id,
    set_user_id,
)
from playtrack.core.exceptions import (
    CatalogUnavailable,
    InvalidSessionState,
    PlaybackUnavailable,
    TrackingError,
    TransientStoreError,
)
from playtrack.core.logging import configure_structlog, get_logger


__all__ = [
    "CatalogUnavailable",
    "InvalidSessionState",
    "PlaybackUnavailable",
    "TrackingError",
    "TransientStoreError",
    "ViewingContext",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "get_user_id",
    "set_request_id",
    "set_user_id",
]
