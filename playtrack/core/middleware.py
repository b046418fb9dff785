"""Request middleware for context management and logging.

Every request gets a request id (taken from ``X-Request-ID`` or generated)
and, when the portal gateway forwards one, the caller's ``X-User-Id``.
Both are bound to the logging context and kept on ``request.state`` so
routes read the caller from one place.
"""

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from playtrack.core.context import clear_context, set_request_id, set_user_id


logger = structlog.get_logger(__name__)

DEFAULT_EXCLUDE_PATHS = ("/health", "/health/live", "/health/ready")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds request and caller identifiers and logs each request."""

    REQUEST_ID_HEADER = "X-Request-ID"
    USER_ID_HEADER = "X-User-Id"

    def __init__(
        self,
        app: ASGIApp,
        log_requests: bool = True,
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.log_requests = log_requests
        self.exclude_paths = tuple(exclude_paths or DEFAULT_EXCLUDE_PATHS)

    def _bind(self, request: Request) -> str:
        request_id = set_request_id(request.headers.get(self.REQUEST_ID_HEADER))
        user_id = (request.headers.get(self.USER_ID_HEADER) or "").strip() or None
        set_user_id(user_id)

        request.state.request_id = request_id
        request.state.user_id = user_id
        return request_id

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process the request inside its logging context."""
        started = time.perf_counter()
        request_id = self._bind(request)
        path = request.url.path
        should_log = self.log_requests and not path.startswith(self.exclude_paths)

        def elapsed_ms() -> float:
            return round((time.perf_counter() - started) * 1000, 2)

        if should_log:
            logger.info(
                "request_started",
                method=request.method,
                path=path,
                query=str(request.query_params) or None,
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "request_failed",
                method=request.method,
                path=path,
                error_type=type(e).__name__,
                duration_ms=elapsed_ms(),
            )
            raise
        finally:
            clear_context()

        if should_log:
            log = logger.warning if response.status_code >= 400 else logger.info
            log(
                "request_completed",
                method=request.method,
                path=path,
                status_code=response.status_code,
                duration_ms=elapsed_ms(),
                request_id=request_id,
            )

        response.headers[self.REQUEST_ID_HEADER] = request_id
        return response
