"""playtrack API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from playtrack.catalog.provider import (
    CatalogProvider,
    HttpCatalogProvider,
    InMemoryCatalogProvider,
)
from playtrack.config import Settings, get_settings
from playtrack.core.context import get_request_id
from playtrack.core.logging import configure_structlog, get_logger
from playtrack.core.middleware import RequestContextMiddleware
from playtrack.health import router as health_router
from playtrack.progress.router import router as progress_router
from playtrack.progress.store import (
    HttpProgressStore,
    InMemoryProgressStore,
    ProgressStore,
)


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


async def _build_backend(
    app: FastAPI, settings: Settings
) -> tuple[CatalogProvider, ProgressStore]:
    """Create the catalog provider and progress store for the configured backend."""
    if not settings.uses_portal_api:
        return InMemoryCatalogProvider(), InMemoryProgressStore()

    # Shared HTTP client for the portal REST backend
    client = httpx.AsyncClient(timeout=settings.portal_api_timeout)
    app.state.http_client = client
    catalog = HttpCatalogProvider(
        settings.portal_api_base_url,
        timeout=settings.portal_api_timeout,
        token=settings.portal_api_token,
        client=client,
    )

    if settings.store_backend == "http":
        store = HttpProgressStore(
            settings.portal_api_base_url,
            timeout=settings.portal_api_timeout,
            token=settings.portal_api_token,
            client=client,
        )
        return catalog, store

    from playtrack.core.database import init_async_cassandra
    from playtrack.progress.store import CassandraProgressStore

    session = await init_async_cassandra(settings)
    app.state.cassandra_session = session
    return catalog, CassandraProgressStore(
        session=session, keyspace=settings.cassandra_keyspace
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        store_backend=settings.store_backend,
    )

    app.state.catalog = None
    app.state.progress_store = None
    app.state.http_client = None
    app.state.cassandra_session = None

    try:
        app.state.catalog, app.state.progress_store = await _build_backend(
            app, settings
        )
        logger.info("progress_backend_initialized", backend=settings.store_backend)
    except Exception as e:
        logger.warning(
            "progress_backend_init_skipped",
            error=str(e),
            message="Running without progress backend",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    if app.state.http_client is not None:
        await app.state.http_client.aclose()
    if app.state.cassandra_session is not None:
        from playtrack.core.database import shutdown_async_cassandra

        await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # Never let Starlette render stack traces; handlers below log them instead
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Playback progress tracking - API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                or exc.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": request_id,
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "status_code": 422,
                "request_id": request_id,
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions.

        Full details are logged; the response carries a generic message only.
        """
        request_id = _get_request_id_safe(request)

        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": request_id,
            },
        )

    app.include_router(health_router)
    app.include_router(progress_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "playtrack API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()


def run() -> None:
    """Serve the API on the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "playtrack.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
    )
