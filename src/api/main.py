"""
Session Recorder API - Main FastAPI Application.

Session-recording blob storage with diagnostics endpoints.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from src.api.routers import blobs, diagnostics
from src.core.config import Settings, get_settings
from src.core.exceptions import SessionRecorderError
from src.core.logging import RequestLogger, configure_logging, get_logger
from src.models.common import ErrorDetail, ErrorResponse, HealthResponse
from src.services.storage import BlobStore

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware that logs every request and its outcome."""

    def __init__(self, app, request_logger: RequestLogger | None = None) -> None:
        super().__init__(app)
        self.request_logger = request_logger or RequestLogger()

    async def dispatch(self, request: Request, call_next):
        """Log request start and completion with timing."""
        client_ip = request.client.host if request.client else None
        self.request_logger.log_request(request.method, request.url.path, client_ip=client_ip)
        started = time.perf_counter()
        response = await call_next(request)
        self.request_logger.log_response(
            request.method,
            request.url.path,
            status_code=response.status_code,
            duration_ms=(time.perf_counter() - started) * 1000,
        )
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings: Settings = app.state.settings_provider()

    # Startup
    configure_logging(settings)
    logger.info("starting_application", env=settings.app_env)

    env = app.state.blob_store.get_blob_environment()
    if env.configured:
        logger.info("storage_configured", provider=env.provider, bucket=env.bucket)
    else:
        logger.error("storage_not_configured", error=env.error)

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await app.state.blob_store.aclose()


def create_app(
    settings: Settings | None = None,
    blob_store: BlobStore | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Fixed application settings. If None, settings are re-read
            through ``get_settings`` so a refresh takes effect without restart.
        blob_store: Blob store to serve. Built from the settings if None.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings_provider = get_settings
    else:
        def settings_provider() -> Settings:
            return settings

    current = settings_provider()

    app = FastAPI(
        title=current.app_name,
        description="""
# Session Recorder API

Blob storage for recorded sessions, with operator diagnostics.

## Storage

- Blobs are addressed by proxy URLs under `/api/blob/`
- `memory` mode keeps blobs in process; `remote` mode uses object storage
- Listings are paginated with an opaque cursor

## Diagnostics

- `/api/debug/blob-status`: configuration and health
- `/api/diagnostics/storage`: write/read/delete probe
        """,
        version=current.app_version,
        docs_url="/docs" if current.app_debug else None,
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Blobs", "description": "Blob proxy and listing endpoints"},
            {"name": "Diagnostics", "description": "Storage diagnostics"},
            {"name": "Health", "description": "Health check endpoints"},
        ],
    )

    app.state.settings_provider = settings_provider
    app.state.blob_store = blob_store or BlobStore(settings_provider=settings_provider)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=current.cors_origins,
        allow_credentials=current.cors_allow_credentials,
        allow_methods=current.cors_allow_methods,
        allow_headers=current.cors_allow_headers,
    )
    app.add_middleware(RequestLoggingMiddleware)

    # Exception handlers
    @app.exception_handler(SessionRecorderError)
    async def session_recorder_error_handler(
        request: Request, exc: SessionRecorderError
    ) -> JSONResponse:
        """Handle Session Recorder API errors."""
        if exc.status_code >= 500:
            logger.error(
                "request_failed",
                path=request.url.path,
                error_code=exc.error_code,
                error=exc.message,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle validation errors."""
        errors = []
        for error in exc.errors():
            errors.append({
                "loc": list(error.get("loc", [])),
                "msg": error.get("msg", ""),
                "type": error.get("type", ""),
            })

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=ErrorResponse(
                error=ErrorDetail(
                    code="VALIDATION_ERROR",
                    message="Request validation failed",
                    details={"errors": errors},
                    path=str(request.url.path),
                )
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def general_error_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected errors."""
        logger.exception("unhandled_error", path=request.url.path)

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                error=ErrorDetail(
                    code="INTERNAL_ERROR",
                    message="An unexpected error occurred",
                    path=str(request.url.path),
                )
            ).model_dump(mode="json"),
        )

    # Include routers
    app.include_router(blobs.router)
    app.include_router(diagnostics.router)

    # Health endpoints
    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["Health"],
        summary="Health check",
        description="Check API health and blob storage status.",
    )
    async def health_check(request: Request) -> HealthResponse:
        """Check API health."""
        report = await request.app.state.blob_store.blob_health()
        services = {"storage": "healthy" if report.ok else "unhealthy"}

        return HealthResponse(
            status="healthy" if report.ok else "degraded",
            version=app.version,
            services=services,
        )

    @app.get(
        "/",
        tags=["Health"],
        summary="API info",
    )
    async def root() -> dict[str, str]:
        """Return API information."""
        return {
            "name": app.title,
            "version": app.version,
            "docs": "/redoc",
            "openapi": "/openapi.json",
        }

    return app


def main() -> None:
    """Run the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.api.main:create_app",
        factory=True,
        host=settings.app_host,
        port=settings.app_port,
        workers=settings.app_workers,
        reload=settings.is_development,
    )


if __name__ == "__main__":
    main()
