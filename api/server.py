"""FastAPI server for the freight ERP sync service.

Main entry point for the API server.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.container import ServiceContainer
from api.routes import health, masters, operations, sync
from core import __version__
from core.config import load_settings
from core.errors import (
    BackendConnectionError,
    ConfigurationError,
    NotFoundError,
    SyncError,
    ValidationError,
)
from core.observability import configure_logging, get_logger, with_correlation

logger = get_logger(__name__)

# Most specific first; RemoteCallError is a BackendConnectionError
ERROR_STATUS = [
    (ConfigurationError, 500),
    (BackendConnectionError, 502),
    (NotFoundError, 404),
    (ValidationError, 422),
]


def status_for(error: SyncError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    owns_container = getattr(app.state, "container", None) is None
    if owns_container:
        settings = load_settings()
        configure_logging(getattr(logging, settings.log_level, logging.INFO), settings.log_json)
        app.state.container = ServiceContainer.from_settings(settings)

    logger.info("Freight ERP sync API starting up")

    yield

    logger.info("Freight ERP sync API shutting down")
    if owns_container:
        await app.state.container.close()


async def sync_error_handler(request: Request, exc: SyncError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error(f"{type(exc).__name__}: {exc.message}", extra_fields={"path": request.url.path})
    return JSONResponse(
        status_code=status,
        content={"status": "error", "error": exc.message, "type": type(exc).__name__},
    )


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        container: Pre-built services (tests); built from the environment at startup otherwise
    """
    app = FastAPI(
        title="Freight ERP Sync API",
        description="Synchronizes shipments, legs and billing between the record store and the AR/CL ERP companies",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    if container is not None:
        app.state.container = container

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def correlation_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid4().hex[:12]
        with with_correlation(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    app.add_exception_handler(SyncError, sync_error_handler)

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(masters.router, prefix="/masters", tags=["Masters"])
    app.include_router(operations.router, prefix="/operations", tags=["Operations"])
    app.include_router(sync.router, prefix="/sync", tags=["Catalog Sync"])

    return app


# Default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=True)
