"""Main application entrypoint for the Hangjegyzet upload service."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from hangjegyzet.api.middleware import HTTPErrorLoggingMiddleware
from hangjegyzet.api.v1 import routes_health, routes_maintenance, routes_upload
from hangjegyzet.core.config import settings
from hangjegyzet.core.logging import setup_logging
from hangjegyzet.db.session import init_db
from hangjegyzet.services.exceptions import UploadError

logger = logging.getLogger(__name__)


async def upload_error_handler(request: Request, exc: UploadError) -> JSONResponse:
    """Render UploadError as ``{"error": ...}`` with its HTTP status."""
    if exc.status_code >= 500:
        logger.error(
            f"Upload request failed: {exc.message}",
            extra={"path": request.url.path, "error_type": type(exc).__name__},
            exc_info=(type(exc), exc, exc.__traceback__),
        )
    else:
        logger.warning(
            f"Upload request rejected: {exc.message}",
            extra={"path": request.url.path, "error_type": type(exc).__name__},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    # Initialize logging first
    setup_logging()

    app = FastAPI(
        title=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(HTTPErrorLoggingMiddleware)
    app.add_exception_handler(UploadError, upload_error_handler)

    app.include_router(routes_health.router, tags=["health"])
    app.include_router(routes_upload.router)
    app.include_router(routes_maintenance.router)

    return app


# Export app instance for ASGI servers
app = create_app()
