"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from workforce_engine import __version__
from workforce_engine.api.routes import assignments_router, health_router, payroll_router
from workforce_engine.config import get_settings
from workforce_engine.database import dispose_db, init_db
from workforce_engine.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
    WorkforceError,
)
from workforce_engine.log_config import configure_logging

logger = logging.getLogger(__name__)

# Most specific first; anything else is a 400
ERROR_STATUS: list[tuple[type[WorkforceError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (ValidationError, 422),
    (ConflictError, status.HTTP_409_CONFLICT),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for(exc: WorkforceError) -> int:
    for error_cls, code in ERROR_STATUS:
        if isinstance(exc, error_cls):
            return code
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    configure_logging(get_settings().log_level)
    init_db()
    logger.info("Workforce engine %s started", __version__)
    yield
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Workforce Engine API",
        description="Site assignments and monthly payroll for construction crews",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(WorkforceError)
    async def workforce_error_handler(request: Request, exc: WorkforceError) -> JSONResponse:
        """Render service errors in the error envelope."""
        return JSONResponse(
            status_code=status_for(exc),
            content={"success": False, "error": exc.message, "code": exc.code},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Keep framework errors in the same envelope."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": str(exc.detail), "code": "HTTP_ERROR"},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Reject malformed bodies, paths and queries."""
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        return JSONResponse(
            status_code=422,
            content={
                "success": False,
                "error": f"Invalid {location}: {first.get('msg', 'bad input')}",
                "code": "VALIDATION_ERROR",
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    app.include_router(health_router)
    app.include_router(assignments_router, prefix="/api/v1")
    app.include_router(payroll_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
