"""FastAPI application factory and main entrypoint."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from api.config import get_settings
from api.exceptions import ReportPipelineError
from api.logging import setup_logging
from api.services.report_service import get_report_service

# Initialize logging
setup_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the job scheduler loop with the app and drain it on shutdown."""
    settings = get_settings()
    logger.info(
        "api_starting",
        env=settings.env,
        debug=settings.debug,
        storage=settings.storage_backend,
        collector=settings.collector_backend,
    )

    service = get_report_service()
    if settings.scheduler_enabled:
        service.scheduler.start()

    yield

    await service.scheduler.stop()
    logger.info("api_stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="SEO Report Pipeline",
        description="Weekly SEO health reports: scoring, trends, forecasts and exports",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from api.middleware import RequestContextMiddleware

    app.add_middleware(RequestContextMiddleware)

    register_exception_handlers(app)

    from api.routers import health, v1

    app.include_router(health.router)
    app.include_router(v1.router, prefix="/v1")

    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers."""

    @app.exception_handler(ReportPipelineError)
    async def pipeline_error_handler(request: Request, exc: ReportPipelineError) -> ORJSONResponse:
        """Render pipeline errors with their code and status."""
        logger.warning(
            "application_error",
            error_code=exc.code,
            message=exc.message,
            path=request.url.path,
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "code": exc.code,
                    "message": exc.message,
                    **({"details": exc.details} if exc.details else {}),
                }
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle Pydantic validation errors."""
        errors = exc.errors()
        first_error = errors[0] if errors else {"msg": "Validation error"}

        # Extract field path
        field = ".".join(str(loc) for loc in first_error.get("loc", [])[1:])

        logger.warning("request_validation_error", path=request.url.path, field=field)
        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": {
                    "code": "validation_error",
                    "message": first_error.get("msg", "Validation error"),
                    "field": field if field else None,
                }
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
        """Handle unhandled exceptions."""
        logger.error(
            "unhandled_exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "internal_error",
                    "message": "An unexpected error occurred",
                }
            },
        )


app = create_app()
