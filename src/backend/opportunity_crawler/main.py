"""
FastAPI application exposing the cron triggers.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from opportunity_crawler.api.router import api_router
from opportunity_crawler.core.config import Settings, get_settings
from opportunity_crawler.core.exceptions import AppException
from opportunity_crawler.core.logging import get_logger, setup_logging
from opportunity_crawler.db.session import check_database, close_db
from opportunity_crawler.schemas import HealthResponse

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Configure logging and check the database on startup; dispose of the pool
    on shutdown. Without DATABASE_URL the app still starts so /health works.
    """
    setup_logging()
    settings = get_settings()
    logger.info(
        "Application starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    if settings.database_url is None:
        logger.warning("DATABASE_URL not set; cron triggers will fail until it is configured")
    else:
        try:
            await check_database()
        except Exception as e:
            logger.error("Database connection failed", error=str(e))
            raise
        logger.info("Database connection verified")

    yield

    logger.info("Application shutting down")
    await close_db()


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Render every failure as {"ok": false, "error": {...}}."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        logger.warning(
            "Application exception",
            error_code=exc.error_code,
            message=exc.message,
            path=request.url.path,
        )
        return JSONResponse(status_code=exc.status_code, content={"ok": False, **exc.to_dict()})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception", error=str(exc), path=request.url.path)
        error = AppException(
            "An unexpected error occurred",
            "INTERNAL_ERROR",
            details={"error": str(exc)} if settings.debug else None,
        )
        return JSONResponse(status_code=500, content={"ok": False, **error.to_dict()})


def create_application() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Polite discovery and verification crawler for funding and position listings",
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.include_router(api_router, prefix=settings.api_prefix)
    register_exception_handlers(app, settings)

    @app.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        return HealthResponse(version=settings.app_version, environment=settings.environment)

    return app


app = create_application()
