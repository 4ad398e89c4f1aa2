"""FastAPI application entry point."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from transit_feed_api.config import get_settings
from transit_feed_api.database import FeedStore, StoreUnavailableError
from transit_feed_api.logging import (
    bind_request_context,
    clear_request_context,
    get_logger,
    setup_logging,
)
from transit_feed_api.routers.admin import router as admin_router
from transit_feed_api.routers.transit import router as transit_router
from transit_feed_api.services.feed.reload import ReloadCoordinator
from transit_feed_api.services.queries import FeedQueries

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    setup_logging()
    logger.info("Starting Transit Feed API")

    yield

    logger.info("Shutting down Transit Feed API")
    await app.state.coordinator.shutdown()
    await app.state.store.close()


def create_app(store: FeedStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    The store handle and the components built on it are attached to
    ``app.state`` here rather than in the lifespan, so they exist for test
    transports that never run startup.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Read-only query API over a static GTFS transit feed",
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    store = store or FeedStore.from_settings(settings)
    app.state.store = store
    app.state.queries = FeedQueries(
        store,
        service_timezone=settings.service_timezone,
        shape_tolerance=settings.shape_tolerance,
    )
    app.state.coordinator = ReloadCoordinator(store)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.environment == "development" else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ID middleware
    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next: Any) -> Any:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        bind_request_context(request_id=request_id, path=request.url.path)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        clear_request_context()
        return response

    # Include routers
    app.include_router(admin_router)
    app.include_router(transit_router)

    # Health endpoint
    @app.get("/health", tags=["meta"])
    async def health_check(request: Request) -> dict[str, Any]:
        """Health check endpoint returning application status."""
        settings = get_settings()
        missing_env = settings.missing_required_env()
        db_healthy = await request.app.state.store.check_connection()
        reload_status = request.app.state.coordinator.get_status()
        last_report = reload_status["last_report"]

        status = "unhealthy" if missing_env else "healthy" if db_healthy else "degraded"

        issues: list[str] = []
        if missing_env:
            issues.append("Missing required environment variables: " + ", ".join(missing_env))
        if not db_healthy:
            issues.append("Database is unreachable")
        if last_report and last_report["status"] != "success":
            issues.append(f"Last feed reload finished with status {last_report['status']}")

        return {
            "service": settings.app_name,
            "status": status,
            "version": settings.app_version,
            "environment": settings.environment,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": {
                "database": db_healthy,
                "reload": {
                    "running": reload_status["running"],
                    "lastStatus": last_report["status"] if last_report else None,
                    "lastEndedAt": last_report["ended_at"] if last_report else None,
                },
            },
            "issues": issues,
        }

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(
        request: Request, exc: StoreUnavailableError
    ) -> JSONResponse:
        logger.warning("Store unavailable", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=503,
            content={
                "error": "store_unavailable",
                "message": "The feed store is temporarily unavailable",
            },
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception", exc_info=exc, path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )

    return app


app = create_app()
