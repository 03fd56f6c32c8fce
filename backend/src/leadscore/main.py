"""FastAPI application entry-point.

Assembles routers, middleware, exception handlers, and lifecycle hooks.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from leadscore.adapters.inbound.rest.routers import (
    discovery_router,
    health_router,
    service_configuration_router,
)
from leadscore.adapters.outbound.persistence.database import create_schema
from leadscore.config import Settings
from leadscore.dependencies import get_cached_settings, init_app_state
from leadscore.shared.errors import register_exception_handlers
from leadscore.shared.middleware import (
    LoggingMiddleware,
    MetricsMiddleware,
    RequestIdMiddleware,
)
from leadscore.shared.observability import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifecycle: startup & shutdown hooks."""
    settings: Settings = app.state.settings
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.is_production,
    )
    logger.info(
        "application_starting",
        env=settings.app_env.value,
        record_usage=settings.record_usage,
    )
    if settings.uses_default_encryption_key:
        logger.warning(
            "default_encryption_key_in_use",
            hint="set ENCRYPTION_KEY before storing real credentials",
        )
    if settings.database_auto_create:
        await create_schema(app.state.engine)

    yield

    await app.state.llm.close()
    await app.state.engine.dispose()
    logger.info("application_shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory: creates a fully configured FastAPI instance."""
    settings = settings or get_cached_settings()

    app = FastAPI(
        title="Lead Scoring Platform",
        description=(
            "Service resolution and failover backend for the lead-scoring platform. "
            "Manages external AI, scraping and analysis providers, maps operations to "
            "them by priority and dispatches each call with automatic failover."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # Store settings in app state for lifecycle access
    app.state.settings = settings
    init_app_state(app, settings)

    # ── Middleware (order matters: last added = outermost) ────
    cors_origins = settings.cors_origins
    # CORSMiddleware rejects ["*"] together with allow_credentials=True
    allow_all_origins = "*" in cors_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[] if allow_all_origins else cors_origins,
        allow_origin_regex=".*" if allow_all_origins else None,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ── Exception handlers ───────────────────────────────────
    register_exception_handlers(app)

    # ── REST routers (versioned) ─────────────────────────────
    api_v1 = "/api/v1"
    app.include_router(health_router, prefix=api_v1)
    app.include_router(service_configuration_router, prefix=api_v1)
    app.include_router(discovery_router, prefix=api_v1)

    @app.get("/")
    async def root() -> dict[str, str]:
        return {
            "message": "Lead Scoring Platform API is running",
            "docs": "/docs",
            "health": "/api/v1/health",
        }

    return app


# Uvicorn entry-point
app = create_app()
