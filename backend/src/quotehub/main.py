"""FastAPI application entry-point.

Assembles routers, middleware, exception handlers, and lifecycle hooks.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from quotehub.adapters.inbound.rest.routers import (
    APP_VERSION,
    adapters_router,
    admin_router,
    health_router,
    quotes_router,
    routes_router,
)
from quotehub.config import Settings, get_settings
from quotehub.dependencies import Container, build_container
from quotehub.shared.errors import register_exception_handlers
from quotehub.shared.middleware import (
    LoggingMiddleware,
    MetricsMiddleware,
    RateLimitMiddleware,
    RequestIdMiddleware,
)
from quotehub.shared.observability import configure_logging

logger = structlog.get_logger(__name__)

API_V1 = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifecycle — startup & shutdown hooks."""
    settings: Settings = app.state.settings
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.is_production,
    )
    container: Container = app.state.container
    logger.info(
        "application_starting",
        env=settings.app_env.value,
        carriers=sorted(container.providers),
        routing_enabled=container.geocoding_router is not None,
    )

    yield

    await container.aclose()
    logger.info("application_shutdown")


def create_app(settings: Settings | None = None, container: Container | None = None) -> FastAPI:
    """Application factory — creates a fully configured FastAPI instance."""
    settings = settings or get_settings()

    app = FastAPI(
        title="QuoteHub",
        description=(
            "Multi-carrier shipping quote aggregator. Quotes every configured "
            "carrier concurrently and enriches the results with a resolved route."
        ),
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.container = container or build_container(settings)

    # ── Middleware (order matters: last added = outermost) ────
    cors_origins = settings.cors_origins
    allow_all_origins = "*" in cors_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[] if allow_all_origins else cors_origins,
        allow_origin_regex=".*" if allow_all_origins else None,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        paths=[f"{API_V1}/quotes"],
        max_requests=settings.quote_rate_limit_requests,
        window_seconds=settings.quote_rate_limit_window_seconds,
    )
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ── Exception handlers ───────────────────────────────────
    register_exception_handlers(app)

    # ── REST routers (versioned) ─────────────────────────────
    app.include_router(health_router, prefix=API_V1)
    app.include_router(quotes_router, prefix=API_V1)
    app.include_router(routes_router, prefix=API_V1)
    app.include_router(adapters_router, prefix=API_V1)
    app.include_router(admin_router, prefix=API_V1)

    return app
