"""Global exception handlers — map domain errors to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
import structlog

from quotehub.domain.exceptions import (
    CacheError,
    CircuitOpenError,
    DomainError,
    GeocodeError,
    ProviderError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all domain→HTTP exception mappings."""

    @app.exception_handler(ValidationError)
    async def handle_validation(request: Request, exc: ValidationError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=400,
            content={"code": exc.code, "message": exc.message, "field": exc.field},
        )

    @app.exception_handler(GeocodeError)
    async def handle_geocode(request: Request, exc: GeocodeError) -> ORJSONResponse:
        logger.info("geocode_error_http", address=exc.address, attempts=exc.attempts)
        return ORJSONResponse(
            status_code=422,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(CircuitOpenError)
    async def handle_circuit_open(request: Request, exc: CircuitOpenError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=503,
            content={"code": exc.code, "message": exc.message},
            headers={"Retry-After": str(max(1, round(exc.retry_after_s)))},
        )

    @app.exception_handler(ProviderError)
    async def handle_provider(request: Request, exc: ProviderError) -> ORJSONResponse:
        logger.error("provider_error_http", provider=exc.provider, message=exc.message)
        return ORJSONResponse(
            status_code=502,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(CacheError)
    async def handle_cache(request: Request, exc: CacheError) -> ORJSONResponse:
        logger.error("cache_error_http", message=exc.message)
        return ORJSONResponse(
            status_code=503,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(DomainError)
    async def handle_domain(request: Request, exc: DomainError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=400,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("unhandled_exception", error=str(exc))
        return ORJSONResponse(
            status_code=500,
            content={
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            },
        )
