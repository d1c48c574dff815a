"""Health, Quotes, Routes, Adapter status, Admin — REST routers."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import ORJSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from quotehub.application.dtos import (
    AdaptersStatusResponse,
    CacheClearedResponse,
    CircuitOut,
    HealthResponse,
    QuoteRequestBody,
    QuoteResponse,
    RouteInfoOut,
)
from quotehub.application.services import (
    GeocodingRouter,
    ProviderHealthService,
    QuoteAggregator,
)
from quotehub.dependencies import (
    Container,
    get_container,
    get_geocoding_router,
    get_provider_health,
    get_quote_aggregator,
    get_resilient_clients,
)
from quotehub.domain.enums import SystemStatus, TransportMode
from quotehub.shared.resilience import CircuitState, ResilientClient

APP_VERSION = "0.1.0"


# ═══════════════════════════════════════════════════════════════
#  Health
# ═══════════════════════════════════════════════════════════════
health_router = APIRouter(tags=["Health"])


@health_router.get("/health", response_model=HealthResponse)
async def health_check(container: Container = Depends(get_container)) -> HealthResponse:
    services = {
        "carriers": str(len(container.providers)),
        "routing": "enabled" if container.geocoding_router else "disabled",
        "route_cache": container.settings.route_cache_backend.value,
    }
    open_circuits = [
        name
        for name, client in container.resilient_clients.items()
        if client.breaker.state == CircuitState.OPEN
    ]
    if open_circuits:
        services["open_circuits"] = ",".join(sorted(open_circuits))

    return HealthResponse(
        status="degraded" if open_circuits else "ok",
        version=APP_VERSION,
        environment=container.settings.app_env.value,
        services=services,
    )


@health_router.get("/metrics")
async def prometheus_metrics() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# ═══════════════════════════════════════════════════════════════
#  Quotes
# ═══════════════════════════════════════════════════════════════
quotes_router = APIRouter(prefix="/quotes", tags=["Quotes"])


@quotes_router.post("", response_model=QuoteResponse, response_model_exclude_none=True)
async def get_quotes(
    body: QuoteRequestBody,
    aggregator: QuoteAggregator = Depends(get_quote_aggregator),
) -> QuoteResponse:
    """Quote every carrier at once.  Carrier failures show up in ``messages``."""
    result = await aggregator.aggregate(body.to_domain())
    return QuoteResponse.from_domain(result)


# ═══════════════════════════════════════════════════════════════
#  Routes
# ═══════════════════════════════════════════════════════════════
routes_router = APIRouter(prefix="/routes", tags=["Routes"])


@routes_router.get("", response_model=RouteInfoOut)
async def resolve_route(
    origin: str = Query(..., min_length=1),
    destination: str = Query(..., min_length=1),
    mode: TransportMode = TransportMode.DRIVING_CAR,
    router: GeocodingRouter = Depends(get_geocoding_router),
) -> RouteInfoOut:
    route = await router.resolve_route(origin, destination, mode)
    return RouteInfoOut.from_domain(route)


@routes_router.delete("/cache", response_model=CacheClearedResponse)
async def clear_route_cache(
    router: GeocodingRouter = Depends(get_geocoding_router),
) -> CacheClearedResponse:
    await router.clear_cache()
    return CacheClearedResponse()


# ═══════════════════════════════════════════════════════════════
#  Adapter status
# ═══════════════════════════════════════════════════════════════
adapters_router = APIRouter(prefix="/adapters", tags=["Adapter Status"])


@adapters_router.get("/status", response_model=AdaptersStatusResponse)
async def adapters_status(
    service: ProviderHealthService = Depends(get_provider_health),
) -> ORJSONResponse:
    health = await service.check_all()
    payload = AdaptersStatusResponse.from_domain(health)
    status_code = 503 if health.status == SystemStatus.OFFLINE else 200
    return ORJSONResponse(
        content=payload.model_dump(mode="json", by_alias=True),
        status_code=status_code,
    )


# ═══════════════════════════════════════════════════════════════
#  Admin — circuits
# ═══════════════════════════════════════════════════════════════
admin_router = APIRouter(prefix="/admin", tags=["Admin"])


@admin_router.get("/circuits", response_model=list[CircuitOut])
async def list_circuits(
    clients: dict[str, ResilientClient] = Depends(get_resilient_clients),
) -> list[CircuitOut]:
    """Snapshot of every outbound dependency's circuit breaker."""
    return [CircuitOut.from_domain(c.breaker.snapshot()) for c in clients.values()]


@admin_router.post("/circuits/{name}/reset", response_model=CircuitOut)
async def reset_circuit(
    name: str,
    clients: dict[str, ResilientClient] = Depends(get_resilient_clients),
) -> CircuitOut:
    client = clients.get(name)
    if client is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown circuit {name!r}")
    client.breaker.reset()
    return CircuitOut.from_domain(client.breaker.snapshot())
