"""Dependency injection container — wires adapters to ports.

Everything stateful (circuit breakers, route cache, HTTP pools) is built
once per application by ``build_container`` and stored on
``app.state.container``.  FastAPI's ``Depends()`` factories below read it
from the request, so tests can hand ``create_app`` a container of fakes.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx
import structlog
from fastapi import Depends, HTTPException, Request, status

from quotehub.adapters.outbound.cache import (
    MemoryRequestCounter,
    MemoryRouteCache,
    RedisRequestCounter,
    RedisRouteCache,
)
from quotehub.adapters.outbound.carriers import RATE_CARD_CARRIERS, HttpCarrierAdapter
from quotehub.adapters.outbound.geo import OpenRouteServiceAdapter
from quotehub.application.services import (
    GeocodingRouter,
    ProviderHealthService,
    QuoteAggregator,
)
from quotehub.config import RouteCacheBackend, Settings
from quotehub.ports.outbound import RequestCounterPort, RouteCachePort, ShippingProviderPort
from quotehub.shared.resilience import CircuitBreaker, ResilientClient, RetryPolicy

logger = structlog.get_logger(__name__)


@dataclass
class Container:
    settings: Settings
    providers: dict[str, ShippingProviderPort]
    route_cache: RouteCachePort
    quote_aggregator: QuoteAggregator
    provider_health: ProviderHealthService
    geocoding_router: GeocodingRouter | None = None
    resilient_clients: dict[str, ResilientClient] = field(default_factory=dict)
    request_counter: RequestCounterPort = field(default_factory=MemoryRequestCounter)

    async def aclose(self) -> None:
        for client in self.resilient_clients.values():
            await client.aclose()
        await self.route_cache.close()
        await self.request_counter.close()


# ── Builders ─────────────────────────────────────────────────
def build_resilient_client(
    name: str,
    settings: Settings,
    *,
    timeout_s: float,
    max_elapsed_s: float | None = None,
    http: httpx.AsyncClient | None = None,
) -> ResilientClient:
    return ResilientClient(
        name,
        breaker=CircuitBreaker(
            name,
            failure_threshold=settings.circuit_breaker_failure_threshold,
            recovery_timeout=settings.circuit_breaker_recovery_timeout_seconds,
            success_threshold=settings.circuit_breaker_success_threshold,
            half_open_max_calls=settings.circuit_breaker_half_open_max_calls,
        ),
        retry_policy=RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            backoff_base=settings.retry_backoff_base,
            backoff_max=settings.retry_backoff_max,
            jitter=settings.retry_jitter,
            max_elapsed=max_elapsed_s,
        ),
        timeout_s=timeout_s,
        http=http,
    )


def carrier_attempt_timeout(settings: Settings) -> float:
    """Per-attempt share of the provider budget, leaving room for retries."""
    return settings.provider_timeout_seconds / settings.retry_max_attempts


def build_provider_registry(
    settings: Settings,
    clients: dict[str, ResilientClient] | None = None,
) -> dict[str, ShippingProviderPort]:
    """Explicit provider-id → adapter table.

    Remote carriers register their ResilientClient in ``clients`` so the
    admin endpoints can inspect their circuits.
    """
    registry: dict[str, ShippingProviderPort] = {}
    for adapter_cls in RATE_CARD_CARRIERS:
        adapter = adapter_cls()
        registry[adapter.provider_id] = adapter

    for remote in settings.remote_carriers:
        if remote.provider_id in registry:
            raise ValueError(f"Duplicate carrier id {remote.provider_id!r}")
        attempt_timeout = carrier_attempt_timeout(settings)
        client = build_resilient_client(
            f"carrier:{remote.provider_id}",
            settings,
            timeout_s=attempt_timeout,
            max_elapsed_s=settings.provider_timeout_seconds,
            http=httpx.AsyncClient(timeout=attempt_timeout),
        )
        if clients is not None:
            clients[client.name] = client
        registry[remote.provider_id] = HttpCarrierAdapter(
            remote.provider_id,
            remote.name,
            remote.url,
            client=client,
            transport_mode=remote.transport_mode,
            currency=remote.currency,
        )

    logger.info("provider_registry_built", providers=sorted(registry))
    return registry


def build_route_cache(settings: Settings) -> RouteCachePort:
    if settings.route_cache_backend == RouteCacheBackend.REDIS:
        return RedisRouteCache(settings.redis_url, key_prefix=settings.redis_key_prefix)
    return MemoryRouteCache()


def build_request_counter(settings: Settings) -> RequestCounterPort:
    """Redis-backed when the route cache is, so workers share one limit."""
    if settings.route_cache_backend == RouteCacheBackend.REDIS:
        return RedisRequestCounter(settings.redis_url, key_prefix=settings.rate_limit_key_prefix)
    return MemoryRequestCounter()


def build_geocoding_router(
    settings: Settings,
    cache: RouteCachePort,
    clients: dict[str, ResilientClient],
) -> GeocodingRouter | None:
    if not settings.ors_api_key:
        logger.warning("geocoding_router_disabled", reason="ors_api_key not set")
        return None

    http = httpx.AsyncClient(timeout=settings.ors_timeout_seconds)
    geocode = build_resilient_client(
        "ors:geocode", settings, timeout_s=settings.ors_timeout_seconds, http=http
    )
    directions = build_resilient_client(
        "ors:directions", settings, timeout_s=settings.ors_timeout_seconds, http=http
    )
    clients[geocode.name] = geocode
    clients[directions.name] = directions
    ors = OpenRouteServiceAdapter(
        settings.ors_api_key,
        geocode_client=geocode,
        directions_client=directions,
        base_url=settings.ors_base_url,
        boundary_country=settings.ors_boundary_country or None,
    )
    return GeocodingRouter(
        ors,
        ors,
        cache,
        region=settings.region,
        cache_ttl_seconds=settings.route_cache_ttl_seconds,
    )


def build_container(settings: Settings) -> Container:
    clients: dict[str, ResilientClient] = {}
    providers = build_provider_registry(settings, clients)
    cache = build_route_cache(settings)
    router = build_geocoding_router(settings, cache, clients)

    aggregator = QuoteAggregator(
        providers,
        route_calculator=router,
        provider_timeout_s=settings.provider_timeout_seconds,
        fragile_surcharge=settings.fragile_surcharge,
    )
    health = ProviderHealthService(
        providers,
        probe_destination=settings.region.primary_city,
        timeout_s=settings.provider_timeout_seconds,
    )
    return Container(
        settings=settings,
        providers=providers,
        route_cache=cache,
        quote_aggregator=aggregator,
        provider_health=health,
        geocoding_router=router,
        resilient_clients=clients,
        request_counter=build_request_counter(settings),
    )


# ── FastAPI dependencies ─────────────────────────────────────
def get_container(request: Request) -> Container:
    return request.app.state.container


def get_quote_aggregator(container: Container = Depends(get_container)) -> QuoteAggregator:
    return container.quote_aggregator


def get_provider_health(container: Container = Depends(get_container)) -> ProviderHealthService:
    return container.provider_health


def get_geocoding_router(container: Container = Depends(get_container)) -> GeocodingRouter:
    if container.geocoding_router is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Route calculation is not configured",
        )
    return container.geocoding_router


def get_resilient_clients(
    container: Container = Depends(get_container),
) -> dict[str, ResilientClient]:
    return container.resilient_clients
