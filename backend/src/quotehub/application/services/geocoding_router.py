"""Geocoding router — free-text addresses to a cached, resolved route.

Resolution of one ``(origin, destination, mode)`` triple:

1. Look the normalised triple up in the route cache.
2. Geocode each endpoint through the strategy chain (raw → street detail
   stripped → known city), stopping at the first candidate inside the
   service region.
3. Ask the directions provider for distance, duration and geometry.
4. Flip the provider's ``[lng, lat]`` geometry to ``(lat, lng)``, store the
   route with its TTL and return it.

Concurrent resolutions of the same triple share a single flight, so the
cache is populated once.  Cache failures are logged and treated as misses.
"""

from __future__ import annotations

import structlog

from quotehub.domain.entities import RouteInfo, RoutePoint
from quotehub.domain.enums import TransportMode
from quotehub.domain.exceptions import CacheError, DomainError, GeocodeError
from quotehub.domain.services.addresses import DEFAULT_STRATEGIES, GeocodeStrategy, fold
from quotehub.domain.value_objects import COLOMBIA, Coordinate, ServiceRegion
from quotehub.ports.outbound import (
    DirectionsPort,
    DirectionsResult,
    GeocodingPort,
    RouteCachePort,
    RouteCalculatorPort,
)
from quotehub.shared.observability.metrics import GEOCODE_ATTEMPTS, ROUTE_CACHE_LOOKUPS
from quotehub.shared.resilience import InFlightCoalescer

logger = structlog.get_logger(__name__)


class GeocodingRouter(RouteCalculatorPort):
    def __init__(
        self,
        geocoder: GeocodingPort,
        directions: DirectionsPort,
        cache: RouteCachePort,
        *,
        region: ServiceRegion = COLOMBIA,
        cache_ttl_seconds: float = 3600.0,
        strategies: tuple[tuple[str, GeocodeStrategy], ...] = DEFAULT_STRATEGIES,
    ) -> None:
        self._geocoder = geocoder
        self._directions = directions
        self._cache = cache
        self._region = region
        self._ttl = cache_ttl_seconds
        self._strategies = strategies
        self._resolving: InFlightCoalescer[RouteInfo] = InFlightCoalescer()

    @property
    def region(self) -> ServiceRegion:
        return self._region

    @staticmethod
    def cache_key(origin: str, destination: str, mode: TransportMode) -> str:
        return f"{origin.strip().lower()}|{destination.strip().lower()}|{mode.value}"

    # ── RouteCalculatorPort ──────────────────────────────────
    async def resolve_route(
        self,
        origin: str,
        destination: str,
        mode: TransportMode = TransportMode.DRIVING_CAR,
    ) -> RouteInfo:
        key = self.cache_key(origin, destination, mode)
        cached = await self._cache_get(key)
        if cached is not None:
            ROUTE_CACHE_LOOKUPS.labels(result="hit").inc()
            logger.debug("route_cache_hit", key=key)
            return cached

        ROUTE_CACHE_LOOKUPS.labels(result="miss").inc()
        return await self._resolving.run(
            key, lambda: self._resolve_and_store(key, origin, destination, mode)
        )

    async def distance_km(self, origin: str, destination: str) -> float:
        route = await self.resolve_route(origin, destination, TransportMode.DRIVING_CAR)
        return route.distance_km

    async def validate_address(self, text: str) -> bool:
        try:
            await self.geocode(text)
        except GeocodeError:
            return False
        return True

    async def clear_cache(self) -> None:
        await self._cache.clear()
        logger.info("route_cache_cleared")

    # ── Geocoding ────────────────────────────────────────────
    async def geocode(self, text: str) -> Coordinate:
        """Resolve ``text`` through the strategy chain or raise ``GeocodeError``."""
        attempts: list[str] = []
        tried: set[str] = set()

        for name, strategy in self._strategies:
            query = strategy(text, self._region)
            if not query or fold(query) in tried:
                continue
            tried.add(fold(query))
            attempts.append(query)

            try:
                candidates = await self._geocoder.search(query)
            except DomainError as exc:
                GEOCODE_ATTEMPTS.labels(strategy=name, outcome="error").inc()
                logger.warning("geocode_attempt_failed", strategy=name, query=query, error=exc.message)
                continue

            point = next((c for c in candidates if self._region.bounds.contains(c)), None)
            if point is None:
                outcome = "out_of_region" if candidates else "empty"
                GEOCODE_ATTEMPTS.labels(strategy=name, outcome=outcome).inc()
                logger.info("geocode_attempt_rejected", strategy=name, query=query, outcome=outcome)
                continue

            GEOCODE_ATTEMPTS.labels(strategy=name, outcome="resolved").inc()
            logger.debug("geocode_resolved", strategy=name, query=query, lat=point.lat, lng=point.lng)
            return point

        logger.warning("geocode_exhausted", address=text, attempts=attempts)
        raise GeocodeError(text, attempts)

    # ── Internals ────────────────────────────────────────────
    async def _resolve_and_store(
        self,
        key: str,
        origin: str,
        destination: str,
        mode: TransportMode,
    ) -> RouteInfo:
        # A flight that finished just before this one started may have filled the key.
        cached = await self._cache_get(key)
        if cached is not None:
            return cached

        origin_point = await self.geocode(origin)
        destination_point = await self.geocode(destination)
        result = await self._directions.directions(origin_point, destination_point, mode)

        route = RouteInfo(
            distance_meters=result.distance_meters,
            duration_seconds=result.duration_seconds,
            origin=RoutePoint(origin.strip(), origin_point.lat, origin_point.lng),
            destination=RoutePoint(destination.strip(), destination_point.lat, destination_point.lng),
            route_coordinates=_path(result, origin_point, destination_point),
            transport_mode=mode,
        )
        logger.info(
            "route_resolved",
            origin=origin,
            destination=destination,
            mode=mode.value,
            distance_km=round(route.distance_km, 2),
            duration=route.duration_formatted,
        )

        try:
            await self._cache.set(key, route, ttl_seconds=self._ttl)
        except CacheError as exc:
            logger.warning("route_cache_write_failed", key=key, error=exc.message)
        return route

    async def _cache_get(self, key: str) -> RouteInfo | None:
        try:
            return await self._cache.get(key)
        except CacheError as exc:
            ROUTE_CACHE_LOOKUPS.labels(result="error").inc()
            logger.warning("route_cache_read_failed", key=key, error=exc.message)
            return None


def _path(
    result: DirectionsResult,
    origin: Coordinate,
    destination: Coordinate,
) -> tuple[tuple[float, float], ...]:
    """Provider geometry as ``(lat, lng)``, or the straight two-point path."""
    if not result.geometry:
        return ((origin.lat, origin.lng), (destination.lat, destination.lng))
    return tuple((float(p[1]), float(p[0])) for p in result.geometry)
