"""Outbound ports — interfaces that infrastructure adapters must implement.

These are the *driven* ports in hexagonal architecture.  The application
layer depends only on these abstractions, never on concrete implementations
(HTTP clients, Redis, carrier SDKs).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from quotehub.domain.entities import Quote, RouteInfo
from quotehub.domain.enums import TransportMode
from quotehub.domain.value_objects import Coordinate


# ═══════════════════════════════════════════════════════════════
#  Carriers
# ═══════════════════════════════════════════════════════════════
class ShippingProviderPort(ABC):
    """One carrier backend able to price a parcel."""

    provider_id: str
    provider_name: str

    @abstractmethod
    def validate(self, weight: float, destination: str) -> None: ...

    @abstractmethod
    async def calculate_shipping(self, weight: float, destination: str) -> Quote: ...

    async def close(self) -> None:
        """Release network resources, if any."""


# ═══════════════════════════════════════════════════════════════
#  Geocoding & routing
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class DirectionsResult:
    """Raw routing answer.  ``geometry`` keeps the provider's ``[lng, lat]`` order."""

    distance_meters: float
    duration_seconds: float
    geometry: list[list[float]] | None = None


class GeocodingPort(ABC):
    @abstractmethod
    async def search(self, text: str) -> list[Coordinate]:
        """Candidate coordinates for ``text``, best match first."""


class DirectionsPort(ABC):
    @abstractmethod
    async def directions(
        self,
        origin: Coordinate,
        destination: Coordinate,
        mode: TransportMode,
    ) -> DirectionsResult: ...


class RouteCalculatorPort(ABC):
    """Address-to-route service consumed by the quote aggregator."""

    @abstractmethod
    async def resolve_route(
        self,
        origin: str,
        destination: str,
        mode: TransportMode = TransportMode.DRIVING_CAR,
    ) -> RouteInfo: ...

    @abstractmethod
    async def distance_km(self, origin: str, destination: str) -> float: ...

    @abstractmethod
    async def validate_address(self, text: str) -> bool: ...

    @abstractmethod
    async def clear_cache(self) -> None: ...


# ═══════════════════════════════════════════════════════════════
#  Cache
# ═══════════════════════════════════════════════════════════════
class RouteCachePort(ABC):
    """TTL key-value store for resolved routes.

    Implementations raise ``CacheError`` on I/O failure; callers decide
    whether that is fatal.
    """

    @abstractmethod
    async def get(self, key: str) -> RouteInfo | None: ...

    @abstractmethod
    async def set(self, key: str, value: RouteInfo, *, ttl_seconds: float) -> None: ...

    @abstractmethod
    async def clear(self) -> None: ...

    async def close(self) -> None:
        """Release connections, if any."""


class RequestCounterPort(ABC):
    """Per-key request counter backing the rate limiter."""

    @abstractmethod
    async def hit(self, key: str, *, limit: int, window_seconds: float) -> float | None:
        """Record one request for ``key``.

        Returns ``None`` while ``key`` is within ``limit`` requests per
        window, otherwise the seconds until it may try again.
        """

    async def close(self) -> None:
        """Release connections, if any."""
