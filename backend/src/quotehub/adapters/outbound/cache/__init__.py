"""Route cache adapters implementing RouteCachePort, plus the rate-limit counters.

``MemoryRouteCache`` keeps entries in-process with an injectable clock;
``RedisRouteCache`` shares them across workers.  Both expire an entry at
exactly ``inserted_at + ttl``.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import orjson
import redis.asyncio as redis
import structlog

from quotehub.adapters.outbound.cache.counters import MemoryRequestCounter, RedisRequestCounter
from quotehub.domain.entities import RouteInfo, RoutePoint
from quotehub.domain.enums import TransportMode
from quotehub.domain.exceptions import CacheError
from quotehub.ports.outbound import RouteCachePort

logger = structlog.get_logger(__name__)

__all__ = [
    "CacheEntry",
    "MemoryRequestCounter",
    "MemoryRouteCache",
    "RedisRequestCounter",
    "RedisRouteCache",
    "route_from_dict",
    "route_to_dict",
]


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    value: RouteInfo
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class MemoryRouteCache(RouteCachePort):
    """In-process TTL cache."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._clock = clock
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> RouteInfo | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    async def set(self, key: str, value: RouteInfo, *, ttl_seconds: float) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(key, value, self._clock() + ttl_seconds)

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class RedisRouteCache(RouteCachePort):
    """Redis-backed TTL cache; values are JSON via orjson."""

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        *,
        key_prefix: str = "quotehub:route:",
        client: redis.Redis | None = None,
    ) -> None:
        self._client = client or redis.Redis.from_url(url, decode_responses=False)
        self._prefix = key_prefix

    async def get(self, key: str) -> RouteInfo | None:
        try:
            raw = await self._client.get(self._prefix + key)
        except redis.RedisError as exc:
            logger.error("redis_route_get_error", key=key, error=str(exc))
            raise CacheError(f"Route cache read failed: {exc}") from exc
        if raw is None:
            return None
        try:
            return route_from_dict(orjson.loads(raw))
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise CacheError(f"Corrupt route cache entry for {key!r}") from exc

    async def set(self, key: str, value: RouteInfo, *, ttl_seconds: float) -> None:
        try:
            await self._client.set(
                self._prefix + key,
                orjson.dumps(route_to_dict(value)),
                px=max(1, int(ttl_seconds * 1000)),
            )
        except redis.RedisError as exc:
            logger.error("redis_route_set_error", key=key, error=str(exc))
            raise CacheError(f"Route cache write failed: {exc}") from exc

    async def clear(self) -> None:
        try:
            batch: list[Any] = []
            async for name in self._client.scan_iter(match=f"{self._prefix}*", count=500):
                batch.append(name)
                if len(batch) >= 500:
                    await self._client.delete(*batch)
                    batch.clear()
            if batch:
                await self._client.delete(*batch)
        except redis.RedisError as exc:
            logger.error("redis_route_clear_error", error=str(exc))
            raise CacheError(f"Route cache clear failed: {exc}") from exc

    async def close(self) -> None:
        await self._client.aclose()

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except redis.RedisError:
            return False


# ── Serialisation ────────────────────────────────────────────
def route_to_dict(route: RouteInfo) -> dict[str, Any]:
    return {
        "distance_meters": route.distance_meters,
        "duration_seconds": route.duration_seconds,
        "origin": {"address": route.origin.address, "lat": route.origin.lat, "lng": route.origin.lng},
        "destination": {
            "address": route.destination.address,
            "lat": route.destination.lat,
            "lng": route.destination.lng,
        },
        "route_coordinates": [list(p) for p in route.route_coordinates],
        "transport_mode": route.transport_mode.value,
    }


def route_from_dict(data: dict[str, Any]) -> RouteInfo:
    return RouteInfo(
        distance_meters=float(data["distance_meters"]),
        duration_seconds=float(data["duration_seconds"]),
        origin=RoutePoint(**data["origin"]),
        destination=RoutePoint(**data["destination"]),
        route_coordinates=tuple((float(lat), float(lng)) for lat, lng in data["route_coordinates"]),
        transport_mode=TransportMode(data["transport_mode"]),
    )
