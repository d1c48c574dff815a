"""Request counters implementing RequestCounterPort.

``MemoryRequestCounter`` is a per-process sliding window.
``RedisRequestCounter`` is a fixed window shared by every worker
(``INCR`` plus ``PEXPIRE`` on the first hit).
"""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable

import redis.asyncio as redis
import structlog

from quotehub.ports.outbound import RequestCounterPort

logger = structlog.get_logger(__name__)


class MemoryRequestCounter(RequestCounterPort):
    """Sliding window per key.

    Keys whose window has fully elapsed are dropped, at the latest one
    window after their last hit, so the table only holds active clients.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._hits: dict[str, deque[float]] = {}
        self._clock = clock
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._hits)

    async def hit(self, key: str, *, limit: int, window_seconds: float) -> float | None:
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= window_seconds:
                self._sweep(now, window_seconds)

            hits = self._hits.setdefault(key, deque())
            while hits and now - hits[0] >= window_seconds:
                hits.popleft()
            if len(hits) >= limit:
                return window_seconds - (now - hits[0])
            hits.append(now)
            return None

    def _sweep(self, now: float, window_seconds: float) -> None:
        stale = [k for k, hits in self._hits.items() if not hits or now - hits[-1] >= window_seconds]
        for key in stale:
            del self._hits[key]
        self._last_sweep = now
        if stale:
            logger.debug("rate_limit_sweep", dropped=len(stale), tracked=len(self._hits))


class RedisRequestCounter(RequestCounterPort):
    """Fixed-window counter in Redis; fails open when Redis is unreachable."""

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        *,
        key_prefix: str = "quotehub:ratelimit:",
        client: redis.Redis | None = None,
    ) -> None:
        self._client = client or redis.Redis.from_url(url, decode_responses=False)
        self._prefix = key_prefix

    async def hit(self, key: str, *, limit: int, window_seconds: float) -> float | None:
        name = self._prefix + key
        window_ms = max(1, int(window_seconds * 1000))
        try:
            count = await self._client.incr(name)
            if count == 1:
                await self._client.pexpire(name, window_ms)
            if count <= limit:
                return None
            ttl_ms = await self._client.pttl(name)
        except redis.RedisError as exc:
            logger.warning("rate_limit_redis_unavailable", key=key, error=str(exc))
            return None
        return ttl_ms / 1000 if ttl_ms > 0 else window_seconds

    async def close(self) -> None:
        await self._client.aclose()
