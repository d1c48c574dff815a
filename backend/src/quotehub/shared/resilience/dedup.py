"""In-flight request coalescing (single-flight)."""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

import orjson

T = TypeVar("T")


def request_key(method: str, target: str, payload: Any = None) -> str:
    """Stable digest of method + target + payload (dict keys sorted)."""
    body = orjson.dumps(payload, option=orjson.OPT_SORT_KEYS, default=str)
    raw = method.upper().encode() + b" " + target.encode() + b" " + body
    return hashlib.sha256(raw).hexdigest()


class InFlightCoalescer(Generic[T]):
    """Concurrent callers with the same key share one underlying call.

    The shared call runs as its own task, so a caller that is cancelled or
    times out does not cancel it for the others.  The key is dropped as
    soon as the call settles; later callers start a fresh one.
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Task[T]] = {}

    def __len__(self) -> int:
        return len(self._in_flight)

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._in_flight[key] = task
            task.add_done_callback(lambda t, k=key: self._settle(k, t))
        return await asyncio.shield(task)

    def _settle(self, key: str, task: asyncio.Task[T]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # Mark the exception retrieved when every waiter has gone away.
        if not task.cancelled():
            task.exception()
