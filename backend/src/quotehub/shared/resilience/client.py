"""ResilientClient — circuit breaker + retry + deduplication for one dependency.

Call path::

    call(fn, key)
      └─ coalesce on key (if given)
           └─ retry loop (tenacity, retryable outcomes only)
                └─ breaker.acquire()  → CircuitOpenError, never retried
                     └─ asyncio.wait_for(fn(), timeout) → ProviderTimeoutError
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx
import structlog

from quotehub.domain.exceptions import ProviderTimeoutError
from quotehub.shared.resilience.circuit_breaker import CircuitBreaker
from quotehub.shared.resilience.dedup import InFlightCoalescer, request_key
from quotehub.shared.resilience.retry import RetryPolicy, build_retrying, is_retryable

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ResilientClient:
    """Wraps every outbound call to a single remote dependency."""

    def __init__(
        self,
        name: str,
        *,
        breaker: CircuitBreaker | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout_s: float = 10.0,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._name = name
        self._breaker = breaker or CircuitBreaker(name)
        self._retry_policy = retry_policy or RetryPolicy()
        self._timeout_s = timeout_s
        self._http = http
        self._in_flight: InFlightCoalescer[Any] = InFlightCoalescer()

    @property
    def name(self) -> str:
        return self._name

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def timeout_s(self) -> float:
        return self._timeout_s

    async def call(
        self,
        fn: Callable[[], Awaitable[T]],
        *,
        key: str | None = None,
    ) -> T:
        """Run ``fn`` under the full resilience stack.

        Calls sharing a ``key`` while one is in flight get that call's result.
        """
        if key is None:
            return await self._execute(fn)
        return await self._in_flight.run(key, lambda: self._execute(fn))

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Issue an HTTP request; non-2xx responses raise ``httpx.HTTPStatusError``."""
        if self._http is None:
            raise RuntimeError(f"ResilientClient {self._name!r} has no HTTP client")
        http = self._http

        async def _send() -> httpx.Response:
            response = await http.request(method, url, params=params, json=json, headers=headers)
            response.raise_for_status()
            return response

        key = request_key(method, url, {"params": params, "json": json})
        return await self.call(_send, key=key)

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()

    # ── Internals ────────────────────────────────────────────
    async def _execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        async for attempt in build_retrying(self._retry_policy, self._name):
            with attempt:
                return await self._attempt(fn)
        raise AssertionError("unreachable: tenacity reraises on exhaustion")

    async def _attempt(self, fn: Callable[[], Awaitable[T]]) -> T:
        permit = self._breaker.acquire()
        try:
            result = await asyncio.wait_for(fn(), timeout=self._timeout_s)
        except asyncio.TimeoutError as exc:
            self._breaker.record_failure(permit)
            raise ProviderTimeoutError(self._name, self._timeout_s) from exc
        except Exception as exc:
            if is_retryable(exc):
                self._breaker.record_failure(permit)
            else:
                self._breaker.release(permit)
            logger.debug("outbound_call_failed", dependency=self._name, error=str(exc))
            raise
        except BaseException:
            self._breaker.release(permit)
            raise
        self._breaker.record_success(permit)
        return result
