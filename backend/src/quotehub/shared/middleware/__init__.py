"""FastAPI middleware stack — request ID, logging, metrics, rate limiting."""

from __future__ import annotations

import time
import uuid
from collections.abc import Awaitable, Callable, Iterable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from quotehub.ports.outbound import RequestCounterPort
from quotehub.shared.observability.metrics import HTTP_REQUEST_DURATION, HTTP_REQUESTS_TOTAL

logger = structlog.get_logger(__name__)


def _route_template(request: Request) -> str:
    """``/api/v1/admin/circuits/{name}/reset`` rather than the concrete path."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Binds ``request_id`` into the log context and echoes it as X-Request-ID."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """One ``http_request`` event per request; 5xx responses log at error."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        start = time.monotonic()
        response = await call_next(request)
        elapsed_ms = round((time.monotonic() - start) * 1000, 2)

        log = logger.error if response.status_code >= 500 else logger.info
        log(
            "http_request",
            method=request.method,
            path=request.url.path,
            route=_route_template(request),
            status=response.status_code,
            duration_ms=elapsed_ms,
            client=request.client.host if request.client else "unknown",
        )
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Prometheus request counters, labelled by route template."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        start = time.monotonic()
        response = await call_next(request)
        elapsed = time.monotonic() - start

        endpoint = _route_template(request)
        HTTP_REQUESTS_TOTAL.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()
        HTTP_REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(elapsed)
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-client request limiter for selected ``POST`` paths.

    Counting goes through the container's ``RequestCounterPort``: in-process
    by default, shared across workers when Redis backs the cache.
    """

    def __init__(  # type: ignore[override]
        self,
        app: object,
        *,
        paths: Iterable[str],
        max_requests: int = 20,
        window_seconds: float = 300.0,
    ) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._paths = frozenset(paths)
        self._max = max_requests
        self._window = window_seconds

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if request.method != "POST" or request.url.path not in self._paths:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        counter: RequestCounterPort = request.app.state.container.request_counter
        retry_after = await counter.hit(client_ip, limit=self._max, window_seconds=self._window)
        if retry_after is not None:
            logger.warning("rate_limited", client_ip=client_ip, path=request.url.path)
            return Response(
                content='{"code":"RATE_LIMITED","message":"Too many quote requests, please try again later"}',
                status_code=429,
                media_type="application/json",
                headers={"Retry-After": str(max(1, int(retry_after)))},
            )
        return await call_next(request)
