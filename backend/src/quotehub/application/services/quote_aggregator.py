"""Quote aggregation service.

Fans a validated request out to every registered carrier at once, each call
under its own deadline, and resolves the route alongside.  Carrier failures
of any kind become ``ProviderMessage`` entries; only request validation and
geocoding exhaustion abort the whole aggregation.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping
from datetime import date
from decimal import Decimal

import structlog

from quotehub.domain.entities import ProviderMessage, Quote, QuoteRequest, QuoteResult, RouteInfo
from quotehub.domain.enums import TransportMode
from quotehub.domain.exceptions import (
    CircuitOpenError,
    DomainError,
    GeocodeError,
    ProviderTimeoutError,
    ValidationError,
)
from quotehub.domain.services.badges import assign_badges
from quotehub.domain.services.pricing import apply_surcharge, price_per_km
from quotehub.ports.outbound import RouteCalculatorPort, ShippingProviderPort
from quotehub.shared.observability.metrics import PROVIDER_CALLS, PROVIDER_LATENCY

logger = structlog.get_logger(__name__)

DEFAULT_FRAGILE_SURCHARGE = Decimal("1.15")


class QuoteAggregator:
    """Collects quotes from every carrier in ``providers``.

    ``providers`` maps provider id to adapter and is built once at startup.
    """

    def __init__(
        self,
        providers: Mapping[str, ShippingProviderPort],
        *,
        route_calculator: RouteCalculatorPort | None = None,
        provider_timeout_s: float = 5.0,
        fragile_surcharge: Decimal = DEFAULT_FRAGILE_SURCHARGE,
        transport_mode: TransportMode = TransportMode.DRIVING_CAR,
        badge_assigner: Callable[[list[Quote]], list[Quote]] = assign_badges,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._providers = dict(providers)
        self._router = route_calculator
        self._timeout_s = provider_timeout_s
        self._fragile_surcharge = fragile_surcharge
        self._transport_mode = transport_mode
        self._assign_badges = badge_assigner
        self._today = today

    @property
    def providers(self) -> Mapping[str, ShippingProviderPort]:
        return self._providers

    async def aggregate(self, request: QuoteRequest) -> QuoteResult:
        request.validate(today=self._today())

        log = logger.bind(
            origin=request.origin,
            destination=request.destination,
            weight=request.weight,
            providers=len(self._providers),
        )
        log.info("quote_aggregation_started")
        start = time.monotonic()

        outcomes = await asyncio.gather(
            *(
                self._call_provider(provider_id, adapter, request)
                for provider_id, adapter in self._providers.items()
            ),
            self._resolve_route(request),
            return_exceptions=True,
        )
        *provider_outcomes, route_outcome = outcomes

        route = self._unwrap_route(route_outcome, log)

        result = QuoteResult(route_info=route)
        for outcome in provider_outcomes:
            if isinstance(outcome, Quote):
                result.quotes.append(outcome)
            elif isinstance(outcome, ProviderMessage):
                result.messages.append(outcome)
            elif isinstance(outcome, BaseException):
                # _call_provider converts every Exception, so this is a cancellation.
                raise outcome

        if route is not None:
            for quote in result.quotes:
                quote.route_info = route
                quote.price_per_km = price_per_km(quote.price, route.distance_km)

        self._assign_badges(result.quotes)

        log.info(
            "quote_aggregation_completed",
            quotes=len(result.quotes),
            failures=len(result.messages),
            has_route=route is not None,
            duration_ms=round((time.monotonic() - start) * 1000, 2),
        )
        return result

    # ── Per-provider call ────────────────────────────────────
    async def _call_provider(
        self,
        provider_id: str,
        adapter: ShippingProviderPort,
        request: QuoteRequest,
    ) -> Quote | ProviderMessage:
        name = adapter.provider_name or provider_id
        start = time.monotonic()
        try:
            quote = await asyncio.wait_for(
                adapter.calculate_shipping(request.weight, request.destination),
                timeout=self._timeout_s,
            )
        except (asyncio.TimeoutError, ProviderTimeoutError):
            message = f"{name} did not respond within {self._timeout_s:g}s"
            return self._failed(provider_id, "timeout", ProviderMessage(name, message, "PROVIDER_TIMEOUT"))
        except CircuitOpenError:
            message = f"{name} is temporarily unavailable"
            return self._failed(provider_id, "circuit_open", ProviderMessage(name, message, "CIRCUIT_OPEN"))
        except ValidationError as exc:
            message = f"{name} rejected the request: {exc.message}"
            return self._failed(provider_id, "rejected", ProviderMessage(name, message, exc.code))
        except Exception as exc:
            code = exc.code if isinstance(exc, DomainError) else "PROVIDER_ERROR"
            logger.warning(
                "provider_call_error",
                provider=provider_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            message = f"{name} is not available at this time"
            return self._failed(provider_id, "error", ProviderMessage(name, message, code))
        finally:
            PROVIDER_LATENCY.labels(provider=provider_id).observe(time.monotonic() - start)

        if request.fragile:
            quote = quote.with_price(apply_surcharge(quote.price, self._fragile_surcharge))

        PROVIDER_CALLS.labels(provider=provider_id, outcome="success").inc()
        logger.debug("provider_quote_received", provider=provider_id, price=str(quote.price))
        return quote

    def _failed(self, provider_id: str, outcome: str, message: ProviderMessage) -> ProviderMessage:
        PROVIDER_CALLS.labels(provider=provider_id, outcome=outcome).inc()
        logger.info("provider_quote_failed", provider=provider_id, outcome=outcome, reason=message.message)
        return message

    # ── Route ────────────────────────────────────────────────
    async def _resolve_route(self, request: QuoteRequest) -> RouteInfo | None:
        if self._router is None:
            return None
        return await self._router.resolve_route(
            request.origin, request.destination, self._transport_mode
        )

    @staticmethod
    def _unwrap_route(outcome: object, log: structlog.stdlib.BoundLogger) -> RouteInfo | None:
        if isinstance(outcome, GeocodeError):
            raise outcome
        if isinstance(outcome, Exception):
            log.warning("route_unavailable", error=str(outcome), error_type=type(outcome).__name__)
            return None
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome  # type: ignore[return-value]
