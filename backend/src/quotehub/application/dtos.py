"""Data Transfer Objects — Pydantic models for API boundaries.

DTOs handle serialisation, validation, and documentation.  They live in the
application layer because they are *not* domain objects — they adapt between
the external world and the domain.  Wire names are camelCase.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from quotehub.domain.entities import (
    AdapterHealth,
    ProviderMessage,
    Quote,
    QuoteRequest,
    QuoteResult,
    RouteInfo,
    SystemHealth,
)
from quotehub.shared.resilience import CircuitSnapshot


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ═══════════════════════════════════════════════════════════════
#  Common
# ═══════════════════════════════════════════════════════════════
class ErrorResponse(BaseModel):
    code: str
    message: str
    field: str | None = None


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    environment: str = "development"
    services: dict[str, str] = Field(default_factory=dict)


class CacheClearedResponse(BaseModel):
    status: str = "cleared"


# ═══════════════════════════════════════════════════════════════
#  Routes
# ═══════════════════════════════════════════════════════════════
class RoutePointOut(CamelModel):
    address: str
    lat: float
    lng: float


class RouteInfoOut(CamelModel):
    distance_km: float
    distance_meters: float
    duration_seconds: float
    duration_formatted: str
    category: str
    distance_factor: float
    origin: RoutePointOut
    destination: RoutePointOut
    route_coordinates: list[list[float]]
    transport_mode: str

    @classmethod
    def from_domain(cls, route: RouteInfo) -> RouteInfoOut:
        return cls(
            distance_km=round(route.distance_km, 2),
            distance_meters=route.distance_meters,
            duration_seconds=route.duration_seconds,
            duration_formatted=route.duration_formatted,
            category=route.category.value,
            distance_factor=route.distance_factor,
            origin=RoutePointOut(
                address=route.origin.address, lat=route.origin.lat, lng=route.origin.lng
            ),
            destination=RoutePointOut(
                address=route.destination.address,
                lat=route.destination.lat,
                lng=route.destination.lng,
            ),
            route_coordinates=[[lat, lng] for lat, lng in route.route_coordinates],
            transport_mode=route.transport_mode.value,
        )


# ═══════════════════════════════════════════════════════════════
#  Quotes
# ═══════════════════════════════════════════════════════════════
class QuoteRequestBody(CamelModel):
    origin: str = Field(..., examples=["Bogotá"])
    destination: str = Field(..., examples=["Calle 10 # 5-20, Cali, Valle del Cauca"])
    weight: float = Field(..., examples=[4.5])
    pickup_date: date
    fragile: bool = False

    @field_validator("pickup_date", mode="before")
    @classmethod
    def _accept_timestamps(cls, v: Any) -> Any:
        # Browsers send full ISO timestamps; only the calendar date matters.
        if isinstance(v, str) and "T" in v:
            return datetime.fromisoformat(v.replace("Z", "+00:00")).date()
        if isinstance(v, datetime):
            return v.date()
        return v

    def to_domain(self) -> QuoteRequest:
        return QuoteRequest(
            origin=self.origin,
            destination=self.destination,
            weight=self.weight,
            pickup_date=self.pickup_date,
            fragile=self.fragile,
        )


class QuoteOut(CamelModel):
    provider_id: str
    provider_name: str
    price: float
    currency: str
    min_days: int
    max_days: int
    estimated_days: int
    transport_mode: str
    is_cheapest: bool
    is_fastest: bool
    route_info: RouteInfoOut | None = None
    price_per_km: float | None = None

    @classmethod
    def from_domain(cls, quote: Quote, route: RouteInfoOut | None = None) -> QuoteOut:
        return cls(
            provider_id=quote.provider_id,
            provider_name=quote.provider_name,
            price=float(quote.price),
            currency=quote.currency,
            min_days=quote.min_days,
            max_days=quote.max_days,
            estimated_days=quote.estimated_days,
            transport_mode=quote.transport_mode,
            is_cheapest=quote.is_cheapest,
            is_fastest=quote.is_fastest,
            route_info=route,
            price_per_km=float(quote.price_per_km) if quote.price_per_km is not None else None,
        )


class ProviderMessageOut(CamelModel):
    provider: str
    message: str
    error: str | None = None

    @classmethod
    def from_domain(cls, message: ProviderMessage) -> ProviderMessageOut:
        return cls(provider=message.provider, message=message.message, error=message.error)


class QuoteResponse(CamelModel):
    quotes: list[QuoteOut]
    messages: list[ProviderMessageOut]
    route_info: RouteInfoOut | None = None

    @classmethod
    def from_domain(cls, result: QuoteResult) -> QuoteResponse:
        # One RouteInfoOut shared by every quote, mirroring the domain object.
        route = RouteInfoOut.from_domain(result.route_info) if result.route_info else None
        return cls(
            quotes=[
                QuoteOut.from_domain(q, route if q.route_info is not None else None)
                for q in result.quotes
            ],
            messages=[ProviderMessageOut.from_domain(m) for m in result.messages],
            route_info=route,
        )


# ═══════════════════════════════════════════════════════════════
#  Provider status
# ═══════════════════════════════════════════════════════════════
class AdapterStatusOut(CamelModel):
    provider_id: str
    provider_name: str
    status: str
    response_time_ms: float | None = None
    error: str | None = None

    @classmethod
    def from_domain(cls, health: AdapterHealth) -> AdapterStatusOut:
        return cls(
            provider_id=health.provider_id,
            provider_name=health.provider_name,
            status=health.status.value,
            response_time_ms=health.response_time_ms,
            error=health.error,
        )


class AdaptersStatusResponse(CamelModel):
    status: str
    online: int
    total: int
    adapters: list[AdapterStatusOut]
    checked_at: datetime

    @classmethod
    def from_domain(cls, health: SystemHealth) -> AdaptersStatusResponse:
        return cls(
            status=health.status.value,
            online=health.online_count,
            total=len(health.adapters),
            adapters=[AdapterStatusOut.from_domain(a) for a in health.adapters],
            checked_at=health.checked_at,
        )


class CircuitOut(CamelModel):
    name: str
    state: str
    consecutive_failures: int
    consecutive_successes: int
    half_open_in_flight: int

    @classmethod
    def from_domain(cls, snapshot: CircuitSnapshot) -> CircuitOut:
        return cls(
            name=snapshot.name,
            state=snapshot.state.value,
            consecutive_failures=snapshot.consecutive_failures,
            consecutive_successes=snapshot.consecutive_successes,
            half_open_in_flight=snapshot.half_open_in_flight,
        )
