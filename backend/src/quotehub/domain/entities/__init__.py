"""Domain entities for shipping quotes and routes.

``QuoteRequest``, ``ProviderMessage`` and ``RouteInfo`` are immutable once
built.  ``Quote`` is created by a carrier adapter and afterwards only its
badge flags (and the route attachment made by the aggregator) change.
"""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from quotehub.domain.enums import (
    AdapterStatus,
    DistanceCategory,
    SystemStatus,
    TransportMode,
)
from quotehub.domain.exceptions import ValidationError

MIN_WEIGHT_KG = 0.1
MAX_WEIGHT_KG = 1000.0
MAX_PICKUP_DAYS_AHEAD = 30


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════
#  QuoteRequest
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class QuoteRequest:
    """What the customer asked for.  Text fields are stored trimmed."""

    origin: str
    destination: str
    weight: float
    pickup_date: date
    fragile: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.origin, str):
            object.__setattr__(self, "origin", self.origin.strip())
        if isinstance(self.destination, str):
            object.__setattr__(self, "destination", self.destination.strip())

    def validate(self, *, today: date) -> None:
        """Raise ``ValidationError`` on the first rule the request breaks."""
        if not isinstance(self.origin, str) or not self.origin:
            raise ValidationError("Origin is required", field="origin", value=self.origin)
        if not isinstance(self.destination, str) or not self.destination:
            raise ValidationError(
                "Destination is required", field="destination", value=self.destination
            )

        weight = self.weight
        if isinstance(weight, bool) or not isinstance(weight, (int, float)):
            raise ValidationError("Weight must be a number", field="weight", value=weight)
        if not math.isfinite(weight):
            raise ValidationError("Weight must be a finite number", field="weight", value=weight)
        if weight < MIN_WEIGHT_KG:
            raise ValidationError(
                f"Weight must be at least {MIN_WEIGHT_KG} kg", field="weight", value=weight
            )
        if weight > MAX_WEIGHT_KG:
            raise ValidationError(
                f"Weight must not exceed {MAX_WEIGHT_KG:g} kg", field="weight", value=weight
            )

        pickup = self.pickup_date
        if isinstance(pickup, datetime):
            pickup = pickup.date()
        if not isinstance(pickup, date):
            raise ValidationError(
                "Pickup date must be a valid date", field="pickupDate", value=pickup
            )
        if pickup < today:
            raise ValidationError(
                "Pickup date cannot be in the past", field="pickupDate", value=pickup.isoformat()
            )
        if pickup > today + timedelta(days=MAX_PICKUP_DAYS_AHEAD):
            raise ValidationError(
                f"Pickup date cannot be more than {MAX_PICKUP_DAYS_AHEAD} days ahead",
                field="pickupDate",
                value=pickup.isoformat(),
            )


# ═══════════════════════════════════════════════════════════════
#  Route
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class RoutePoint:
    address: str
    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class RouteInfo:
    """A resolved route.  ``route_coordinates`` are ``(lat, lng)`` pairs."""

    distance_meters: float
    duration_seconds: float
    origin: RoutePoint
    destination: RoutePoint
    route_coordinates: tuple[tuple[float, float], ...]
    transport_mode: TransportMode = TransportMode.DRIVING_CAR

    @property
    def distance_km(self) -> float:
        return self.distance_meters / 1000

    @property
    def duration_formatted(self) -> str:
        hours = int(self.duration_seconds // 3600)
        minutes = int((self.duration_seconds % 3600) // 60)
        if hours == 0:
            return f"{minutes} min"
        return f"{hours}h {minutes}min"

    @property
    def category(self) -> DistanceCategory:
        return DistanceCategory.for_distance(self.distance_km)

    @property
    def distance_factor(self) -> float:
        return self.category.distance_factor


# ═══════════════════════════════════════════════════════════════
#  Quote
# ═══════════════════════════════════════════════════════════════
@dataclass(slots=True)
class Quote:
    """A carrier's offer for one request."""

    provider_id: str
    provider_name: str
    price: Decimal
    currency: str
    min_days: int
    max_days: int
    transport_mode: str
    is_cheapest: bool = False
    is_fastest: bool = False
    route_info: RouteInfo | None = None
    price_per_km: Decimal | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.price, Decimal):
            self.price = Decimal(str(self.price))
        if not self.provider_id or not self.provider_id.strip():
            raise ValidationError("Provider ID is required", field="providerId")
        if not self.provider_name or not self.provider_name.strip():
            raise ValidationError("Provider name is required", field="providerName")
        if not self.price.is_finite() or self.price <= 0:
            raise ValidationError("Price must be greater than 0", field="price", value=self.price)
        if self.min_days < 0:
            raise ValidationError(
                "Min days must be greater than or equal to 0", field="minDays", value=self.min_days
            )
        if self.max_days < self.min_days:
            raise ValidationError(
                "Max days must be greater than or equal to min days",
                field="maxDays",
                value=self.max_days,
            )

    @property
    def estimated_days(self) -> int:
        # Midpoint, halves rounded up.
        return (self.min_days + self.max_days + 1) // 2

    def with_price(self, price: Decimal) -> Quote:
        return dataclasses.replace(self, price=price)


@dataclass(frozen=True, slots=True)
class ProviderMessage:
    """Why a provider did not contribute a quote."""

    provider: str
    message: str
    error: str | None = None


@dataclass(slots=True)
class QuoteResult:
    quotes: list[Quote] = field(default_factory=list)
    messages: list[ProviderMessage] = field(default_factory=list)
    route_info: RouteInfo | None = None


# ═══════════════════════════════════════════════════════════════
#  Provider status
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class AdapterHealth:
    provider_id: str
    provider_name: str
    status: AdapterStatus
    response_time_ms: float | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class SystemHealth:
    status: SystemStatus
    adapters: tuple[AdapterHealth, ...]
    checked_at: datetime = field(default_factory=_utcnow)

    @property
    def online_count(self) -> int:
        return sum(1 for a in self.adapters if a.status == AdapterStatus.ONLINE)
