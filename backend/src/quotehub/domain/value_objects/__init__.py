"""Domain value objects — immutable, self-validating types.

Value objects have *no identity*; two instances with equal fields are equal.
They enforce invariants at construction time so the rest of the domain can
trust their contents without re-checking.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal


# ═══════════════════════════════════════════════════════════════
#  Coordinates
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class Coordinate:
    """A WGS84 point in (latitude, longitude) order."""

    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.lat) and math.isfinite(self.lng)):
            raise ValueError(f"Coordinate must be finite: ({self.lat}, {self.lng})")
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude out of range: {self.lat}")
        if not -180.0 <= self.lng <= 180.0:
            raise ValueError(f"Longitude out of range: {self.lng}")

    @classmethod
    def from_lng_lat(cls, pair: list[float] | tuple[float, float]) -> Coordinate:
        """Build from the GeoJSON ``[lng, lat]`` ordering used by routing APIs."""
        lng, lat = pair[0], pair[1]
        return cls(lat=float(lat), lng=float(lng))

    def as_lng_lat(self) -> list[float]:
        return [self.lng, self.lat]

    def as_lat_lng(self) -> list[float]:
        return [self.lat, self.lng]


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Axis-aligned lat/lng rectangle, inclusive on every edge."""

    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def __post_init__(self) -> None:
        if self.min_lat >= self.max_lat:
            raise ValueError("min_lat must be less than max_lat")
        if self.min_lng >= self.max_lng:
            raise ValueError("min_lng must be less than max_lng")

    def contains(self, point: Coordinate) -> bool:
        return (
            self.min_lat <= point.lat <= self.max_lat
            and self.min_lng <= point.lng <= self.max_lng
        )


# ═══════════════════════════════════════════════════════════════
#  Service region
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class ServiceRegion:
    """Where addresses are expected to resolve.

    ``known_cities`` holds canonical city names (accents included); matching
    against free text is accent- and case-insensitive.  ``departments`` are
    administrative names stripped from addresses during normalisation.
    """

    country: str
    bounds: BoundingBox
    known_cities: tuple[str, ...] = ()
    departments: tuple[str, ...] = ()

    @property
    def primary_city(self) -> str:
        return self.known_cities[0] if self.known_cities else self.country

    def qualify(self, place: str) -> str:
        """Append the country suffix, e.g. ``"Cali"`` → ``"Cali, Colombia"``."""
        return f"{place}, {self.country}"


COLOMBIA = ServiceRegion(
    country="Colombia",
    bounds=BoundingBox(min_lat=-4.5, max_lat=13.5, min_lng=-79.5, max_lng=-66.5),
    known_cities=(
        "Bogotá",
        "Medellín",
        "Cali",
        "Barranquilla",
        "Cartagena",
        "Cúcuta",
        "Bucaramanga",
        "Pereira",
        "Santa Marta",
        "Ibagué",
        "Pasto",
        "Manizales",
        "Neiva",
        "Villavicencio",
        "Leticia",
    ),
    departments=("Valle del Cauca", "Antioquia", "Cundinamarca"),
)


# ═══════════════════════════════════════════════════════════════
#  Pricing
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class WeightTier:
    """Per-kg rate applied to weights in ``[min_weight, max_weight)``."""

    min_weight: float
    max_weight: float
    rate_per_kg: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.rate_per_kg, Decimal):
            object.__setattr__(self, "rate_per_kg", Decimal(str(self.rate_per_kg)))
        if self.min_weight < 0 or self.max_weight <= self.min_weight:
            raise ValueError(
                f"Invalid tier bounds [{self.min_weight}, {self.max_weight})"
            )

    def covers(self, weight: float) -> bool:
        return self.min_weight <= weight < self.max_weight
