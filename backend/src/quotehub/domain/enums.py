"""Domain enumerations for the shipping quote service."""

from __future__ import annotations

import enum


class TransportMode(str, enum.Enum):
    """Routing profile sent to the directions provider."""

    DRIVING_CAR = "driving-car"
    DRIVING_HGV = "driving-hgv"
    FOOT_WALKING = "foot-walking"
    CYCLING_REGULAR = "cycling-regular"


class CarrierTransport(str, enum.Enum):
    """How a carrier physically moves the parcel."""

    TRUCK = "Truck"
    AIR = "Air"
    SEA = "Sea"
    RAIL = "Rail"


class DistanceCategory(str, enum.Enum):
    """Route length bucket, used for display and distance-based pricing."""

    LOCAL = "Local"
    REGIONAL = "Regional"
    NATIONAL = "National"
    LONG_DISTANCE = "Long Distance"

    @property
    def distance_factor(self) -> float:
        return _DISTANCE_FACTORS[self]

    @classmethod
    def for_distance(cls, distance_km: float) -> DistanceCategory:
        if distance_km < 100:
            return cls.LOCAL
        if distance_km < 500:
            return cls.REGIONAL
        if distance_km < 1000:
            return cls.NATIONAL
        return cls.LONG_DISTANCE


_DISTANCE_FACTORS: dict[DistanceCategory, float] = {
    DistanceCategory.LOCAL: 1.0,
    DistanceCategory.REGIONAL: 1.2,
    DistanceCategory.NATIONAL: 1.5,
    DistanceCategory.LONG_DISTANCE: 2.0,
}


class AdapterStatus(str, enum.Enum):
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"


class SystemStatus(str, enum.Enum):
    """Aggregate availability over every registered carrier."""

    ONLINE = "ONLINE"
    DEGRADED = "DEGRADED"
    OFFLINE = "OFFLINE"
