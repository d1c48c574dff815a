"""Rate-card pricing — weight tiers and destination zones.

Pure domain service: a carrier's price is

    base_price + weight × tier_rate(weight) × zone_multiplier(destination)

Tiers are half-open ``[min, max)`` brackets, so a weight sitting exactly on a
boundary is charged at the higher bracket's rate.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from quotehub.domain.exceptions import ValidationError
from quotehub.domain.services.addresses import contains_place
from quotehub.domain.value_objects import WeightTier

CENTS = Decimal("0.01")

STANDARD_TIER_BOUNDS: tuple[float, ...] = (0.0, 5.0, 20.0, 50.0, math.inf)


def money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def build_tiers(
    rates: Sequence[int | str | Decimal],
    bounds: Sequence[float] = STANDARD_TIER_BOUNDS,
) -> tuple[WeightTier, ...]:
    if len(bounds) != len(rates) + 1:
        raise ValueError("bounds must have exactly one more entry than rates")
    return tuple(
        WeightTier(bounds[i], bounds[i + 1], Decimal(str(rate)))
        for i, rate in enumerate(rates)
    )


def rate_for_weight(tiers: Sequence[WeightTier], weight: float) -> Decimal:
    if weight <= 0:
        raise ValidationError("Weight must be greater than 0", field="weight", value=weight)
    for tier in tiers:
        if tier.covers(weight):
            return tier.rate_per_kg
    return tiers[-1].rate_per_kg


# ═══════════════════════════════════════════════════════════════
#  Zones
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class ZoneTable:
    """Maps destination cities to delivery zones (1 = cheapest)."""

    zones: Mapping[str, int]
    default_zone: int = 1

    def zone_for(self, destination: str) -> int:
        # Longest names first so multi-word cities are matched whole.
        for city in sorted(self.zones, key=len, reverse=True):
            if contains_place(destination, city):
                return self.zones[city]
        return self.default_zone


DEFAULT_ZONES = ZoneTable(
    zones={
        "Bogotá": 1,
        "Medellín": 2,
        "Cali": 3,
        "Barranquilla": 4,
        "Cartagena": 4,
        "Leticia": 5,
    }
)


# ═══════════════════════════════════════════════════════════════
#  Rate card
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class RateCard:
    base_price: Decimal
    tiers: tuple[WeightTier, ...]
    zone_multipliers: Mapping[int, Decimal]
    currency: str = "COP"
    zones: ZoneTable = field(default=DEFAULT_ZONES)

    def multiplier_for(self, destination: str) -> Decimal:
        zone = self.zones.zone_for(destination)
        return self.zone_multipliers.get(zone, Decimal("1"))

    def price_for(self, weight: float, destination: str) -> Decimal:
        rate = rate_for_weight(self.tiers, weight)
        weight_cost = Decimal(str(weight)) * rate
        return money(self.base_price + weight_cost * self.multiplier_for(destination))


def multipliers(*values: str) -> dict[int, Decimal]:
    """``multipliers("1.0", "1.15")`` → ``{1: Decimal("1.0"), 2: Decimal("1.15")}``."""
    return {zone: Decimal(v) for zone, v in enumerate(values, start=1)}


def price_per_km(price: Decimal, distance_km: float) -> Decimal | None:
    if distance_km <= 0:
        return None
    return money(price / Decimal(str(distance_km)))


def apply_surcharge(price: Decimal, factor: Decimal) -> Decimal:
    return money(price * factor)
