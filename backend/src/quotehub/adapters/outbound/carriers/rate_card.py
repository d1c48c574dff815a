"""Rate-card carriers — priced locally from a published tariff.

Each carrier is a base price, four per-kg weight tiers and one multiplier per
destination zone.  All prices are in COP.
"""

from __future__ import annotations

from decimal import Decimal

from quotehub.adapters.outbound.carriers.base import BaseCarrierAdapter
from quotehub.domain.entities import Quote
from quotehub.domain.enums import CarrierTransport
from quotehub.domain.services.pricing import RateCard, build_tiers, multipliers


class RateCardCarrierAdapter(BaseCarrierAdapter):
    rate_card: RateCard
    min_days: int
    max_days: int
    transport: CarrierTransport = CarrierTransport.TRUCK

    async def _quote(self, weight: float, destination: str) -> Quote:
        return Quote(
            provider_id=self.provider_id,
            provider_name=self.provider_name,
            price=self.rate_card.price_for(weight, destination),
            currency=self.rate_card.currency,
            min_days=self.min_days,
            max_days=self.max_days,
            transport_mode=self.transport.value,
        )


class FedExGroundAdapter(RateCardCarrierAdapter):
    provider_id = "fedex-ground"
    provider_name = "FedEx Ground"
    min_days = 2
    max_days = 4
    transport = CarrierTransport.TRUCK
    rate_card = RateCard(
        base_price=Decimal("25000"),
        tiers=build_tiers([15000, 12000, 10000, 8500]),
        zone_multipliers=multipliers("1.0", "1.15", "1.25", "1.35", "1.6"),
    )


class DHLExpressAdapter(RateCardCarrierAdapter):
    provider_id = "dhl-express"
    provider_name = "DHL Express"
    min_days = 3
    max_days = 5
    transport = CarrierTransport.AIR
    rate_card = RateCard(
        base_price=Decimal("20000"),
        tiers=build_tiers([13000, 10500, 9000, 7800]),
        zone_multipliers=multipliers("1.0", "1.1", "1.2", "1.3", "1.5"),
    )


class LocalCourierAdapter(RateCardCarrierAdapter):
    # Cheap in the outer zones, expensive in the capital.
    provider_id = "local-courier"
    provider_name = "Local Courier"
    min_days = 4
    max_days = 7
    transport = CarrierTransport.TRUCK
    rate_card = RateCard(
        base_price=Decimal("15000"),
        tiers=build_tiers([9000, 7500, 6500, 5800]),
        zone_multipliers=multipliers("1.8", "1.4", "1.12", "1.5", "1.6"),
    )
