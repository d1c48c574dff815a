"""Carrier adapters implementing ShippingProviderPort.

Supported:
    - fedex-ground   — FedEx Ground rate card (Truck, 2-4 days)
    - dhl-express    — DHL Express rate card (Air, 3-5 days)
    - local-courier  — Local Courier rate card (Truck, 4-7 days)
    - any number of remote carriers reached over HTTP
"""

from quotehub.adapters.outbound.carriers.base import BaseCarrierAdapter
from quotehub.adapters.outbound.carriers.http import HttpCarrierAdapter
from quotehub.adapters.outbound.carriers.rate_card import (
    DHLExpressAdapter,
    FedExGroundAdapter,
    LocalCourierAdapter,
    RateCardCarrierAdapter,
)

RATE_CARD_CARRIERS: tuple[type[RateCardCarrierAdapter], ...] = (
    FedExGroundAdapter,
    DHLExpressAdapter,
    LocalCourierAdapter,
)

__all__ = [
    "BaseCarrierAdapter",
    "DHLExpressAdapter",
    "FedExGroundAdapter",
    "HttpCarrierAdapter",
    "LocalCourierAdapter",
    "RATE_CARD_CARRIERS",
    "RateCardCarrierAdapter",
]
