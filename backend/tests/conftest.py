"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import date, timedelta
from decimal import Decimal

import pytest

from quotehub.adapters.outbound.carriers import BaseCarrierAdapter
from quotehub.domain.entities import Quote, QuoteRequest
from quotehub.domain.enums import TransportMode
from quotehub.domain.value_objects import Coordinate
from quotehub.ports.outbound import DirectionsPort, DirectionsResult, GeocodingPort

BOGOTA = Coordinate(lat=4.711, lng=-74.0721)
CALI = Coordinate(lat=3.4516, lng=-76.5225)
MADRID = Coordinate(lat=40.4168, lng=-3.7038)


# ═══════════════════════════════════════════════════════════════
#  Test doubles
# ═══════════════════════════════════════════════════════════════
class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCarrier(BaseCarrierAdapter):
    """Carrier with a fixed price, optional delay and optional failure."""

    def __init__(
        self,
        provider_id: str,
        *,
        price: str = "50000",
        min_days: int = 2,
        max_days: int = 4,
        delay_s: float = 0.0,
        error: Exception | None = None,
        name: str | None = None,
    ) -> None:
        self.provider_id = provider_id
        self.provider_name = name or provider_id.title()
        self.price = Decimal(price)
        self.min_days = min_days
        self.max_days = max_days
        self.delay_s = delay_s
        self.error = error
        self.calls = 0

    async def _quote(self, weight: float, destination: str) -> Quote:
        self.calls += 1
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return Quote(
            provider_id=self.provider_id,
            provider_name=self.provider_name,
            price=self.price,
            currency="COP",
            min_days=self.min_days,
            max_days=self.max_days,
            transport_mode="Truck",
        )


class FakeGeocoder(GeocodingPort):
    """Answers from a query → candidates table; unknown queries return []."""

    def __init__(self, table: dict[str, list[Coordinate]] | None = None) -> None:
        self.table = dict(table or {})
        self.queries: list[str] = []

    async def search(self, text: str) -> list[Coordinate]:
        self.queries.append(text)
        await asyncio.sleep(0)
        return list(self.table.get(text, []))


class FakeDirections(DirectionsPort):
    def __init__(self, result: DirectionsResult) -> None:
        self.result = result
        self.calls: list[tuple[Coordinate, Coordinate, TransportMode]] = []

    async def directions(
        self,
        origin: Coordinate,
        destination: Coordinate,
        mode: TransportMode,
    ) -> DirectionsResult:
        self.calls.append((origin, destination, mode))
        await asyncio.sleep(0)
        return self.result


# ═══════════════════════════════════════════════════════════════
#  Fixtures
# ═══════════════════════════════════════════════════════════════
@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_carrier() -> Callable[..., FakeCarrier]:
    return FakeCarrier


@pytest.fixture
def geocoder() -> FakeGeocoder:
    return FakeGeocoder(
        {
            "Bogota, Colombia": [BOGOTA],
            "Cali, Colombia": [CALI],
            "Bogota": [BOGOTA],
            "Cali": [CALI],
            "BOGOTA": [BOGOTA],
            "CALI": [CALI],
        }
    )


@pytest.fixture
def directions() -> FakeDirections:
    return FakeDirections(
        DirectionsResult(
            distance_meters=450000.0,
            duration_seconds=18000.0,
            geometry=[[-74.0721, 4.711], [-75.5, 4.0], [-76.5225, 3.4516]],
        )
    )


@pytest.fixture
def today() -> date:
    return date(2026, 3, 2)


@pytest.fixture
def sample_request(today: date) -> QuoteRequest:
    return QuoteRequest(
        origin="Bogota",
        destination="Cali",
        weight=4.5,
        pickup_date=today + timedelta(days=1),
    )
