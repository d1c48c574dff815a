"""Tests for domain value objects."""

from __future__ import annotations

from decimal import Decimal

import pytest

from quotehub.domain.enums import DistanceCategory
from quotehub.domain.value_objects import COLOMBIA, BoundingBox, Coordinate, WeightTier


class TestCoordinate:
    def test_valid(self) -> None:
        c = Coordinate(lat=4.711, lng=-74.0721)
        assert c.as_lat_lng() == [4.711, -74.0721]
        assert c.as_lng_lat() == [-74.0721, 4.711]

    def test_from_lng_lat_flips_order(self) -> None:
        assert Coordinate.from_lng_lat([-76.5225, 3.4516]) == Coordinate(lat=3.4516, lng=-76.5225)

    @pytest.mark.parametrize("lat,lng", [(91, 0), (-91, 0), (0, 181), (0, -181), (float("nan"), 0)])
    def test_out_of_range(self, lat: float, lng: float) -> None:
        with pytest.raises(ValueError):
            Coordinate(lat=lat, lng=lng)

    def test_is_hashable(self) -> None:
        assert len({Coordinate(1, 2), Coordinate(1, 2)}) == 1


class TestBoundingBox:
    def test_contains_is_inclusive(self) -> None:
        box = BoundingBox(min_lat=0, max_lat=10, min_lng=0, max_lng=10)
        assert box.contains(Coordinate(0, 0))
        assert box.contains(Coordinate(10, 10))
        assert not box.contains(Coordinate(10.01, 5))

    def test_inverted_bounds_rejected(self) -> None:
        with pytest.raises(ValueError):
            BoundingBox(min_lat=5, max_lat=1, min_lng=0, max_lng=1)


class TestServiceRegion:
    def test_colombia_bounds(self) -> None:
        assert COLOMBIA.bounds.contains(Coordinate(4.711, -74.0721))
        assert COLOMBIA.bounds.contains(Coordinate(-4.2153, -69.9406))  # Leticia
        assert not COLOMBIA.bounds.contains(Coordinate(40.4168, -3.7038))

    def test_qualify(self) -> None:
        assert COLOMBIA.qualify("Cali") == "Cali, Colombia"
        assert COLOMBIA.primary_city == "Bogotá"


class TestWeightTier:
    def test_covers_half_open(self) -> None:
        tier = WeightTier(0, 5, Decimal("15000"))
        assert tier.covers(0)
        assert tier.covers(4.999)
        assert not tier.covers(5)

    def test_rate_coerced(self) -> None:
        assert WeightTier(0, 5, 100).rate_per_kg == Decimal("100")

    def test_invalid_bounds(self) -> None:
        with pytest.raises(ValueError):
            WeightTier(5, 5, Decimal("1"))


class TestDistanceCategory:
    @pytest.mark.parametrize(
        "km,expected",
        [(0, "Local"), (99.9, "Local"), (100, "Regional"), (999.9, "National"), (1000, "Long Distance")],
    )
    def test_for_distance(self, km: float, expected: str) -> None:
        assert DistanceCategory.for_distance(km).value == expected
