from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

import pytest

from foodmap.search.config import SearchConfig
from foodmap.search.models import (
    BusinessCandidate,
    GeoPoint,
    ListingCandidate,
    LocationRecord,
)
from foodmap.search.orchestrator import SearchOrchestrator
from foodmap.search.pickup import FixedClock

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
TASHKENT = GeoPoint(latitude=41.3092, longitude=69.2401)


def point_at(origin: GeoPoint, distance_km: float, bearing_deg: float = 90.0) -> GeoPoint:
    """Destination point on the 6371 km sphere."""
    delta = distance_km / 6371.0
    theta = math.radians(bearing_deg)
    phi1 = math.radians(origin.latitude)
    lam1 = math.radians(origin.longitude)

    phi2 = math.asin(
        math.sin(phi1) * math.cos(delta) + math.cos(phi1) * math.sin(delta) * math.cos(theta)
    )
    lam2 = lam1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(phi1),
        math.cos(delta) - math.sin(phi1) * math.sin(phi2),
    )
    lon = (math.degrees(lam2) + 540.0) % 360.0 - 180.0
    return GeoPoint(latitude=math.degrees(phi2), longitude=lon)


class StaticSource:
    """In-memory candidate source that records the boxes it was asked for."""

    def __init__(self, listings=(), locations=()):
        self.listings = list(listings)
        self.locations = list(locations)
        self.calls: list[tuple] = []

    async def listings_in_box(self, box, hints):
        self.calls.append(("listings", box, dict(hints)))
        return [item for item in self.listings if box.contains(item.location)]

    async def business_locations_in_box(self, box):
        self.calls.append(("businesses", box))
        return [(b, loc) for b, loc in self.locations if box.contains(loc.point)]


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def make_listing():
    def _make(
        listing_id: str,
        distance_km: float,
        hours_left: float = 12.0,
        bearing_deg: float = 90.0,
        center: GeoPoint = TASHKENT,
        **overrides,
    ) -> ListingCandidate:
        fields = dict(
            id=listing_id,
            title=f"Surplus box {listing_id}",
            description="Assorted pastries from today's bake",
            price=20000.0,
            original_price=45000.0,
            location=point_at(center, distance_km, bearing_deg),
            pickup_start=NOW - timedelta(hours=1),
            pickup_end=NOW + timedelta(hours=hours_left),
        )
        fields.update(overrides)
        return ListingCandidate(**fields)

    return _make


@pytest.fixture
def make_business():
    def _make(business_id: str, distances_km, is_verified: bool = True, center: GeoPoint = TASHKENT):
        locations = tuple(
            LocationRecord(
                id=f"{business_id}-loc{i}",
                point=point_at(center, d, bearing_deg=45.0 * i),
                address=f"Branch {i}",
            )
            for i, d in enumerate(distances_km)
        )
        business = BusinessCandidate(
            id=business_id,
            company_name=f"Bakery {business_id}",
            is_verified=is_verified,
            locations=locations,
        )
        return [(business, loc) for loc in locations]

    return _make


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def center() -> GeoPoint:
    return TASHKENT


@pytest.fixture
def destination():
    return point_at


@pytest.fixture
def make_source():
    return StaticSource


@pytest.fixture
def build_orchestrator(clock):
    def _build(source, **config_overrides) -> SearchOrchestrator:
        return SearchOrchestrator(source, clock, SearchConfig(**config_overrides))

    return _build
