from __future__ import annotations

import asyncio
import threading
from pathlib import Path

import pandas as pd

from foodmap.search.geo import bounding_box
from foodmap.search.models import GeoPoint, SearchQuery
from foodmap.search.orchestrator import SearchOrchestrator
from foodmap.sources.data_store import (
    LISTINGS_CSV,
    LOCATIONS_CSV,
    DataFrameCandidateSource,
)

BREAD = "3f0c8f8e-6a3b-4a0e-9b8e-1d2f3a4b5c6d"
DAIRY = "a1b2c3d4-e5f6-4711-8899-aabbccddeeff"

LISTINGS = pd.DataFrame([
    {
        "id": "l1", "title": "Bread box", "description": "Loaves", "price": 12000,
        "original_price": 30000, "latitude": 41.31, "longitude": 69.25,
        "pickup_start": "2026-10-19T10:00:00Z", "pickup_end": "2026-10-19T14:00:00Z",
        "category_ids": f"{BREAD};{DAIRY}", "is_halal": True, "business_ref": "b1",
        "status": "AVAILABLE", "quantity": 3,
    },
    {
        "id": "l2", "title": "Samsa", "description": None, "price": 8000,
        "original_price": None, "latitude": 41.33, "longitude": 69.22,
        "pickup_start": "2026-10-19T10:00:00Z", "pickup_end": "2026-10-19T20:00:00Z",
        "category_ids": None, "is_halal": False, "business_ref": None,
        "status": None, "quantity": None,
    },
    {
        "id": "l3", "title": "Far away", "description": "Samarkand", "price": 5000,
        "original_price": 9000, "latitude": 39.65, "longitude": 66.96,
        "pickup_start": "2026-10-19T10:00:00Z", "pickup_end": "2026-10-19T20:00:00Z",
        "category_ids": BREAD, "is_halal": True, "business_ref": "b2",
        "status": "AVAILABLE", "quantity": 1,
    },
])

LOCATIONS = pd.DataFrame([
    {"business_id": "b1", "company_name": "Non Bakery", "is_verified": True,
     "location_id": "b1-a", "address": "Chilonzor 1", "latitude": 41.28, "longitude": 69.20},
    {"business_id": "b1", "company_name": "Non Bakery", "is_verified": True,
     "location_id": "b1-b", "address": "Yunusobod 4", "latitude": 41.36, "longitude": 69.28},
    {"business_id": "b2", "company_name": "Registan Cafe", "is_verified": False,
     "location_id": "b2-a", "address": None, "latitude": 39.65, "longitude": 66.97},
])

CENTER = GeoPoint(latitude=41.3092, longitude=69.2401)


def _source() -> DataFrameCandidateSource:
    return DataFrameCandidateSource(LISTINGS, LOCATIONS)


def test_listings_in_box_returns_only_rows_in_box():
    box = bounding_box(CENTER, 10.0)
    rows = asyncio.run(_source().listings_in_box(box, {}))
    assert sorted(r.id for r in rows) == ["l1", "l2"]


def test_listing_rows_are_parsed():
    box = bounding_box(CENTER, 10.0)
    rows = {r.id: r for r in asyncio.run(_source().listings_in_box(box, {}))}

    bread = rows["l1"]
    assert bread.category_ids == frozenset({BREAD, DAIRY})
    assert bread.is_halal is True
    assert bread.quantity == 3
    assert bread.business_ref == "b1"
    assert bread.pickup_end.tzinfo is not None
    assert bread.location == GeoPoint(latitude=41.31, longitude=69.25)

    samsa = rows["l2"]
    assert samsa.description == ""
    assert samsa.original_price is None
    assert samsa.category_ids == frozenset()
    assert samsa.status == "AVAILABLE"
    assert samsa.quantity is None
    assert samsa.business_ref is None


def test_hints_are_pushed_down():
    box = bounding_box(CENTER, 10.0)
    source = _source()
    assert [r.id for r in asyncio.run(source.listings_in_box(box, {"price_min": 10000}))] == ["l1"]
    assert [r.id for r in asyncio.run(source.listings_in_box(box, {"price_max": 10000}))] == ["l2"]
    assert [r.id for r in asyncio.run(source.listings_in_box(box, {"is_halal": False}))] == ["l2"]


def test_business_locations_carry_full_business():
    box = bounding_box(CENTER, 10.0)
    rows = asyncio.run(_source().business_locations_in_box(box))

    assert sorted(loc.id for _, loc in rows) == ["b1-a", "b1-b"]
    business, _ = rows[0]
    assert business.company_name == "Non Bakery"
    assert business.is_verified is True
    assert [loc.id for loc in business.locations] == ["b1-a", "b1-b"]


def test_box_across_antimeridian_scans_both_sides():
    listings = pd.DataFrame([
        {"id": "east", "title": "East", "price": 1, "latitude": 0.0, "longitude": 179.99,
         "pickup_start": "2026-10-19T10:00:00Z", "pickup_end": "2026-10-19T20:00:00Z"},
        {"id": "west", "title": "West", "price": 1, "latitude": 0.0, "longitude": -179.99,
         "pickup_start": "2026-10-19T10:00:00Z", "pickup_end": "2026-10-19T20:00:00Z"},
        {"id": "greenwich", "title": "Greenwich", "price": 1, "latitude": 0.0, "longitude": 0.0,
         "pickup_start": "2026-10-19T10:00:00Z", "pickup_end": "2026-10-19T20:00:00Z"},
    ])
    source = DataFrameCandidateSource(listings, pd.DataFrame())
    box = bounding_box(GeoPoint(latitude=0.0, longitude=180.0), 5.0)
    rows = asyncio.run(source.listings_in_box(box, {}))
    assert sorted(r.id for r in rows) == ["east", "west"]


def test_from_csv_round_trip(tmp_path: Path):
    LISTINGS.to_csv(tmp_path / LISTINGS_CSV, index=False)
    LOCATIONS.to_csv(tmp_path / LOCATIONS_CSV, index=False)

    source = DataFrameCandidateSource.from_csv(tmp_path)
    box = bounding_box(CENTER, 10.0)

    listings = {r.id: r for r in asyncio.run(source.listings_in_box(box, {}))}
    assert set(listings) == {"l1", "l2"}
    assert listings["l1"].category_ids == frozenset({BREAD, DAIRY})
    assert listings["l1"].is_halal is True

    locations = asyncio.run(source.business_locations_in_box(box))
    assert len(locations) == 2


def test_from_csv_missing_files_gives_empty_source(tmp_path: Path):
    source = DataFrameCandidateSource.from_csv(tmp_path / "nothing-here")
    box = bounding_box(CENTER, 10.0)
    assert asyncio.run(source.listings_in_box(box, {})) == []
    assert asyncio.run(source.business_locations_in_box(box)) == []


def test_listings_carry_business_name():
    box = bounding_box(CENTER, 10.0)
    rows = {r.id: r for r in asyncio.run(_source().listings_in_box(box, {}))}
    assert rows["l1"].business_name == "Non Bakery"
    assert rows["l2"].business_name is None


# ── Incomplete and malformed rows ────────────────────────────────────────


def _listing_row(listing_id: str, **overrides) -> dict:
    row = {
        "id": listing_id, "title": f"Box {listing_id}", "price": 1000,
        "latitude": 41.31, "longitude": 69.25,
        "pickup_start": "2026-10-19T10:00:00Z", "pickup_end": "2026-10-19T20:00:00Z",
    }
    row.update(overrides)
    return row


def test_unusable_listing_rows_are_dropped(caplog):
    frame = pd.DataFrame([
        _listing_row("ok"),
        _listing_row("no-end", pickup_end=None),
        _listing_row("bad-end", pickup_end="tomorrow-ish"),
        _listing_row("no-start", pickup_start=None),
        _listing_row("no-price", price=None),
        _listing_row("no-lat", latitude=None),
        _listing_row("text-lon", longitude="east"),
        _listing_row("off-globe", latitude=123.0),
        _listing_row("wrapped-lon", longitude=200.0),
    ])
    with caplog.at_level("WARNING", logger="foodmap.sources.data_store"):
        source = DataFrameCandidateSource(frame, pd.DataFrame())

    rows = asyncio.run(source.listings_in_box(bounding_box(CENTER, 10.0), {}))
    assert [r.id for r in rows] == ["ok"]
    assert "Dropped 8 of 9 listing rows" in caplog.text


def test_unusable_location_rows_are_dropped(caplog):
    frame = pd.DataFrame([
        {"business_id": "b1", "company_name": "Non", "location_id": "b1-a",
         "latitude": 41.30, "longitude": 69.24},
        {"business_id": "b1", "company_name": "Non", "location_id": "b1-b",
         "latitude": None, "longitude": 69.24},
        {"business_id": None, "company_name": "Ghost", "location_id": "x-a",
         "latitude": 41.30, "longitude": 69.24},
        {"business_id": "b3", "company_name": "Far", "location_id": "b3-a",
         "latitude": -95.0, "longitude": 69.24},
    ])
    with caplog.at_level("WARNING", logger="foodmap.sources.data_store"):
        source = DataFrameCandidateSource(pd.DataFrame(), frame)

    rows = asyncio.run(source.business_locations_in_box(bounding_box(CENTER, 10.0)))
    assert [(b.id, loc.id) for b, loc in rows] == [("b1", "b1-a")]
    assert [loc.id for loc in rows[0][0].locations] == ["b1-a"]
    assert "Dropped 3 of 4 business location rows" in caplog.text


def test_csv_with_missing_cells_still_searches(tmp_path: Path, clock):
    (tmp_path / LISTINGS_CSV).write_text(
        "id,title,price,latitude,longitude,pickup_start,pickup_end\n"
        "good,Bread,1000,41.31,69.25,2026-10-19T10:00:00Z,2026-10-19T20:00:00Z\n"
        "blank-end,Milk,1000,41.31,69.25,2026-10-19T10:00:00Z,\n"
        "blank-lat,Cake,1000,,69.25,2026-10-19T10:00:00Z,2026-10-19T20:00:00Z\n"
    )
    source = DataFrameCandidateSource.from_csv(tmp_path)
    orchestrator = SearchOrchestrator(source, clock)

    page = asyncio.run(orchestrator.search_listings(SearchQuery(center=CENTER, radius_km=10)))
    assert [item.id for item in page.items] == ["good"]
    assert page.items[0].remaining_time_label == "8 hours remaining"


# ── Scans leave the event loop free ──────────────────────────────────────


class ThreadRecordingSource(DataFrameCandidateSource):
    def scan_listings(self, box, hints):
        self.listing_thread = threading.get_ident()
        return super().scan_listings(box, hints)

    def scan_business_locations(self, box):
        self.location_thread = threading.get_ident()
        return super().scan_business_locations(box)


def test_scans_run_off_the_event_loop_thread():
    source = ThreadRecordingSource(LISTINGS, LOCATIONS)
    box = bounding_box(CENTER, 10.0)

    async def _both():
        loop_thread = threading.get_ident()
        await source.listings_in_box(box, {})
        await source.business_locations_in_box(box)
        return loop_thread

    loop_thread = asyncio.run(_both())
    assert source.listing_thread != loop_thread
    assert source.location_thread != loop_thread
