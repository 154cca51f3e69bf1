from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Mapping

import pandas as pd

from ..search.geo import BoundingBox
from ..search.models import BusinessCandidate, GeoPoint, ListingCandidate, LocationRecord

logger = logging.getLogger(__name__)

LISTINGS_CSV = "listings.csv"
LOCATIONS_CSV = "business_locations.csv"

LISTING_COLUMNS: list[str] = [
    "id",
    "title",
    "description",
    "price",
    "original_price",
    "latitude",
    "longitude",
    "pickup_start",
    "pickup_end",
    "category_ids",
    "is_halal",
    "business_ref",
    "status",
    "quantity",
]

LOCATION_COLUMNS: list[str] = [
    "business_id",
    "company_name",
    "is_verified",
    "location_id",
    "address",
    "latitude",
    "longitude",
]

# A row missing any of these cannot be placed on the map or timed
REQUIRED_LISTING_COLUMNS: list[str] = [
    "id", "price", "latitude", "longitude", "pickup_start", "pickup_end",
]
REQUIRED_LOCATION_COLUMNS: list[str] = ["business_id", "location_id", "latitude", "longitude"]

# Category ids inside one CSV cell are separated by ";"
CATEGORY_SEPARATOR = ";"


def _read_csv(path: Path, columns: list[str]) -> pd.DataFrame:
    if not path.is_file():
        logger.warning("Data file %s not found, starting with no rows", path)
        return pd.DataFrame(columns=columns)
    return pd.read_csv(path)


def _as_bool(series: pd.Series) -> pd.Series:
    return series.fillna(False).astype(str).str.strip().str.lower().isin({"true", "1", "yes"})


def _split_categories(value: Any) -> list[str]:
    if isinstance(value, (list, tuple, set, frozenset)):
        return [str(c).strip().lower() for c in value if str(c).strip()]
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return []
    return [c.strip().lower() for c in str(value).split(CATEGORY_SEPARATOR) if c.strip()]


def _optional(value: Any) -> Any:
    return None if pd.isna(value) else value


def _drop_unusable(df: pd.DataFrame, required: list[str], what: str) -> pd.DataFrame:
    """Drop rows with a missing required cell or a coordinate off the globe."""
    keep = df[required].notna().all(axis=1)
    keep &= df["latitude"].between(-90.0, 90.0) & df["longitude"].between(-180.0, 180.0)
    dropped = int((~keep).sum())
    if dropped:
        logger.warning(
            "Dropped %d of %d %s rows with missing or invalid %s",
            dropped, len(df), what, ", ".join(required),
        )
    return df.loc[keep].copy()


def _prepare_listings(raw: pd.DataFrame) -> pd.DataFrame:
    df = raw.reindex(columns=LISTING_COLUMNS).copy()
    for col in ("price", "original_price", "latitude", "longitude", "quantity"):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    df["pickup_start"] = pd.to_datetime(df["pickup_start"], utc=True, errors="coerce")
    df["pickup_end"] = pd.to_datetime(df["pickup_end"], utc=True, errors="coerce")
    df = _drop_unusable(df, REQUIRED_LISTING_COLUMNS, "listing")
    df["id"] = df["id"].astype(str)
    df["title"] = df["title"].fillna("").astype(str)
    df["description"] = df["description"].fillna("").astype(str)
    df["category_ids"] = df["category_ids"].apply(_split_categories)
    df["is_halal"] = _as_bool(df["is_halal"])
    df["business_ref"] = df["business_ref"].map(lambda v: None if pd.isna(v) else str(v))
    df["status"] = df["status"].fillna("AVAILABLE").astype(str)
    return df


def _prepare_locations(raw: pd.DataFrame) -> pd.DataFrame:
    df = raw.reindex(columns=LOCATION_COLUMNS).copy()
    for col in ("latitude", "longitude"):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    df = _drop_unusable(df, REQUIRED_LOCATION_COLUMNS, "business location")
    df["business_id"] = df["business_id"].astype(str)
    df["location_id"] = df["location_id"].astype(str)
    df["company_name"] = df["company_name"].fillna("").astype(str)
    df["is_verified"] = _as_bool(df["is_verified"])
    return df


def _box_mask(df: pd.DataFrame, box: BoundingBox) -> pd.Series:
    mask = df["latitude"].between(box.lat_min, box.lat_max)
    lon_mask = pd.Series(False, index=df.index)
    for lo, hi in box.lon_ranges():
        lon_mask = lon_mask | df["longitude"].between(lo, hi)
    return mask & lon_mask


def _listing_from_row(row: dict[str, Any], business_name: str | None) -> ListingCandidate:
    quantity = _optional(row["quantity"])
    return ListingCandidate(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        price=float(row["price"]),
        original_price=_optional(row["original_price"]),
        location=GeoPoint(latitude=row["latitude"], longitude=row["longitude"]),
        pickup_start=row["pickup_start"].to_pydatetime(),
        pickup_end=row["pickup_end"].to_pydatetime(),
        category_ids=frozenset(row["category_ids"]),
        is_halal=bool(row["is_halal"]),
        business_ref=row["business_ref"],
        business_name=business_name,
        status=row["status"],
        quantity=None if quantity is None else int(quantity),
    )


def _location_from_row(row: dict[str, Any]) -> LocationRecord:
    return LocationRecord(
        id=row["location_id"],
        point=GeoPoint(latitude=row["latitude"], longitude=row["longitude"]),
        address=_optional(row["address"]),
    )


class DataFrameCandidateSource:
    """
    Candidate source over two in-memory pandas frames.

    Listings are one row each. Business locations are one row per location,
    with the owning business's columns repeated on every row. Rows that
    cannot be placed or timed are dropped when the frames are loaded.

    Scans run in a worker thread so the event loop stays free to serve other
    searches and to enforce request deadlines.
    """

    def __init__(self, listings: pd.DataFrame, locations: pd.DataFrame) -> None:
        self._listings = _prepare_listings(listings)
        self._locations = _prepare_locations(locations)
        self._businesses = self._index_businesses()

    @classmethod
    def from_csv(cls, data_dir: Path) -> DataFrameCandidateSource:
        listings = _read_csv(data_dir / LISTINGS_CSV, LISTING_COLUMNS)
        locations = _read_csv(data_dir / LOCATIONS_CSV, LOCATION_COLUMNS)
        logger.info(
            "Loaded %d listings and %d business locations from %s",
            len(listings), len(locations), data_dir,
        )
        return cls(listings, locations)

    def _index_businesses(self) -> dict[str, BusinessCandidate]:
        businesses: dict[str, BusinessCandidate] = {}
        for business_id, group in self._locations.groupby("business_id", sort=False):
            first = group.iloc[0]
            businesses[str(business_id)] = BusinessCandidate(
                id=str(business_id),
                company_name=first["company_name"],
                is_verified=bool(first["is_verified"]),
                locations=tuple(_location_from_row(r) for r in group.to_dict("records")),
            )
        return businesses

    def _business_name(self, business_ref: str | None) -> str | None:
        business = self._businesses.get(business_ref) if business_ref else None
        return business.company_name if business else None

    def scan_listings(self, box: BoundingBox, hints: Mapping[str, Any]) -> list[ListingCandidate]:
        """Blocking range scan behind ``listings_in_box``."""
        df = self._listings
        mask = _box_mask(df, box)
        if "price_min" in hints:
            mask = mask & (df["price"] >= hints["price_min"])
        if "price_max" in hints:
            mask = mask & (df["price"] <= hints["price_max"])
        if "is_halal" in hints:
            mask = mask & (df["is_halal"] == hints["is_halal"])
        return [
            _listing_from_row(row, self._business_name(row["business_ref"]))
            for row in df.loc[mask].to_dict("records")
        ]

    def scan_business_locations(
        self,
        box: BoundingBox,
    ) -> list[tuple[BusinessCandidate, LocationRecord]]:
        """Blocking range scan behind ``business_locations_in_box``."""
        df = self._locations
        rows = df.loc[_box_mask(df, box)].to_dict("records")
        return [(self._businesses[row["business_id"]], _location_from_row(row)) for row in rows]

    async def listings_in_box(
        self,
        box: BoundingBox,
        hints: Mapping[str, Any],
    ) -> list[ListingCandidate]:
        return await asyncio.to_thread(self.scan_listings, box, hints)

    async def business_locations_in_box(
        self,
        box: BoundingBox,
    ) -> list[tuple[BusinessCandidate, LocationRecord]]:
        return await asyncio.to_thread(self.scan_business_locations, box)
