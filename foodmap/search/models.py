from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .config import DEFAULT_SEARCH_CONFIG
from .errors import InvalidCoordinate

T = TypeVar("T")


class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float

    @model_validator(mode="after")
    def _check_range(self) -> GeoPoint:
        if not -90.0 <= self.latitude <= 90.0:
            raise InvalidCoordinate(
                f"Latitude must be between -90 and 90, got {self.latitude}"
            )
        if not -180.0 <= self.longitude <= 180.0:
            raise InvalidCoordinate(
                f"Longitude must be between -180 and 180, got {self.longitude}"
            )
        return self


class PickupStatus(str, Enum):
    normal = "normal"
    warning = "warning"
    urgent = "urgent"
    expired = "expired"


class RankingMode(str, Enum):
    distance_first = "distance_first"
    urgency_first = "urgency_first"

    @classmethod
    def from_flag(cls, prioritize_urgent: bool) -> RankingMode:
        return cls.urgency_first if prioritize_urgent else cls.distance_first


# ── Queries ──────────────────────────────────────────────────────────────


class AreaQuery(BaseModel):
    """Centre, radius and page window shared by both searches."""

    model_config = ConfigDict(frozen=True)

    center: GeoPoint
    radius_km: float = DEFAULT_SEARCH_CONFIG.default_radius_km
    page: int = 1
    limit: int = DEFAULT_SEARCH_CONFIG.default_limit


class SearchQuery(AreaQuery):
    price_min: float | None = None
    price_max: float | None = None
    category_ids: frozenset[str] = frozenset()
    is_halal: bool | None = None
    text: str | None = None
    ranking_mode: RankingMode = RankingMode.distance_first

    @property
    def prioritize_urgent(self) -> bool:
        return self.ranking_mode is RankingMode.urgency_first


class BusinessSearchQuery(AreaQuery):
    is_verified: bool | None = None


# ── Candidates (read-only rows from the data source) ─────────────────────


class ListingCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str = ""
    price: float
    original_price: float | None = None
    location: GeoPoint
    pickup_start: datetime
    pickup_end: datetime
    category_ids: frozenset[str] = frozenset()
    is_halal: bool = False
    business_ref: str | None = None
    business_name: str | None = None
    status: str = "AVAILABLE"
    quantity: int | None = None


class RankedListing(ListingCandidate):
    distance_km: float
    remaining_pickup_hours: float
    pickup_status: PickupStatus
    remaining_time_label: str = ""


class LocationRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    point: GeoPoint
    address: str | None = None


class BusinessCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    company_name: str
    is_verified: bool = False
    locations: tuple[LocationRecord, ...] = ()


class RankedBusiness(BusinessCandidate):
    distance_km: float
    closest_location: LocationRecord


class Page(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    limit: int
    total_pages: int


# ── HTTP response bodies ─────────────────────────────────────────────────


class PaginationOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    page: int
    limit: int
    total_pages: int = Field(alias="totalPages")

    @classmethod
    def from_page(cls, page: Page) -> PaginationOut:
        return cls(
            total=page.total,
            page=page.page,
            limit=page.limit,
            total_pages=page.total_pages,
        )


class ListingOut(BaseModel):
    id: str
    title: str
    description: str
    price: float
    original_price: float | None
    location: GeoPoint
    pickup_start: datetime
    pickup_end: datetime
    category_ids: list[str]
    is_halal: bool
    business_id: str | None
    company_name: str | None
    quantity: int | None
    distance: float
    remaining_pickup_hours: float
    pickup_status: PickupStatus
    remaining_time_label: str

    @classmethod
    def from_ranked(cls, item: RankedListing) -> ListingOut:
        return cls(
            id=item.id,
            title=item.title,
            description=item.description,
            price=item.price,
            original_price=item.original_price,
            location=item.location,
            pickup_start=item.pickup_start,
            pickup_end=item.pickup_end,
            category_ids=sorted(item.category_ids),
            is_halal=item.is_halal,
            business_id=item.business_ref,
            company_name=item.business_name,
            quantity=item.quantity,
            distance=round(item.distance_km, 3),
            remaining_pickup_hours=round(item.remaining_pickup_hours, 2),
            pickup_status=item.pickup_status,
            remaining_time_label=item.remaining_time_label,
        )


class ListingsData(BaseModel):
    listings: list[ListingOut]
    pagination: PaginationOut


class ListingsResponse(BaseModel):
    status: str = "success"
    data: ListingsData


class LocationOut(BaseModel):
    id: str
    address: str | None
    latitude: float
    longitude: float


class BusinessOut(BaseModel):
    id: str
    company_name: str
    is_verified: bool
    distance: float
    closest_location: LocationOut

    @classmethod
    def from_ranked(cls, item: RankedBusiness) -> BusinessOut:
        closest = item.closest_location
        return cls(
            id=item.id,
            company_name=item.company_name,
            is_verified=item.is_verified,
            distance=round(item.distance_km, 3),
            closest_location=LocationOut(
                id=closest.id,
                address=closest.address,
                latitude=closest.point.latitude,
                longitude=closest.point.longitude,
            ),
        )


class BusinessesData(BaseModel):
    businesses: list[BusinessOut]
    pagination: PaginationOut


class BusinessesResponse(BaseModel):
    status: str = "success"
    data: BusinessesData


class ErrorResponse(BaseModel):
    status: str = "error"
    message: str
