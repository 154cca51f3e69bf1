"""
Proximity search over listings and businesses.

Both searches follow the same shape:
- Validate the query (before touching the data source).
- Fetch candidates inside the bounding box of the search circle.
- Re-check exact great-circle distance against the radius.
- Tag, filter and rank the survivors, then cut one page.

The orchestrator holds no per-request state; one instance serves every
request concurrently.
"""
from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Awaitable, Callable, TypeVar

from ..sources.base import CandidateSource
from .config import DEFAULT_SEARCH_CONFIG, SearchConfig
from .errors import EngineAborted, InvalidQueryParameter, SearchError, UpstreamUnavailable
from .filters import apply_filters, build_filters
from .geo import bounding_box, haversine_km
from .models import (
    AreaQuery,
    BusinessCandidate,
    BusinessSearchQuery,
    LocationRecord,
    Page,
    PickupStatus,
    RankedBusiness,
    RankedListing,
    SearchQuery,
)
from .pagination import paginate
from .pickup import Clock, classify, format_remaining_time, remaining_hours
from .ranking import rank_businesses, rank_listings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _source_hints(query: SearchQuery) -> dict[str, Any]:
    hints: dict[str, Any] = {}
    if query.price_min is not None:
        hints["price_min"] = query.price_min
    if query.price_max is not None:
        hints["price_max"] = query.price_max
    if query.is_halal is not None:
        hints["is_halal"] = query.is_halal
    if query.category_ids:
        hints["category_ids"] = query.category_ids
    return hints


class SearchOrchestrator:
    def __init__(
        self,
        source: CandidateSource,
        clock: Clock,
        config: SearchConfig = DEFAULT_SEARCH_CONFIG,
    ) -> None:
        self._source = source
        self._clock = clock
        self._config = config

    @property
    def config(self) -> SearchConfig:
        return self._config

    def _validate_area(self, query: AreaQuery) -> None:
        cfg = self._config
        radius = query.radius_km
        if not (math.isfinite(radius) and cfg.min_radius_km <= radius <= cfg.max_radius_km):
            raise InvalidQueryParameter(
                f"Radius must be between {cfg.min_radius_km} and {cfg.max_radius_km} kilometers"
            )
        if query.page < 1:
            raise InvalidQueryParameter("page must be 1 or greater")
        if not 1 <= query.limit <= cfg.max_limit:
            raise InvalidQueryParameter(f"limit must be between 1 and {cfg.max_limit}")

    async def _fetch(self, call: Callable[[], Awaitable[T]], what: str) -> T:
        """Await the data source, mapping cancellation and failures onto engine errors."""
        try:
            return await call()
        except asyncio.CancelledError as exc:
            logger.warning("Fetch of %s was cancelled", what)
            raise EngineAborted(f"Fetch of {what} was cancelled") from exc
        except SearchError:
            raise
        except Exception as exc:
            logger.error("Candidate source failed while fetching %s", what, exc_info=True)
            raise UpstreamUnavailable(f"Candidate source failed while fetching {what}") from exc

    async def search_listings(self, query: SearchQuery) -> Page[RankedListing]:
        self._validate_area(query)
        predicates = build_filters(query)
        box = bounding_box(query.center, query.radius_km, self._config)
        hints = _source_hints(query)

        rows = await self._fetch(lambda: self._source.listings_in_box(box, hints), "listings")
        now = self._clock.now()

        in_range: list[RankedListing] = []
        for row in rows:
            distance = haversine_km(query.center, row.location, self._config)
            if distance > query.radius_km:
                continue
            hours = remaining_hours(now, row.pickup_end)
            status = classify(hours, self._config)
            if status is PickupStatus.expired:
                continue
            in_range.append(
                RankedListing(
                    **dict(row),
                    distance_km=distance,
                    remaining_pickup_hours=hours,
                    pickup_status=status,
                    remaining_time_label=format_remaining_time(hours),
                )
            )

        matched = apply_filters(in_range, predicates)
        ordered = rank_listings(matched, query.ranking_mode)
        logger.debug(
            "Listing search: %d fetched, %d live in radius, %d matched filters",
            len(rows), len(in_range), len(matched),
        )
        return paginate(ordered, query.page, query.limit)

    async def search_businesses(self, query: BusinessSearchQuery) -> Page[RankedBusiness]:
        self._validate_area(query)
        box = bounding_box(query.center, query.radius_km, self._config)

        rows = await self._fetch(
            lambda: self._source.business_locations_in_box(box), "business locations",
        )

        # business id -> (business, nearest in-radius location, distance)
        nearest: dict[str, tuple[BusinessCandidate, LocationRecord, float]] = {}
        for business, location in rows:
            distance = haversine_km(query.center, location.point, self._config)
            if distance > query.radius_km:
                continue
            current = nearest.get(business.id)
            if current is None or (distance, location.id) < (current[2], current[1].id):
                nearest[business.id] = (business, location, distance)

        ranked = [
            RankedBusiness(**dict(business), distance_km=distance, closest_location=location)
            for business, location, distance in nearest.values()
            if query.is_verified is None or business.is_verified == query.is_verified
        ]
        ordered = rank_businesses(ranked)
        logger.debug(
            "Business search: %d location rows, %d businesses in radius, %d after verification filter",
            len(rows), len(nearest), len(ranked),
        )
        return paginate(ordered, query.page, query.limit)
