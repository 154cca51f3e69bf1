from __future__ import annotations

from typing import Callable, Iterable

from .models import PickupStatus, RankedBusiness, RankedListing, RankingMode

# Lower rank sorts first. Expired listings are dropped before ranking.
SEVERITY_RANK: dict[PickupStatus, int] = {
    PickupStatus.urgent: 0,
    PickupStatus.warning: 1,
    PickupStatus.normal: 2,
}


def _distance_first(item: RankedListing) -> tuple:
    return (item.distance_km, item.id)


def _urgency_first(item: RankedListing) -> tuple:
    return (SEVERITY_RANK[item.pickup_status], item.distance_km, item.id)


_LISTING_KEYS: dict[RankingMode, Callable[[RankedListing], tuple]] = {
    RankingMode.distance_first: _distance_first,
    RankingMode.urgency_first: _urgency_first,
}


def rank_listings(items: Iterable[RankedListing], mode: RankingMode) -> list[RankedListing]:
    """Order listings by the key for ``mode``; ``id`` breaks every tie."""
    return sorted(items, key=_LISTING_KEYS[mode])


def rank_businesses(items: Iterable[RankedBusiness]) -> list[RankedBusiness]:
    """Nearest location first, then ascending ``id``."""
    return sorted(items, key=lambda b: (b.distance_km, b.id))
