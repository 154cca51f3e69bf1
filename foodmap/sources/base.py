from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence

from ..search.geo import BoundingBox
from ..search.models import BusinessCandidate, ListingCandidate, LocationRecord


class CandidateSource(Protocol):
    """
    Read side of the data store as the search engine sees it.

    Both methods are range scans over an indexed latitude/longitude pair.
    They must return every row inside ``box`` and may return extras; the
    engine re-checks exact distance and every filter itself.
    """

    async def listings_in_box(
        self,
        box: BoundingBox,
        hints: Mapping[str, Any],
    ) -> Sequence[ListingCandidate]:
        """``hints`` carries optional filters (price bounds, halal flag, categories) a store may push down."""
        ...

    async def business_locations_in_box(
        self,
        box: BoundingBox,
    ) -> Sequence[tuple[BusinessCandidate, LocationRecord]]:
        """One row per business location inside ``box``."""
        ...
