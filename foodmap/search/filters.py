"""
Listing filter pipeline.

Each predicate takes a candidate and returns ``True`` to keep it. A
predicate whose query field is absent is simply not built, so the pipeline
only ever contains the checks the caller asked for (plus availability,
which always applies). Predicates are ANDed; they are ordered cheapest
first so free-text matching only runs on survivors.
"""
from __future__ import annotations

import uuid
from typing import Callable, Iterable, TypeVar

from .errors import InvalidFilter
from .models import ListingCandidate, SearchQuery

AVAILABLE_STATUS = "AVAILABLE"

C = TypeVar("C", bound=ListingCandidate)
Predicate = Callable[[ListingCandidate], bool]


def normalize_category_id(raw: str) -> str:
    """Return the canonical lowercase UUID string, or raise ``InvalidFilter``."""
    try:
        return str(uuid.UUID(str(raw).strip()))
    except ValueError as exc:
        raise InvalidFilter(f"Malformed category id: {raw!r}") from exc


def _is_available(candidate: ListingCandidate) -> bool:
    if candidate.status.upper() != AVAILABLE_STATUS:
        return False
    return candidate.quantity != 0


def price_predicate(price_min: float | None, price_max: float | None) -> Predicate | None:
    if price_min is None and price_max is None:
        return None
    for name, bound in (("minPrice", price_min), ("maxPrice", price_max)):
        if bound is not None and bound < 0:
            raise InvalidFilter(f"{name} must be zero or greater, got {bound}")
    if price_min is not None and price_max is not None and price_min > price_max:
        raise InvalidFilter(f"minPrice ({price_min}) must not exceed maxPrice ({price_max})")

    def _check(candidate: ListingCandidate) -> bool:
        if price_min is not None and candidate.price < price_min:
            return False
        if price_max is not None and candidate.price > price_max:
            return False
        return True

    return _check


def category_predicate(category_ids: Iterable[str]) -> Predicate | None:
    wanted = {normalize_category_id(c) for c in category_ids}
    if not wanted:
        return None

    def _check(candidate: ListingCandidate) -> bool:
        return any(c.lower() in wanted for c in candidate.category_ids)

    return _check


def halal_predicate(is_halal: bool | None) -> Predicate | None:
    if is_halal is None:
        return None
    return lambda candidate: candidate.is_halal == is_halal


def text_predicate(text: str | None) -> Predicate | None:
    needle = (text or "").casefold()
    if not needle:
        return None

    def _check(candidate: ListingCandidate) -> bool:
        return needle in candidate.title.casefold() or needle in candidate.description.casefold()

    return _check


def build_filters(query: SearchQuery) -> list[Predicate]:
    """
    Validate the query's filter fields and build the predicate list.

    Raises ``InvalidFilter`` for a negative or inverted price range and for
    malformed category ids. Runs before any data-source call.
    """
    built = [
        _is_available,
        halal_predicate(query.is_halal),
        price_predicate(query.price_min, query.price_max),
        category_predicate(query.category_ids),
        text_predicate(query.text),
    ]
    return [p for p in built if p is not None]


def apply_filters(candidates: Iterable[C], predicates: list[Predicate]) -> list[C]:
    return [c for c in candidates if all(p(c) for p in predicates)]
