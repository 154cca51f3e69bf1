from __future__ import annotations

import math
from typing import Sequence, TypeVar

from .errors import InvalidQueryParameter
from .models import Page

T = TypeVar("T")


def paginate(items: Sequence[T], page: int, limit: int) -> Page[T]:
    """
    Slice an already ranked sequence into one page.

    ``total`` counts every item handed in. A page past the end comes back
    empty with the same ``total`` and ``total_pages``.
    """
    if page < 1:
        raise InvalidQueryParameter(f"page must be 1 or greater, got {page}")
    if limit < 1:
        raise InvalidQueryParameter(f"limit must be 1 or greater, got {limit}")

    total = len(items)
    offset = (page - 1) * limit
    return Page(
        items=list(items[offset:offset + limit]),
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit),
    )
