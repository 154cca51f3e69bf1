from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Protocol

from .config import DEFAULT_SEARCH_CONFIG, SearchConfig
from .models import PickupStatus


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """A clock frozen at one instant, for deterministic searches and tests."""

    def __init__(self, instant: datetime) -> None:
        self._instant = _as_utc(instant)

    def now(self) -> datetime:
        return self._instant


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps from the data source are stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def remaining_hours(now: datetime, pickup_end: datetime) -> float:
    """Hours from ``now`` until ``pickup_end``; negative once the window closed."""
    return (_as_utc(pickup_end) - _as_utc(now)).total_seconds() / 3600.0


def classify(
    hours: float,
    config: SearchConfig = DEFAULT_SEARCH_CONFIG,
) -> PickupStatus:
    if hours <= 0:
        return PickupStatus.expired
    if hours <= config.urgent_hours:
        return PickupStatus.urgent
    if hours <= config.warning_hours:
        return PickupStatus.warning
    return PickupStatus.normal


def format_remaining_time(hours: float) -> str:
    """Human-readable label, e.g. ``"3 hours remaining"``."""
    if hours <= 0:
        return "Time expired"
    if hours < 1:
        return "Less than 1 hour remaining"
    whole = math.ceil(hours)
    return f"{whole} hour{'' if whole == 1 else 's'} remaining"
