"""Great-circle distance and bounding-box helpers."""
from __future__ import annotations

import math
from typing import NamedTuple

from .config import DEFAULT_SEARCH_CONFIG, SearchConfig
from .errors import InvalidCoordinate, InvalidQueryParameter
from .models import GeoPoint

# Absorbs float rounding at the circle's extreme points.
_PAD_DEG = 1e-9


class BoundingBox(NamedTuple):
    """Axis-aligned lat/lon box. ``lon_min > lon_max`` means it wraps ±180°."""

    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float

    @property
    def wraps_antimeridian(self) -> bool:
        return self.lon_min > self.lon_max

    def lon_ranges(self) -> list[tuple[float, float]]:
        """Return the plain longitude ranges a range scan has to cover."""
        if self.wraps_antimeridian:
            return [(self.lon_min, 180.0), (-180.0, self.lon_max)]
        return [(self.lon_min, self.lon_max)]

    def contains(self, point: GeoPoint) -> bool:
        if not self.lat_min <= point.latitude <= self.lat_max:
            return False
        return any(lo <= point.longitude <= hi for lo, hi in self.lon_ranges())


def _check_point(point: GeoPoint) -> None:
    if not -90.0 <= point.latitude <= 90.0:
        raise InvalidCoordinate(f"Latitude must be between -90 and 90, got {point.latitude}")
    if not -180.0 <= point.longitude <= 180.0:
        raise InvalidCoordinate(f"Longitude must be between -180 and 180, got {point.longitude}")


def haversine_km(
    a: GeoPoint,
    b: GeoPoint,
    config: SearchConfig = DEFAULT_SEARCH_CONFIG,
) -> float:
    _check_point(a)
    _check_point(b)

    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    dphi = math.radians(b.latitude - a.latitude)
    dlambda = math.radians(b.longitude - a.longitude)

    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    h = min(1.0, h)
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return config.earth_radius_km * c


def bounding_box(
    center: GeoPoint,
    radius_km: float,
    config: SearchConfig = DEFAULT_SEARCH_CONFIG,
) -> BoundingBox:
    """
    Return a box that contains every point within ``radius_km`` of ``center``.

    The longitude half-width is ``asin(sin(d) / cos(lat))``, the exact
    longitude extent of a spherical cap. When the cap reaches a pole, or the
    centre sits inside the polar cap, the box spans all longitudes.
    """
    _check_point(center)
    if not (radius_km > 0 and math.isfinite(radius_km)):
        raise InvalidQueryParameter(f"Radius must be a positive number, got {radius_km}")

    angular = radius_km / config.earth_radius_km
    lat = math.radians(center.latitude)

    lat_min = max(-90.0, math.degrees(lat - angular) - _PAD_DEG)
    lat_max = min(90.0, math.degrees(lat + angular) + _PAD_DEG)

    full_lon = (
        abs(center.latitude) > config.polar_cap_latitude
        or lat_min <= -90.0
        or lat_max >= 90.0
    )
    if not full_lon:
        ratio = math.sin(angular) / math.cos(lat)
        full_lon = ratio >= 1.0
    if full_lon:
        return BoundingBox(lat_min, lat_max, -180.0, 180.0)

    dlon = math.degrees(math.asin(ratio)) + _PAD_DEG
    lon_min = center.longitude - dlon
    lon_max = center.longitude + dlon
    if lon_min <= -180.0:
        lon_min += 360.0
    if lon_max >= 180.0:
        lon_max -= 360.0
    return BoundingBox(lat_min, lat_max, lon_min, lon_max)
