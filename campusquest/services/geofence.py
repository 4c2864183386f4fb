from __future__ import annotations

from dataclasses import dataclass
from math import atan2, cos, isfinite, radians, sin, sqrt
from typing import Any, Mapping, Optional, Protocol

EARTH_RADIUS_M = 6371000.0  # mean Earth radius


class _PointLike(Protocol):
    lat: float
    lng: float


@dataclass(frozen=True)
class Position:
    lat: float
    lng: float
    accuracy: Optional[float] = None


@dataclass(frozen=True)
class GeoFence:
    lat: float
    lng: float
    radius: float
    name: Optional[str] = None


def distance_meters(a: _PointLike, b: _PointLike) -> float:
    """Great-circle distance between two points, haversine formula."""
    lat1 = radians(a.lat)
    lat2 = radians(b.lat)
    d_lat = radians(b.lat - a.lat)
    d_lng = radians(b.lng - a.lng)
    h = sin(d_lat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(d_lng / 2) ** 2
    # Rounding can push h just past 1 for antipodal points
    h = min(1.0, max(0.0, h))
    return EARTH_RADIUS_M * 2 * atan2(sqrt(h), sqrt(1 - h))


def _finite(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and isfinite(value)


def within_radius(position: Optional[_PointLike], location: Any) -> bool:
    """
    True when `position` lies inside the geofence of `location`.

    A missing position, non-finite coordinates, or a radius that is not a
    finite positive number never counts as inside.
    """
    if position is None or location is None:
        return False

    radius = getattr(location, "radius", None)
    if not _finite(radius) or radius <= 0:
        return False
    if not (_finite(position.lat) and _finite(position.lng)):
        return False
    if not (_finite(location.lat) and _finite(location.lng)):
        return False

    return distance_meters(position, location) <= radius


def _first_number(row: Mapping[str, Any], *keys: str) -> float:
    for key in keys:
        value = row.get(key)
        if value is None or isinstance(value, bool):
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if isfinite(number):
            return number
    return float("nan")


def coerce_location(row: Mapping[str, Any]) -> GeoFence:
    """Build a GeoFence from a raw location row whatever its column spelling.

    Unreadable coordinates or radius come back as NaN, which `within_radius`
    treats as never satisfiable.
    """
    return GeoFence(
        lat=_first_number(row, "lat", "latitude"),
        lng=_first_number(row, "lng", "longitude"),
        radius=_first_number(row, "radius", "radiusMeters", "radius_meters", "range", "distance"),
        name=row.get("name"),
    )
