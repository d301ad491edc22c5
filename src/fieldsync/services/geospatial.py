"""Geospatial helper functions: distances and point-in-zone tests.

Polygon containment uses a bounding-box prefilter followed by the even-odd
ray-casting rule, casting along the latitude axis. The rule is half-open:
points lying on a low-latitude or low-longitude edge count as inside, points
on a high edge count as outside. Degenerate shapes never raise; they simply
contain nothing.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from ..models.domain import CircleShape, Distribution, LatLng, PolygonShape, RectangleShape, Zone, ZoneShape

EARTH_RADIUS_M = 6_371_000.0

PointLike = LatLng | tuple[float, float]


def _as_latlng(point: PointLike) -> LatLng:
    if isinstance(point, LatLng):
        return point
    lat, lng = point
    return LatLng(float(lat), float(lng))


def _finite(*values: float) -> bool:
    return all(isinstance(value, (int, float)) and math.isfinite(value) for value in values)


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance in metres between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def bounding_box(ring: Sequence[LatLng]) -> tuple[float, float, float, float]:
    """Return (south, west, north, east) of a non-empty ring."""

    lats = [vertex.lat for vertex in ring]
    lngs = [vertex.lng for vertex in ring]
    return min(lats), min(lngs), max(lats), max(lngs)


def _ray_cast(point: LatLng, ring: Sequence[LatLng]) -> bool:
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i].lat, ring[i].lng
        xj, yj = ring[j].lat, ring[j].lng
        if (yi > point.lng) != (yj > point.lng):
            crossing = (xj - xi) * (point.lng - yi) / (yj - yi) + xi
            if point.lat < crossing:
                inside = not inside
        j = i
    return inside


def point_in_polygon(point: PointLike, ring: Sequence[LatLng]) -> bool:
    """Return True if the point lies inside the implicitly closed ring."""

    try:
        target = _as_latlng(point)
    except (TypeError, ValueError):
        return False
    if len(ring) < 3:
        return False
    if not _finite(target.lat, target.lng) or not all(_finite(v.lat, v.lng) for v in ring):
        return False

    south, west, north, east = bounding_box(ring)
    if not (south <= target.lat <= north and west <= target.lng <= east):
        return False
    return _ray_cast(target, ring)


def point_in_circle(point: PointLike, circle: CircleShape) -> bool:
    try:
        target = _as_latlng(point)
    except (TypeError, ValueError):
        return False
    center = circle.center
    if not _finite(target.lat, target.lng, center.lat, center.lng, circle.radius_m):
        return False
    if circle.radius_m <= 0:
        return False
    return haversine_m(target.lat, target.lng, center.lat, center.lng) <= circle.radius_m


def point_in_zone(point: PointLike, zone: Zone | ZoneShape) -> bool:
    """Return True if the point falls inside the zone's shape."""

    zone_shape = zone.shape if isinstance(zone, Zone) else zone
    match zone_shape:
        case CircleShape():
            return point_in_circle(point, zone_shape)
        case RectangleShape(south=south, west=west, north=north, east=east):
            if not _finite(south, west, north, east) or south >= north or west >= east:
                return False
            return point_in_polygon(point, zone_shape.ring())
        case PolygonShape(ring=ring):
            return point_in_polygon(point, ring)
        case _:
            return False


def distributions_in_zone(distributions: Iterable[Distribution], zone: Zone) -> list[Distribution]:
    return [d for d in distributions if point_in_zone(LatLng(d.lat, d.lng), zone)]
