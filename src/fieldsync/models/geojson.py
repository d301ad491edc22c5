"""GeoJSON conversion for zone shapes.

Zones travel as GeoJSON Features. Circles are a ``Point`` geometry with
``properties.radius`` (metres) and ``properties.shapeType == "circle"``;
polygons and rectangles are ``Polygon`` geometries tagged with their
``shapeType``. Coordinates are (lon, lat) on the wire and (lat, lng) in memory.
"""

from __future__ import annotations

import json
from typing import Any

from shapely.errors import ShapelyError
from shapely.geometry import Point, Polygon, box, mapping, shape

from ..errors import ShapeError
from .domain import CircleShape, LatLng, PolygonShape, RectangleShape, Zone, ZoneShape, utc_now_iso


def _as_dict(payload: dict[str, Any] | str) -> dict[str, Any]:
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ShapeError(f"zone geojson is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ShapeError("zone geojson must be an object")
    return payload


def shape_from_feature(payload: dict[str, Any] | str) -> ZoneShape:
    """Build a zone shape from a GeoJSON Feature (or bare geometry)."""

    feature = _as_dict(payload)
    if feature.get("type") == "Feature":
        geometry = feature.get("geometry")
        properties = feature.get("properties") or {}
    else:
        geometry = feature
        properties = {}

    try:
        geom = shape(geometry)
    except (ShapelyError, KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ShapeError(f"unsupported zone geometry: {exc}") from exc

    shape_type = properties.get("shapeType")
    if isinstance(geom, Point):
        radius = properties.get("radius")
        if radius is None:
            raise ShapeError("circle zone is missing properties.radius")
        try:
            radius_m = float(radius)
        except (TypeError, ValueError) as exc:
            raise ShapeError(f"invalid circle radius: {radius!r}") from exc
        return CircleShape(center=LatLng(lat=geom.y, lng=geom.x), radius_m=radius_m)

    if isinstance(geom, Polygon):
        if shape_type == "rectangle":
            west, south, east, north = geom.bounds
            return RectangleShape(south=south, west=west, north=north, east=east)
        coords = list(geom.exterior.coords)
        if len(coords) > 1 and coords[0] == coords[-1]:
            coords = coords[:-1]
        return PolygonShape(ring=tuple(LatLng(lat=lat, lng=lon) for lon, lat in coords))

    raise ShapeError(f"unsupported zone geometry type '{geom.geom_type}'")


def shape_to_feature(zone_shape: ZoneShape) -> dict[str, Any]:
    """Serialize a zone shape to a GeoJSON Feature."""

    match zone_shape:
        case CircleShape(center=center, radius_m=radius_m):
            geometry = mapping(Point(center.lng, center.lat))
            properties = {"shapeType": "circle", "radius": radius_m}
        case RectangleShape(south=south, west=west, north=north, east=east):
            geometry = mapping(box(west, south, east, north))
            properties = {"shapeType": "rectangle"}
        case PolygonShape(ring=ring):
            if len(ring) < 3:
                raise ShapeError("polygon zone needs at least 3 vertices")
            geometry = mapping(Polygon([(vertex.lng, vertex.lat) for vertex in ring]))
            properties = {"shapeType": "polygon"}
        case _:
            raise ShapeError(f"unknown zone shape {zone_shape!r}")

    return {"type": "Feature", "geometry": json.loads(json.dumps(geometry)), "properties": properties}


def zone_to_dict(zone: Zone) -> dict[str, Any]:
    return {
        "id": zone.id,
        "name": zone.name,
        "color": zone.color,
        "owner_team_id": zone.owner_team_id,
        "owner_team_name": zone.owner_team_name,
        "geojson": shape_to_feature(zone.shape),
        "created_at": zone.created_at,
        "updated_at": zone.updated_at,
    }


def zone_from_dict(payload: dict[str, Any]) -> Zone:
    return Zone(
        id=str(payload["id"]),
        name=payload.get("name") or "",
        shape=shape_from_feature(payload["geojson"]),
        color=payload.get("color") or "#10b981",
        owner_team_id=payload.get("owner_team_id"),
        owner_team_name=payload.get("owner_team_name"),
        created_at=payload.get("created_at") or utc_now_iso(),
        updated_at=payload.get("updated_at") or utc_now_iso(),
    )
