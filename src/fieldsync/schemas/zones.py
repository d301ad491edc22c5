"""Pydantic request/response models for zone endpoints."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Sequence, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from ..models.domain import CircleShape, LatLng, PolygonShape, RectangleShape, Zone, ZoneShape
from ..models.geojson import shape_to_feature


class CircleInput(BaseModel):
    type: Literal["circle"] = "circle"
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)
    radius_m: float = Field(..., gt=0.0, description="Radius in metres.")

    def to_shape(self) -> ZoneShape:
        return CircleShape(center=LatLng(self.lat, self.lng), radius_m=self.radius_m)


class PolygonInput(BaseModel):
    type: Literal["polygon"] = "polygon"
    coordinates: Sequence[tuple[float, float]] = Field(..., description="Ordered (lat, lng) vertices.")

    @field_validator("coordinates")
    @classmethod
    def validate_coordinates(cls, value: Sequence[tuple[float, float]]) -> Sequence[tuple[float, float]]:
        points = list(value)
        if len(points) > 1 and points[0] == points[-1]:
            points = points[:-1]
        if len(points) < 3:
            raise ValueError("a polygon needs at least 3 distinct vertices")
        return points

    def to_shape(self) -> ZoneShape:
        return PolygonShape(ring=tuple(LatLng(lat, lng) for lat, lng in self.coordinates))


class RectangleInput(BaseModel):
    type: Literal["rectangle"] = "rectangle"
    south: float = Field(..., ge=-90.0, le=90.0)
    west: float = Field(..., ge=-180.0, le=180.0)
    north: float = Field(..., ge=-90.0, le=90.0)
    east: float = Field(..., ge=-180.0, le=180.0)

    @model_validator(mode="after")
    def validate_bounds(self) -> "RectangleInput":
        if self.south >= self.north or self.west >= self.east:
            raise ValueError("rectangle bounds must satisfy south < north and west < east")
        return self

    def to_shape(self) -> ZoneShape:
        return RectangleShape(south=self.south, west=self.west, north=self.north, east=self.east)


ShapeInput = Annotated[Union[CircleInput, PolygonInput, RectangleInput], Field(discriminator="type")]


class ZoneCreate(BaseModel):
    name: str = Field(..., min_length=1)
    shape: ShapeInput
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")
    binome_id: Optional[str] = None
    binome_name: Optional[str] = None


class ZoneUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    shape: Optional[ShapeInput] = None
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")


class ZoneAssignment(BaseModel):
    binome_id: Optional[str] = Field(default=None, description="Binôme username; null clears the assignment.")
    binome_name: Optional[str] = None


class ZoneModel(BaseModel):
    id: str
    name: str
    color: str
    owner_team_id: Optional[str] = None
    owner_team_name: Optional[str] = None
    geojson: dict[str, Any]
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, zone: Zone) -> "ZoneModel":
        return cls(
            id=zone.id,
            name=zone.name,
            color=zone.color,
            owner_team_id=zone.owner_team_id,
            owner_team_name=zone.owner_team_name,
            geojson=shape_to_feature(zone.shape),
            created_at=zone.created_at,
            updated_at=zone.updated_at,
        )
