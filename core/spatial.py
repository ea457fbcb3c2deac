"""
Spatial and geometry utilities.

Centralizes coordinate validation, bounding boxes, GeoJSON helpers and
geodesic distance/length calculations on the WGS84 ellipsoid.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import pyproj

from core.exceptions import ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from shapely.geometry.base import BaseGeometry


GEOD = pyproj.Geod(ellps="WGS84")


def is_valid_lon_lat(lon: Any, lat: Any) -> bool:
    """Return True for finite numbers inside the WGS84 lon/lat range."""
    try:
        lon_f = float(lon)
        lat_f = float(lat)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lon_f) and math.isfinite(lat_f)):
        return False
    return -180 <= lon_f <= 180 and -90 <= lat_f <= 90


class GeometryService:
    """Authoritative geometry operations for the application."""

    @staticmethod
    def validate_coordinate_pair(
        coord: Sequence[Any],
    ) -> tuple[bool, list[float] | None]:
        """Validate a [lon, lat] coordinate pair."""
        if not isinstance(coord, (list, tuple)) or len(coord) < 2:
            return False, None
        try:
            lon = float(coord[0])
            lat = float(coord[1])
        except (TypeError, ValueError, IndexError):
            return False, None
        if not is_valid_lon_lat(lon, lat):
            return False, None
        return True, [lon, lat]

    @staticmethod
    def clean_coordinates(
        coords: Iterable[Sequence[Any]],
        *,
        dedupe: bool = True,
    ) -> list[list[float]]:
        """Drop invalid pairs and, optionally, consecutive duplicates."""
        cleaned: list[list[float]] = []
        for coord in coords or ():
            is_valid, pair = GeometryService.validate_coordinate_pair(coord)
            if not is_valid or pair is None:
                continue
            if dedupe and cleaned and cleaned[-1] == pair:
                continue
            cleaned.append(pair)
        return cleaned

    @staticmethod
    def point_geometry(lon: float, lat: float) -> dict[str, Any]:
        """Build a GeoJSON Point."""
        return {"type": "Point", "coordinates": [float(lon), float(lat)]}

    @staticmethod
    def multilinestring_geometry(
        segments: Sequence[Sequence[Sequence[float]]],
    ) -> dict[str, Any]:
        """Build a GeoJSON MultiLineString from segment coordinate lists."""
        return {
            "type": "MultiLineString",
            "coordinates": [[list(pt[:2]) for pt in seg] for seg in segments],
        }

    @staticmethod
    def feature_from_geometry(
        geometry: dict[str, Any] | None,
        properties: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build a GeoJSON Feature from geometry and properties."""
        return {
            "type": "Feature",
            "geometry": geometry,
            "properties": properties or {},
        }


@dataclass(frozen=True)
class BoundingBox:
    """
    Lon/lat viewport.

    ``min_lon > max_lon`` denotes a box that crosses the antimeridian.
    """

    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    def __post_init__(self) -> None:
        values = (self.min_lon, self.min_lat, self.max_lon, self.max_lat)
        if not all(isinstance(v, (int, float)) and math.isfinite(v) for v in values):
            msg = "Bounding box values must be finite numbers"
            raise ValidationError(msg)
        if not (
            is_valid_lon_lat(self.min_lon, self.min_lat)
            and is_valid_lon_lat(self.max_lon, self.max_lat)
        ):
            msg = "Bounding box is outside the WGS84 range"
            raise ValidationError(msg)
        if self.min_lat > self.max_lat:
            msg = "Bounding box min_lat must not exceed max_lat"
            raise ValidationError(msg)

    @classmethod
    def from_string(cls, value: str) -> BoundingBox:
        """Parse ``"minLon,minLat,maxLon,maxLat"``."""
        parts = [p.strip() for p in (value or "").split(",")]
        if len(parts) != 4:
            msg = f"Invalid bbox format: {value!r}"
            raise ValidationError(msg)
        try:
            min_lon, min_lat, max_lon, max_lat = (float(p) for p in parts)
        except ValueError as exc:
            msg = f"Invalid bbox format: {value!r}"
            raise ValidationError(msg) from exc
        return cls(min_lon, min_lat, max_lon, max_lat)

    @property
    def crosses_antimeridian(self) -> bool:
        return self.min_lon > self.max_lon

    def lon_lat_query(
        self,
        lon_field: str = "lon",
        lat_field: str = "lat",
    ) -> dict[str, Any]:
        """Mongo filter selecting documents whose lon/lat lie in the box."""
        lat_clause = {lat_field: {"$gte": self.min_lat, "$lte": self.max_lat}}
        if self.crosses_antimeridian:
            return {
                **lat_clause,
                "$or": [
                    {lon_field: {"$gte": self.min_lon}},
                    {lon_field: {"$lte": self.max_lon}},
                ],
            }
        return {**lat_clause, lon_field: {"$gte": self.min_lon, "$lte": self.max_lon}}


def geodesic_distance_meters(
    lon1: float,
    lat1: float,
    lon2: float,
    lat2: float,
) -> float:
    """Return the geodesic distance between two lon/lat points in meters."""
    _, _, dist = GEOD.inv(lon1, lat1, lon2, lat2)
    return abs(dist)


def line_length_meters(coords: Sequence[Sequence[float]]) -> float:
    """Geodesic length of a lon/lat coordinate sequence."""
    if len(coords) < 2:
        return 0.0
    lons = [float(c[0]) for c in coords]
    lats = [float(c[1]) for c in coords]
    return abs(GEOD.line_length(lons, lats))


def geodesic_length_meters(geom: BaseGeometry) -> float:
    """Return the geodesic length of a LineString or MultiLineString in meters."""
    if geom is None or geom.is_empty:
        return 0.0
    geom_type = geom.geom_type
    if geom_type == "LineString":
        return line_length_meters(list(geom.coords))
    if geom_type == "MultiLineString":
        return sum(line_length_meters(list(line.coords)) for line in geom.geoms)
    return 0.0
