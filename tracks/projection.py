"""Distance-along-track projection and visiting order for POIs."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from shapely.geometry import Point
from shapely.ops import substring

from core.spatial import geodesic_length_meters

if TYPE_CHECKING:
    from collections.abc import Sequence

    from shapely.geometry import LineString


@dataclass(frozen=True)
class Projection:
    fraction: float
    distance_m: float


@dataclass(frozen=True)
class ProjectionInput:
    point_id: Any
    lon: float
    lat: float


@dataclass(frozen=True)
class OrderedProjection:
    point_id: Any
    distance_m: float | None
    sequence_order: int


def project(line: LineString | None, lon: float, lat: float) -> Projection | None:
    """
    Locate ``(lon, lat)`` on ``line``.

    The closest-point fraction is found in lon/lat space, then the sub-line up
    to it is measured on the WGS84 ellipsoid. Returns ``None`` for lines with
    fewer than two points or a non-finite point.
    """
    if line is None or line.is_empty or len(line.coords) < 2:
        return None
    if not (math.isfinite(lon) and math.isfinite(lat)):
        return None

    fraction = line.project(Point(lon, lat), normalized=True)
    if not math.isfinite(fraction):
        return None
    fraction = min(max(fraction, 0.0), 1.0)
    if fraction <= 0.0:
        return Projection(0.0, 0.0)

    head = substring(line, 0.0, fraction, normalized=True)
    if head.geom_type != "LineString":
        return Projection(fraction, 0.0)
    return Projection(fraction, geodesic_length_meters(head))


def assign_order(
    line: LineString | None,
    points: Sequence[ProjectionInput],
) -> list[OrderedProjection]:
    """
    Project every point and rank them along the track.

    Sorting is stable on distance so equal distances keep input order. Points
    without a projection sort after all projected ones, in input order.
    """
    distances: list[float | None] = []
    for point in points:
        projection = project(line, point.lon, point.lat)
        distances.append(projection.distance_m if projection else None)

    order = sorted(
        range(len(points)),
        key=lambda i: (distances[i] is None, distances[i] or 0.0),
    )
    return [
        OrderedProjection(
            point_id=points[i].point_id,
            distance_m=distances[i],
            sequence_order=rank,
        )
        for rank, i in enumerate(order)
    ]
