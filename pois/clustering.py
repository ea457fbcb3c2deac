"""
Viewport clustering of POIs for map rendering.

Points are projected to Web Mercator pixel space at the requested zoom and
bucketed into square cells of ``max_cluster_radius_px`` anchored at the
viewport's north-west corner. Clusters are ephemeral: nothing here is
persisted and cluster keys are only meaningful within one response.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field
from pyproj import Transformer

from config import (
    CLUSTER_DISABLE_AT_ZOOM,
    CLUSTER_EXPAND_THRESHOLD,
    CLUSTER_MAX_RADIUS_PX,
    CLUSTER_MAX_ZOOM,
)
from core.spatial import is_valid_lon_lat

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from core.spatial import BoundingBox

logger = logging.getLogger(__name__)

TILE_SIZE_PX = 256
MERCATOR_MAX_LAT = 85.05112878
# Half the extent of EPSG:3857 in meters
MERCATOR_HALF_EXTENT = 20037508.342789244

CLICK_EXPAND = "expand"
CLICK_ZOOM_TO_BOUNDS = "zoom_to_bounds"

_to_mercator = Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)


class ClusterConfig(BaseModel):
    """Clustering knobs; defaults come from config.py."""

    max_cluster_radius_px: float = Field(default=CLUSTER_MAX_RADIUS_PX, gt=0)
    # Clusters with fewer members than this expand in place
    expand_threshold: int = Field(default=CLUSTER_EXPAND_THRESHOLD, ge=1)
    min_cluster_size: int = Field(default=2, ge=2)
    max_zoom: float = CLUSTER_MAX_ZOOM
    disable_clustering_at_zoom: float | None = CLUSTER_DISABLE_AT_ZOOM


@dataclass(frozen=True)
class ClusterPoint:
    id: Any
    lat: float
    lon: float
    category: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ClusterPoint:
        return cls(
            id=data.get("id"),
            lat=data.get("lat"),
            lon=data.get("lon"),
            category=data.get("category"),
        )


@dataclass
class SinglePoint:
    id: Any
    lon: float
    lat: float
    category: str | None = None
    kind: str = "point"

    @property
    def member_ids(self) -> list[Any]:
        return [self.id]

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "id": str(self.id),
            "lon": self.lon,
            "lat": self.lat,
            "category": self.category,
        }


@dataclass
class Cluster:
    key: str
    lon: float
    lat: float
    count: int
    member_ids: list[Any]
    bounds: tuple[float, float, float, float]
    categories: list[str] = field(default_factory=list)
    category: str | None = None
    expandable: bool = True
    click_action: str = CLICK_EXPAND
    kind: str = "cluster"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "key": self.key,
            "lon": self.lon,
            "lat": self.lat,
            "count": self.count,
            "member_ids": [str(m) for m in self.member_ids],
            "bounds": list(self.bounds),
            "categories": self.categories,
            "category": self.category,
            "expandable": self.expandable,
            "click_action": self.click_action,
        }


def _coerce_point(point: ClusterPoint | Mapping[str, Any]) -> ClusterPoint:
    if isinstance(point, ClusterPoint):
        return point
    return ClusterPoint.from_mapping(point)


def _is_usable_point(point: ClusterPoint) -> bool:
    return is_valid_lon_lat(point.lon, point.lat)


def _clamp_lat(lat: float) -> float:
    return max(-MERCATOR_MAX_LAT, min(MERCATOR_MAX_LAT, lat))


def _to_pixels(
    lons: list[float],
    lats: list[float],
    world_px: float,
) -> tuple[list[float], list[float]]:
    xs, ys = _to_mercator.transform(lons, [_clamp_lat(lat) for lat in lats])
    scale = world_px / (2 * MERCATOR_HALF_EXTENT)
    px = [(x + MERCATOR_HALF_EXTENT) * scale for x in xs]
    py = [(MERCATOR_HALF_EXTENT - y) * scale for y in ys]
    return px, py


def _build_cluster(
    key: str,
    members: list[ClusterPoint],
    zoom: float,
    config: ClusterConfig,
) -> Cluster:
    lons = [float(m.lon) for m in members]
    lats = [float(m.lat) for m in members]
    count = len(members)
    categories = sorted({m.category for m in members if m.category})
    shared = (
        categories[0]
        if len(categories) == 1 and all(m.category for m in members)
        else None
    )
    expandable = count < config.expand_threshold or zoom >= config.max_zoom
    return Cluster(
        key=key,
        lon=sum(lons) / count,
        lat=sum(lats) / count,
        count=count,
        member_ids=[m.id for m in members],
        bounds=(min(lons), min(lats), max(lons), max(lats)),
        categories=categories,
        category=shared,
        expandable=expandable,
        click_action=CLICK_EXPAND if expandable else CLICK_ZOOM_TO_BOUNDS,
    )


def cluster_points(
    points: Iterable[ClusterPoint | Mapping[str, Any]],
    viewport: BoundingBox | None,
    zoom: float,
    config: ClusterConfig | None = None,
) -> list[Cluster | SinglePoint]:
    """
    Group points into clusters and singletons for one viewport and zoom.

    Every valid input point appears exactly once in the output, either as a
    cluster member or as a SinglePoint. Output is ordered by descending size,
    then by the input position of each group's first member.
    """
    config = config or ClusterConfig()
    zoom = float(zoom)

    valid: list[ClusterPoint] = []
    for raw in points:
        point = _coerce_point(raw)
        if _is_usable_point(point):
            valid.append(point)
        else:
            logger.debug("Dropping point %s with invalid coordinates", point.id)

    if not valid:
        return []

    disabled = (
        config.disable_clustering_at_zoom is not None
        and zoom >= config.disable_clustering_at_zoom
    )
    if disabled or not math.isfinite(zoom):
        return [SinglePoint(p.id, float(p.lon), float(p.lat), p.category) for p in valid]

    world_px = TILE_SIZE_PX * (2.0**zoom)
    px, py = _to_pixels(
        [float(p.lon) for p in valid],
        [float(p.lat) for p in valid],
        world_px,
    )

    if viewport is not None:
        (origin_x,), (origin_y,) = _to_pixels(
            [viewport.min_lon],
            [viewport.max_lat],
            world_px,
        )
    else:
        origin_x, origin_y = 0.0, 0.0

    cell = config.max_cluster_radius_px
    cells: dict[tuple[int, int], list[int]] = {}
    for i in range(len(valid)):
        if not (math.isfinite(px[i]) and math.isfinite(py[i])):
            logger.debug("Dropping point %s outside the projection", valid[i].id)
            continue
        cx = math.floor((px[i] - origin_x) / cell)
        cy = math.floor((py[i] - origin_y) / cell)
        cells.setdefault((cx, cy), []).append(i)

    groups: list[tuple[int, int, Cluster | SinglePoint]] = []
    for (cx, cy), indexes in cells.items():
        if len(indexes) >= config.min_cluster_size:
            members = [valid[i] for i in indexes]
            key = f"{zoom:g}:{cx}:{cy}"
            groups.append(
                (len(indexes), indexes[0], _build_cluster(key, members, zoom, config)),
            )
        else:
            for i in indexes:
                p = valid[i]
                groups.append(
                    (1, i, SinglePoint(p.id, float(p.lon), float(p.lat), p.category)),
                )

    groups.sort(key=lambda g: (-g[0], g[1]))
    return [g[2] for g in groups]
