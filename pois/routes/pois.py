"""API routes for POIs and POI clusters."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Header, Query

from config import POI_LIST_MAX_LIMIT
from core.api import api_route
from core.exceptions import AuthorizationException
from core.spatial import BoundingBox
from pois.clustering import ClusterConfig, ClusterPoint, cluster_points
from pois.serializers import serialize_poi
from pois.services import PoiCandidate, PoiService

logger = logging.getLogger(__name__)
router = APIRouter()

OwnerHeader = Annotated[
    str | None,
    Header(alias="X-Owner-Id", description="Owner reference for manual POIs"),
]


@router.get("/api/pois")
@api_route(logger)
async def list_pois(
    bbox: Annotated[
        str | None,
        Query(description="Viewport as minLon,minLat,maxLon,maxLat"),
    ] = None,
    track_id: Annotated[str | None, Query(description="Only POIs of this track")] = None,
    category: Annotated[str | None, Query()] = None,
    limit: Annotated[int, Query(ge=1, le=POI_LIST_MAX_LIMIT)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> dict[str, Any]:
    """List POIs with optional filters and pagination."""
    viewport = BoundingBox.from_string(bbox) if bbox else None
    pois, total = await PoiService.list_pois(
        bbox=viewport,
        track_id=track_id,
        category=category,
        limit=limit,
        offset=offset,
    )
    return {
        "pois": [serialize_poi(p) for p in pois],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/api/pois/clusters")
@api_route(logger)
async def get_poi_clusters(
    bbox: Annotated[str, Query(description="Viewport as minLon,minLat,maxLon,maxLat")],
    zoom: Annotated[float, Query(description="Map zoom level")],
    category: Annotated[str | None, Query()] = None,
    expand_threshold: Annotated[int | None, Query(ge=1)] = None,
    max_cluster_radius_px: Annotated[float | None, Query(gt=0)] = None,
) -> dict[str, Any]:
    """Cluster the POIs inside a viewport for rendering."""
    viewport = BoundingBox.from_string(bbox)
    overrides = {
        key: value
        for key, value in {
            "expand_threshold": expand_threshold,
            "max_cluster_radius_px": max_cluster_radius_px,
        }.items()
        if value is not None
    }
    config = ClusterConfig(**overrides)

    pois = await PoiService.find_in_bbox(viewport, category=category)
    points = [ClusterPoint(p.id, p.lat, p.lon, p.category) for p in pois]
    items = cluster_points(points, viewport, zoom, config)
    return {
        "items": [item.to_dict() for item in items],
        "point_count": len(points),
        "zoom": zoom,
    }


@router.get("/api/pois/{poi_id}")
@api_route(logger)
async def get_poi(poi_id: str) -> dict[str, Any]:
    poi = await PoiService.get_poi(poi_id)
    return serialize_poi(poi)


@router.get("/api/pois/{poi_id}/linked")
@api_route(logger)
async def get_poi_link_state(poi_id: str) -> dict[str, Any]:
    """Whether any track still references the POI."""
    count = await PoiService.linked_track_count(poi_id)
    return {"poi_id": poi_id, "linked": count > 0, "track_count": count}


@router.post("/api/pois")
@api_route(logger)
async def create_poi(
    data: PoiCandidate,
    owner_id: OwnerHeader = None,
) -> dict[str, Any]:
    """Create (or find) a manually entered POI."""
    if not owner_id:
        msg = "Manual POIs require an owner"
        raise AuthorizationException(msg)
    poi, created = await PoiService.find_or_create(data, owner_id=owner_id)
    return {"status": "success", "created": created, "poi": serialize_poi(poi)}


@router.delete("/api/pois/{poi_id}")
@api_route(logger)
async def delete_poi(poi_id: str, owner_id: OwnerHeader = None) -> dict[str, Any]:
    """Delete a POI that no track links to."""
    return await PoiService.delete_poi(poi_id, owner_id=owner_id)
