"""API routes for the POIs of a track."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body

from core.api import api_route
from pois.services import PoiLinkService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/tracks/{track_id}/pois")
@api_route(logger)
async def get_track_pois(track_id: str) -> dict[str, Any]:
    """POIs of a track in visiting order."""
    pois = await PoiLinkService.get_track_pois(track_id)
    return {"track_id": track_id, "pois": pois, "count": len(pois)}


@router.put("/api/tracks/{track_id}/pois/{poi_id}")
@api_route(logger)
async def link_poi(
    track_id: str,
    poi_id: str,
    waypoint_index: Annotated[int, Body(embed=True, ge=0)] = 0,
) -> dict[str, Any]:
    """Link a POI to a track and return its position along the track."""
    result = await PoiLinkService.link_poi_to_track(track_id, poi_id, waypoint_index)
    return {
        "track_id": track_id,
        "poi_id": poi_id,
        "distance_from_start_m": result.distance_m,
        "sequence_order": result.sequence_order,
    }


@router.delete("/api/tracks/{track_id}/pois/{poi_id}")
@api_route(logger)
async def unlink_poi(track_id: str, poi_id: str) -> dict[str, Any]:
    """Remove a POI from a track."""
    return await PoiLinkService.unlink(track_id, poi_id)
