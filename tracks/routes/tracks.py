"""API routes for tracks and zoom tolerance."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from core.api import api_route
from core.spatial import BoundingBox
from tracks.serializers import serialize_track_summary
from tracks.services import TrackService
from tracks.tolerance import resolve_tolerance

logger = logging.getLogger(__name__)
router = APIRouter()


class TrackCreateModel(BaseModel):
    """Parsed upload handed over by the file-format layer."""

    name: str
    description: str | None = None
    categories: list[str] = Field(default_factory=list)
    segments: list[list[list[float]]]
    # Checked one by one when linking; a bad waypoint is skipped, not fatal
    waypoints: list[dict[str, Any]] = Field(default_factory=list)


@router.get("/api/tolerance")
@api_route(logger)
async def get_tolerance(
    zoom: Annotated[float, Query(description="Map zoom level")],
) -> dict[str, float]:
    """Simplification tolerance for a zoom level."""
    return resolve_tolerance(zoom)


@router.post("/api/tracks")
@api_route(logger)
async def create_track(data: TrackCreateModel) -> dict[str, Any]:
    """Store a track and link its waypoints."""
    track, summary = await TrackService.create_track(
        name=data.name,
        segments=data.segments,
        description=data.description,
        categories=data.categories,
        waypoints=data.waypoints,
    )
    return {
        "status": "success",
        "track": serialize_track_summary(track),
        "pois": summary.to_dict(),
    }


@router.get("/api/tracks")
@api_route(logger)
async def list_tracks(
    bbox: Annotated[
        str | None,
        Query(description="Viewport as minLon,minLat,maxLon,maxLat"),
    ] = None,
    zoom: Annotated[float | None, Query(description="Include display geometry")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> dict[str, Any]:
    """List tracks overlapping a viewport."""
    viewport = BoundingBox.from_string(bbox) if bbox else None
    tracks = await TrackService.list_tracks_in_bbox(viewport, zoom=zoom, limit=limit)
    return {"tracks": tracks, "count": len(tracks)}


@router.get("/api/tracks/{track_id}")
@api_route(logger)
async def get_track(track_id: str) -> dict[str, Any]:
    track = await TrackService.get_track(track_id)
    return serialize_track_summary(track)


@router.get("/api/tracks/{track_id}/display")
@api_route(logger)
async def get_track_display(
    track_id: str,
    zoom: Annotated[float, Query(description="Map zoom level")] = 12,
) -> dict[str, Any]:
    """Track geometry simplified for the zoom, with gaps between segments."""
    return await TrackService.get_track_display(track_id, zoom)


@router.delete("/api/tracks/{track_id}")
@api_route(logger)
async def delete_track(track_id: str) -> dict[str, Any]:
    """Delete a track and its POI links."""
    return await TrackService.delete_track(track_id)
