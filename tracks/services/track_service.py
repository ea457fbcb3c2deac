"""Business logic for track ingestion, reads and deletion."""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from beanie import PydanticObjectId
from pymongo.errors import DuplicateKeyError

from core.exceptions import (
    DuplicateResourceException,
    InvalidGeometryException,
    ResourceNotFoundException,
    ValidationException,
)
from core.spatial import GeometryService, line_length_meters
from db.models import Track
from pois.services.link_service import LinkSummary, PoiLinkService
from pois.services.poi_service import coerce_object_id
from tracks.normalization import clean_segments
from tracks.serializers import serialize_track_summary
from tracks.simplification import simplify_segments

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from core.spatial import BoundingBox
    from pois.services.poi_service import PoiCandidate

logger = logging.getLogger(__name__)

TRACK_LIST_MAX_LIMIT = 500


def compute_content_hash(
    segments: Sequence[Sequence[Sequence[float]]],
    raw_bytes: bytes | None = None,
) -> str:
    """SHA-256 of the uploaded file, or of the canonical segment JSON."""
    if raw_bytes:
        return hashlib.sha256(raw_bytes).hexdigest()
    canonical = json.dumps(segments, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _bbox_of(segments: Sequence[Sequence[Sequence[float]]]) -> dict[str, float]:
    lons = [pt[0] for seg in segments for pt in seg]
    lats = [pt[1] for seg in segments for pt in seg]
    return {
        "min_lon": min(lons),
        "min_lat": min(lats),
        "max_lon": max(lons),
        "max_lat": max(lats),
    }


def _bbox_overlap_query(bbox: BoundingBox) -> dict[str, Any]:
    query: dict[str, Any] = {
        "min_lat": {"$lte": bbox.max_lat},
        "max_lat": {"$gte": bbox.min_lat},
    }
    if bbox.crosses_antimeridian:
        query["$or"] = [
            {"max_lon": {"$gte": bbox.min_lon}},
            {"min_lon": {"$lte": bbox.max_lon}},
        ]
    else:
        query["min_lon"] = {"$lte": bbox.max_lon}
        query["max_lon"] = {"$gte": bbox.min_lon}
    return query


class TrackService:
    """Service class for track operations."""

    @staticmethod
    async def create_track(
        *,
        name: str,
        segments: Sequence[Sequence[Any]],
        description: str | None = None,
        categories: list[str] | None = None,
        waypoints: Sequence[PoiCandidate | Mapping[str, Any]] | None = None,
        raw_bytes: bytes | None = None,
    ) -> tuple[Track, LinkSummary]:
        """
        Store a parsed track and link its waypoints as POIs.

        Args:
            name: Display name
            segments: Ordered segments of [lon, lat] pairs
            description: Optional free text
            categories: Optional track categories
            waypoints: Waypoint records extracted from the file
            raw_bytes: Original file contents, used for the content hash

        Returns:
            Tuple of (stored Track, waypoint link summary)

        Raises:
            ValidationException: If the name is empty
            InvalidGeometryException: If no segment has at least two points
            DuplicateResourceException: If the same content was uploaded before
        """
        name = (name or "").strip()
        if not name:
            msg = "Track name must not be empty"
            raise ValidationException(msg)

        usable = [seg for seg in clean_segments(segments) if len(seg) >= 2]
        if not usable:
            msg = "Track geometry must contain a segment with at least two points"
            raise InvalidGeometryException(msg)

        content_hash = compute_content_hash(usable, raw_bytes)
        existing = await Track.find_one(Track.content_hash == content_hash)
        if existing:
            msg = "Track has already been uploaded"
            raise DuplicateResourceException(msg, {"existing_id": str(existing.id)})

        now = datetime.now(UTC)
        track = Track(
            name=name,
            description=(description or "").strip() or None,
            categories=[c.strip() for c in categories or [] if c and c.strip()],
            segments=usable,
            content_hash=content_hash,
            length_m=sum(line_length_meters(seg) for seg in usable),
            point_count=sum(len(seg) for seg in usable),
            created_at=now,
            updated_at=now,
            **_bbox_of(usable),
        )
        try:
            await track.insert()
        except DuplicateKeyError as exc:
            existing = await Track.find_one(Track.content_hash == content_hash)
            msg = "Track has already been uploaded"
            details = {"existing_id": str(existing.id)} if existing else {}
            raise DuplicateResourceException(msg, details) from exc

        logger.info(
            "Created track %s (%s): %d segments, %d points, %.0f m",
            track.id,
            track.name,
            len(usable),
            track.point_count,
            track.length_m,
        )

        summary = LinkSummary()
        if waypoints:
            try:
                summary = await PoiLinkService.link_waypoints(track, waypoints)
            except Exception:
                # A failed upload leaves no track or links behind
                logger.exception("Linking waypoints failed, removing track %s", track.id)
                await PoiLinkService.unlink_all(track)
                await track.delete()
                raise
        return track, summary

    @staticmethod
    async def get_track(track_id: str | PydanticObjectId) -> Track:
        oid = coerce_object_id(track_id, "track id")
        track = await Track.get(oid)
        if not track:
            msg = f"Track {track_id} not found"
            raise ResourceNotFoundException(msg)
        return track

    @staticmethod
    async def get_track_display(
        track_id: str | PydanticObjectId,
        zoom: float,
    ) -> dict[str, Any]:
        """Track metadata plus display geometry simplified for ``zoom``."""
        track = await TrackService.get_track(track_id)
        display = simplify_segments(track.segments, zoom)
        return {
            **serialize_track_summary(track),
            "geometry": GeometryService.multilinestring_geometry(display["segments"]),
            "segment_gaps": display["segment_gaps"],
            "tolerance": display["tolerance"],
            "simplified": display["simplified"],
            "display_point_count": display["display_point_count"],
        }

    @staticmethod
    async def list_tracks_in_bbox(
        bbox: BoundingBox | None = None,
        *,
        zoom: float | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """
        Tracks whose bounding box overlaps ``bbox``, newest first.

        With ``zoom`` each entry also carries a GeoJSON Feature of its display
        geometry.
        """
        limit = max(1, min(int(limit), TRACK_LIST_MAX_LIMIT))
        query = _bbox_overlap_query(bbox) if bbox is not None else {}
        tracks = await Track.find(query).sort("-created_at").limit(limit).to_list()

        items = []
        for track in tracks:
            item = serialize_track_summary(track)
            if zoom is not None:
                display = simplify_segments(track.segments, zoom)
                item["feature"] = GeometryService.feature_from_geometry(
                    GeometryService.multilinestring_geometry(display["segments"]),
                    {"id": item["id"], "name": track.name},
                )
            items.append(item)
        return items

    @staticmethod
    async def delete_track(track_id: str | PydanticObjectId) -> dict[str, Any]:
        """Delete a track and its POI links; POIs themselves are kept."""
        track = await TrackService.get_track(track_id)
        removed_links = await PoiLinkService.unlink_all(track)
        await track.delete()
        logger.info("Deleted track %s and %d POI links", track.id, removed_links)
        return {
            "status": "success",
            "deleted": str(track.id),
            "deleted_links": removed_links,
        }
