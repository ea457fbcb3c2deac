"""Serialization utilities for track responses."""

from typing import Any

from core.serialization import serialize_datetime
from db.models import Track


def serialize_track_summary(track: Track) -> dict[str, Any]:
    """Track metadata without geometry."""
    return {
        "id": str(track.id),
        "name": track.name,
        "description": track.description,
        "categories": track.categories,
        "content_hash": track.content_hash,
        "length_m": track.length_m,
        "point_count": track.point_count,
        "segment_count": len(track.segments),
        "bbox": [track.min_lon, track.min_lat, track.max_lon, track.max_lat],
        "created_at": serialize_datetime(track.created_at),
        "updated_at": serialize_datetime(track.updated_at),
    }
