"""Serialization utilities for POI responses."""

from typing import Any

from core.serialization import serialize_datetime
from db.models import Poi


def serialize_poi(poi: Poi) -> dict[str, Any]:
    """Convert a Poi document to a JSON-compatible dict."""
    return {
        "id": str(poi.id),
        "name": poi.name,
        "description": poi.description,
        "category": poi.category,
        "elevation": poi.elevation,
        "lat": poi.lat,
        "lon": poi.lon,
        "dedup_hash": poi.dedup_hash,
        "owner_id": poi.owner_id,
        "created_at": serialize_datetime(poi.created_at),
        "updated_at": serialize_datetime(poi.updated_at),
    }
