"""Beanie ODM document models for MongoDB collections.

This module defines all document models using Beanie ODM, which provides:
- Automatic Pydantic validation
- Built-in async CRUD operations
- Proper ObjectId/datetime serialization
- Index definitions at the model level

Usage:
    from db.models import Poi, Track, TrackPoi

    # Find a POI by its dedup hash
    poi = await Poi.find_one(Poi.dedup_hash == "...")

    # Links of a track in visiting order
    links = await TrackPoi.find(TrackPoi.track_id == track.id).sort("+sequence_order").to_list()
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from beanie import Document, PydanticObjectId
from pydantic import Field, field_validator, model_validator
from pymongo import ASCENDING, DESCENDING, IndexModel

from core.spatial import GeometryService
from pois.hashing import compute_dedup_hash


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Track(Document):
    """Uploaded GPS track with its raw multi-segment geometry."""

    name: str
    description: str | None = None
    categories: list[str] = Field(default_factory=list)
    # Ordered segments of [lon, lat] pairs; gaps between segments are kept
    segments: list[list[list[float]]]
    content_hash: str
    length_m: float = 0.0
    point_count: int = 0
    min_lon: float | None = None
    min_lat: float | None = None
    max_lon: float | None = None
    max_lat: float | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    class Settings:
        name = "tracks"
        indexes = [
            IndexModel(
                [("content_hash", ASCENDING)],
                name="tracks_content_hash_idx",
                unique=True,
            ),
            IndexModel([("created_at", DESCENDING)], name="tracks_created_at_idx"),
            IndexModel(
                [("min_lon", ASCENDING), ("max_lon", ASCENDING)],
                name="tracks_bbox_lon_idx",
            ),
        ]


class Poi(Document):
    """Point of interest, unique by its dedup hash."""

    name: str
    description: str | None = None
    category: str | None = None
    elevation: float | None = None
    lat: float
    lon: float
    location: dict[str, Any] | None = None
    dedup_hash: str = ""
    # Set only for manually created POIs
    owner_id: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="before")
    @classmethod
    def derive_identity(cls, data: Any) -> Any:
        """Recompute dedup_hash and location from name/lat/lon on every build."""
        if not isinstance(data, dict):
            return data
        name, lat, lon = data.get("name"), data.get("lat"), data.get("lon")
        if name is None or lat is None or lon is None:
            return data
        return {
            **data,
            "dedup_hash": compute_dedup_hash(name, lat, lon),
            "location": GeometryService.point_geometry(lon, lat),
        }

    class Settings:
        name = "pois"
        indexes = [
            IndexModel(
                [("dedup_hash", ASCENDING)],
                name="pois_dedup_hash_idx",
                unique=True,
            ),
            IndexModel([("location", "2dsphere")], name="pois_location_2dsphere_idx"),
            IndexModel(
                [("lat", ASCENDING), ("lon", ASCENDING)],
                name="pois_lat_lon_idx",
            ),
            IndexModel([("category", ASCENDING)], name="pois_category_idx"),
            IndexModel(
                [("owner_id", ASCENDING)],
                name="pois_owner_id_idx",
                sparse=True,
            ),
        ]


class TrackPoi(Document):
    """Association between a track and a POI, ordered along the track."""

    track_id: PydanticObjectId
    poi_id: PydanticObjectId
    # Position of the originating waypoint in the upload; breaks distance ties
    waypoint_index: int = 0
    distance_from_start_m: float | None = None
    sequence_order: int = 0
    created_at: datetime = Field(default_factory=_utcnow)

    class Settings:
        name = "track_pois"
        indexes = [
            IndexModel(
                [("track_id", ASCENDING), ("poi_id", ASCENDING)],
                name="track_pois_track_poi_idx",
                unique=True,
            ),
            IndexModel(
                [("track_id", ASCENDING), ("sequence_order", ASCENDING)],
                name="track_pois_sequence_idx",
            ),
            IndexModel([("poi_id", ASCENDING)], name="track_pois_poi_id_idx"),
        ]


ALL_DOCUMENT_MODELS = [
    Track,
    Poi,
    TrackPoi,
]
