"""Business logic for POI deduplication, reads and lifecycle policy."""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime, timedelta
from typing import Any

from beanie import PydanticObjectId
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from config import (
    POI_LIST_MAX_LIMIT,
    POI_MAX_CATEGORY_LENGTH,
    POI_MAX_DESCRIPTION_LENGTH,
    POI_MAX_NAME_LENGTH,
    POI_ORPHAN_GRACE_DAYS,
)
from core.exceptions import (
    AuthorizationException,
    ConflictException,
    InvalidPoiException,
    ResourceNotFoundException,
    ValidationException,
)
from core.spatial import BoundingBox, is_valid_lon_lat
from db.models import Poi, TrackPoi
from pois import events
from pois.hashing import normalize_name

logger = logging.getLogger(__name__)

UPSERT_MAX_ATTEMPTS = 3

# Filled from a later candidate only while the stored value is still null
MERGE_FIELDS = ("description", "category", "elevation", "owner_id")


class PoiCandidate(BaseModel):
    """A POI observation, from an upload waypoint or manual entry."""

    name: str
    lat: float
    lon: float
    description: str | None = None
    category: str | None = None
    elevation: float | None = None


def coerce_object_id(value: str | PydanticObjectId, label: str = "id") -> PydanticObjectId:
    if isinstance(value, PydanticObjectId):
        return value
    try:
        return PydanticObjectId(str(value))
    except Exception as exc:
        msg = f"Invalid {label}: {value!r}"
        raise ValidationException(msg) from exc


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def validate_candidate(candidate: PoiCandidate) -> dict[str, Any]:
    """
    Check a candidate and return the fields to store.

    Raises:
        InvalidPoiException: empty name, bad coordinates or over-long text
    """
    name = (candidate.name or "").strip()
    if not normalize_name(name):
        msg = "POI name must not be empty"
        raise InvalidPoiException(msg)
    if len(name) > POI_MAX_NAME_LENGTH:
        msg = f"POI name exceeds {POI_MAX_NAME_LENGTH} characters"
        raise InvalidPoiException(msg)
    if not is_valid_lon_lat(candidate.lon, candidate.lat):
        msg = f"Invalid POI coordinates: lat={candidate.lat!r}, lon={candidate.lon!r}"
        raise InvalidPoiException(msg)

    description = _clean_text(candidate.description)
    if description and len(description) > POI_MAX_DESCRIPTION_LENGTH:
        msg = f"POI description exceeds {POI_MAX_DESCRIPTION_LENGTH} characters"
        raise InvalidPoiException(msg)
    category = _clean_text(candidate.category)
    if category and len(category) > POI_MAX_CATEGORY_LENGTH:
        msg = f"POI category exceeds {POI_MAX_CATEGORY_LENGTH} characters"
        raise InvalidPoiException(msg)

    elevation = candidate.elevation
    if elevation is not None and not math.isfinite(elevation):
        elevation = None

    return {
        "name": name,
        "lat": float(candidate.lat),
        "lon": float(candidate.lon),
        "description": description,
        "category": category,
        "elevation": elevation,
    }


class PoiService:
    """Service class for POI operations."""

    @staticmethod
    async def _upsert_row(poi: Poi, now: datetime) -> bool:
        """Insert ``poi`` unless its hash exists; always refresh updated_at."""
        row = poi.model_dump(exclude={"id", "revision_id", "updated_at"})
        collection = Poi.get_motor_collection()
        result = await collection.update_one(
            {"dedup_hash": poi.dedup_hash},
            {"$setOnInsert": row, "$set": {"updated_at": now}},
            upsert=True,
        )
        return result.upserted_id is not None

    @staticmethod
    async def find_or_create(
        candidate: PoiCandidate,
        *,
        owner_id: str | None = None,
    ) -> tuple[Poi, bool]:
        """
        Atomically find or create the POI identified by the candidate's hash.

        On collision, null fields of the stored row are filled from the
        candidate (first non-null wins) and ``updated_at`` is refreshed.
        Concurrent callers with the same key converge on one row.

        Returns:
            Tuple of (stored POI, whether this call created it)

        Raises:
            InvalidPoiException: If the candidate fails validation
        """
        fields = validate_candidate(candidate)
        if owner_id is not None:
            fields["owner_id"] = owner_id
        now = datetime.now(UTC)
        poi = Poi(**fields, created_at=now, updated_at=now)

        created = False
        for attempt in range(1, UPSERT_MAX_ATTEMPTS + 1):
            try:
                created = await PoiService._upsert_row(poi, now)
                break
            except DuplicateKeyError:
                # A concurrent insert won the race; the retry matches its row
                if attempt == UPSERT_MAX_ATTEMPTS:
                    raise
                logger.debug(
                    "Dedup upsert raced for %s, retrying (%d/%d)",
                    poi.dedup_hash,
                    attempt,
                    UPSERT_MAX_ATTEMPTS,
                )

        stored = await Poi.find_one(Poi.dedup_hash == poi.dedup_hash)
        if stored is None:
            msg = f"POI {poi.dedup_hash} vanished after upsert"
            raise ResourceNotFoundException(msg)

        if created:
            logger.info("Created POI %s (%s)", stored.id, stored.name)
            events.publish(
                events.ENTITY_POI,
                events.ACTION_CREATED,
                stored.id,
                [k for k, v in fields.items() if v is not None],
            )
            return stored, True

        collection = Poi.get_motor_collection()
        filled: list[str] = []
        for field in MERGE_FIELDS:
            value = fields.get(field)
            if value is None or getattr(stored, field) is not None:
                continue
            result = await collection.update_one(
                {"_id": stored.id, field: None},
                {"$set": {field: value}},
            )
            if result.modified_count:
                filled.append(field)

        if filled:
            stored = await Poi.get(stored.id)
            logger.info("Merged %s into POI %s", ", ".join(filled), stored.id)
            events.publish(
                events.ENTITY_POI,
                events.ACTION_MERGED,
                stored.id,
                [*filled, "updated_at"],
            )
        else:
            events.publish(
                events.ENTITY_POI,
                events.ACTION_UPDATED,
                stored.id,
                ["updated_at"],
            )
        return stored, False

    @staticmethod
    async def get_poi(poi_id: str | PydanticObjectId) -> Poi:
        oid = coerce_object_id(poi_id, "POI id")
        poi = await Poi.get(oid)
        if not poi:
            msg = f"POI {poi_id} not found"
            raise ResourceNotFoundException(msg)
        return poi

    @staticmethod
    async def list_pois(
        *,
        bbox: BoundingBox | None = None,
        track_id: str | PydanticObjectId | None = None,
        category: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[Poi], int]:
        """
        List POIs with optional viewport, track and category filters.

        Returns:
            Tuple of (page of POIs ordered by name, total matching count)
        """
        limit = max(1, min(int(limit), POI_LIST_MAX_LIMIT))
        offset = max(0, int(offset))

        query: dict[str, Any] = {}
        if bbox is not None:
            query.update(bbox.lon_lat_query())
        if category:
            query["category"] = category
        if track_id is not None:
            tid = coerce_object_id(track_id, "track id")
            links = await TrackPoi.find(TrackPoi.track_id == tid).to_list()
            query["_id"] = {"$in": [link.poi_id for link in links]}

        total = await Poi.find(query).count()
        pois = (
            await Poi.find(query)
            .sort("+name", "+_id")
            .skip(offset)
            .limit(limit)
            .to_list()
        )
        return pois, total

    @staticmethod
    async def find_in_bbox(
        bbox: BoundingBox,
        *,
        category: str | None = None,
    ) -> list[Poi]:
        query = bbox.lon_lat_query()
        if category:
            query["category"] = category
        return await Poi.find(query).sort("+_id").to_list()

    @staticmethod
    async def linked_track_count(poi_id: str | PydanticObjectId) -> int:
        oid = coerce_object_id(poi_id, "POI id")
        return await TrackPoi.find(TrackPoi.poi_id == oid).count()

    @staticmethod
    async def is_linked(poi_id: str | PydanticObjectId) -> bool:
        """Whether any track currently references the POI."""
        oid = coerce_object_id(poi_id, "POI id")
        return await TrackPoi.find_one(TrackPoi.poi_id == oid) is not None

    @staticmethod
    async def delete_poi(
        poi_id: str | PydanticObjectId,
        *,
        owner_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Delete an unlinked POI.

        Raises:
            ResourceNotFoundException: If the POI does not exist
            ConflictException: If any track still links to it
            AuthorizationException: If the POI is owned by someone else
        """
        poi = await PoiService.get_poi(poi_id)

        track_count = await PoiService.linked_track_count(poi.id)
        if track_count:
            msg = "POI is linked to one or more tracks"
            raise ConflictException(msg, {"track_count": track_count})

        if poi.owner_id is not None and poi.owner_id != owner_id:
            msg = "Only the owner can delete this POI"
            raise AuthorizationException(msg)

        await poi.delete()
        logger.info("Deleted POI %s (%s)", poi.id, poi.name)
        events.publish(events.ENTITY_POI, events.ACTION_DELETED, poi.id)
        return {"status": "success", "deleted": str(poi.id)}

    @staticmethod
    def _coerce_utc(dt: datetime) -> datetime:
        """Return a timezone-aware UTC datetime; naive values are taken as UTC."""
        if dt.tzinfo is None:
            return dt.replace(tzinfo=UTC)
        return dt.astimezone(UTC)

    @staticmethod
    async def find_orphaned_pois(
        grace_period_days: int = POI_ORPHAN_GRACE_DAYS,
        *,
        now: datetime | None = None,
    ) -> list[Poi]:
        """Ownerless, unlinked POIs not updated within the grace period."""
        cutoff = PoiService._coerce_utc(now or datetime.now(UTC)) - timedelta(
            days=grace_period_days,
        )
        linked_ids = await TrackPoi.get_motor_collection().distinct("poi_id")
        candidates = await Poi.find(
            {"owner_id": None, "_id": {"$nin": linked_ids}},
        ).to_list()
        return [
            poi
            for poi in candidates
            if PoiService._coerce_utc(poi.updated_at) < cutoff
        ]

    @staticmethod
    async def cleanup_orphaned_pois(
        grace_period_days: int = POI_ORPHAN_GRACE_DAYS,
        *,
        now: datetime | None = None,
    ) -> int:
        """
        Delete ownerless POIs that no track links to.

        Only POIs untouched for ``grace_period_days`` are removed so that an
        upload in progress does not lose the POIs it is about to link.

        Returns:
            Number of POIs deleted
        """
        orphans = await PoiService.find_orphaned_pois(grace_period_days, now=now)
        if not orphans:
            return 0

        # Re-checked per row: a POI refreshed or linked since the scan stays
        linked_ids = set(await TrackPoi.get_motor_collection().distinct("poi_id"))
        collection = Poi.get_motor_collection()
        deleted = 0
        for poi in orphans:
            if poi.id in linked_ids:
                continue
            result = await collection.delete_one(
                {"_id": poi.id, "owner_id": None, "updated_at": poi.updated_at},
            )
            if not result.deleted_count:
                continue
            deleted += 1
            events.publish(
                events.ENTITY_POI,
                events.ACTION_DELETED,
                poi.id,
                reason="orphaned",
            )
        logger.info(
            "Removed %d orphaned POIs older than %d days",
            deleted,
            grace_period_days,
        )
        return deleted
