"""Linking POIs to tracks and keeping their order along the track."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from beanie import PydanticObjectId
from beanie.operators import In

from core.exceptions import InvalidPoiException, ResourceNotFoundException
from db.models import Poi, Track, TrackPoi
from pois import events
from pois.hashing import waypoint_batch_key
from pois.serializers import serialize_poi
from pois.services.poi_service import (
    PoiCandidate,
    PoiService,
    coerce_object_id,
    validate_candidate,
)
from tracks.normalization import try_normalize
from tracks.projection import ProjectionInput, assign_order

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from shapely.geometry import LineString

logger = logging.getLogger(__name__)

SLOW_LINK_SECONDS = 1.0
RESEQUENCE_MAX_ATTEMPTS = 5


@dataclass(frozen=True)
class LinkResult:
    distance_m: float | None
    sequence_order: int


@dataclass
class LinkSummary:
    waypoints: int = 0
    linked: int = 0
    created: int = 0
    duplicates: int = 0
    skipped: int = 0
    poi_ids: list[PydanticObjectId] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "waypoints": self.waypoints,
            "linked": self.linked,
            "created": self.created,
            "duplicates": self.duplicates,
            "skipped": self.skipped,
            "poi_ids": [str(pid) for pid in self.poi_ids],
        }


def _link_signature(links: Sequence[TrackPoi]) -> list[tuple[str, int]]:
    return sorted((str(link.poi_id), link.waypoint_index) for link in links)


def _as_candidate(waypoint: PoiCandidate | Mapping[str, Any]) -> PoiCandidate:
    if isinstance(waypoint, PoiCandidate):
        return waypoint
    return PoiCandidate.model_validate(dict(waypoint))


class PoiLinkService:
    """Service class for track/POI association operations."""

    @staticmethod
    async def _get_track(track_id: str | PydanticObjectId) -> Track:
        tid = coerce_object_id(track_id, "track id")
        track = await Track.get(tid)
        if not track:
            msg = f"Track {track_id} not found"
            raise ResourceNotFoundException(msg)
        return track

    @staticmethod
    async def _upsert_link(
        track_id: PydanticObjectId,
        poi_id: PydanticObjectId,
        waypoint_index: int,
    ) -> bool:
        collection = TrackPoi.get_motor_collection()
        result = await collection.update_one(
            {"track_id": track_id, "poi_id": poi_id},
            {
                "$set": {"waypoint_index": int(waypoint_index)},
                "$setOnInsert": {
                    "distance_from_start_m": None,
                    "sequence_order": 0,
                    "created_at": datetime.now(UTC),
                },
            },
            upsert=True,
        )
        return result.upserted_id is not None

    @staticmethod
    async def _write_order(
        links: list[TrackPoi],
        line: LineString | None,
    ) -> dict[PydanticObjectId, LinkResult]:
        links = sorted(links, key=lambda link: (link.waypoint_index, str(link.id)))
        pois = await Poi.find(In(Poi.id, [link.poi_id for link in links])).to_list()
        by_id = {poi.id: poi for poi in pois}

        inputs = []
        for link in links:
            poi = by_id.get(link.poi_id)
            inputs.append(
                ProjectionInput(
                    point_id=link.poi_id,
                    lon=poi.lon if poi else math.nan,
                    lat=poi.lat if poi else math.nan,
                ),
            )
        ordered = assign_order(line, inputs)

        link_by_poi = {link.poi_id: link for link in links}
        collection = TrackPoi.get_motor_collection()
        results: dict[PydanticObjectId, LinkResult] = {}
        for item in ordered:
            link = link_by_poi[item.point_id]
            results[item.point_id] = LinkResult(item.distance_m, item.sequence_order)
            if (
                link.distance_from_start_m == item.distance_m
                and link.sequence_order == item.sequence_order
            ):
                continue
            await collection.update_one(
                {"_id": link.id},
                {
                    "$set": {
                        "distance_from_start_m": item.distance_m,
                        "sequence_order": item.sequence_order,
                    },
                },
            )
        return results

    @staticmethod
    async def resequence_track(
        track: Track,
        *,
        line: LineString | None = None,
    ) -> dict[PydanticObjectId, LinkResult]:
        """
        Recompute distance and sequence order for every link of ``track``.

        All links are ordered together so sequence numbers stay a dense,
        distance-consistent ranking. Input order for ties is the original
        waypoint position. When another writer adds or removes links while
        the order is being written, the pass is repeated against the new set
        so the last writer always leaves an order for the current links.

        Returns:
            Mapping of POI id to its link result
        """
        if line is None:
            line = try_normalize(track.segments)

        results: dict[PydanticObjectId, LinkResult] = {}
        for attempt in range(1, RESEQUENCE_MAX_ATTEMPTS + 1):
            links = await TrackPoi.find(TrackPoi.track_id == track.id).to_list()
            if not links:
                return {}
            results = await PoiLinkService._write_order(links, line)

            current = await TrackPoi.find(TrackPoi.track_id == track.id).to_list()
            if _link_signature(current) == _link_signature(links):
                return results
            logger.debug(
                "Links of track %s changed while resequencing, retrying (%d/%d)",
                track.id,
                attempt,
                RESEQUENCE_MAX_ATTEMPTS,
            )

        logger.warning(
            "Links of track %s kept changing; sequence order may be stale",
            track.id,
        )
        return results

    @staticmethod
    async def link_poi_to_track(
        track_id: str | PydanticObjectId,
        poi_id: str | PydanticObjectId,
        waypoint_index: int = 0,
    ) -> LinkResult:
        """
        Link one POI to a track and re-rank the whole track.

        A track whose geometry has no linear component keeps the link with a
        null distance.
        """
        track = await PoiLinkService._get_track(track_id)
        poi = await PoiService.get_poi(poi_id)

        created = await PoiLinkService._upsert_link(track.id, poi.id, waypoint_index)
        results = await PoiLinkService.resequence_track(track)
        result = results[poi.id]

        events.publish(
            events.ENTITY_TRACK_POI,
            events.ACTION_LINKED if created else events.ACTION_UPDATED,
            poi.id,
            ["distance_from_start_m", "sequence_order", "waypoint_index"],
            track_id=str(track.id),
        )
        return result

    @staticmethod
    async def link_waypoints(
        track: Track,
        waypoints: Sequence[PoiCandidate | Mapping[str, Any]],
    ) -> LinkSummary:
        """
        Turn an upload's waypoints into POIs linked to ``track``.

        Waypoints repeating an earlier one (same normalized name, coordinates
        equal at 4 decimals) collapse onto the first. Invalid waypoints are
        skipped. The track line is normalized once for the whole batch.
        """
        started = time.perf_counter()
        summary = LinkSummary(waypoints=len(waypoints))
        seen: dict[tuple[str, int, int], PydanticObjectId] = {}
        first_index: dict[PydanticObjectId, int] = {}

        for index, waypoint in enumerate(waypoints):
            try:
                candidate = _as_candidate(waypoint)
                fields = validate_candidate(candidate)
            except (InvalidPoiException, ValueError) as e:
                summary.skipped += 1
                logger.warning("Skipping waypoint %d of track %s: %s", index, track.id, e)
                continue

            key = waypoint_batch_key(fields["name"], fields["lat"], fields["lon"])
            if key in seen:
                summary.duplicates += 1
                continue

            poi, created = await PoiService.find_or_create(candidate)
            seen[key] = poi.id
            if created:
                summary.created += 1
            if poi.id in first_index:
                summary.duplicates += 1
                continue
            first_index[poi.id] = index

        newly_linked: list[PydanticObjectId] = []
        for poi_id, index in first_index.items():
            if await PoiLinkService._upsert_link(track.id, poi_id, index):
                newly_linked.append(poi_id)

        if first_index:
            await PoiLinkService.resequence_track(track, line=try_normalize(track.segments))

        for poi_id in newly_linked:
            events.publish(
                events.ENTITY_TRACK_POI,
                events.ACTION_LINKED,
                poi_id,
                ["distance_from_start_m", "sequence_order", "waypoint_index"],
                track_id=str(track.id),
            )

        summary.poi_ids = list(first_index)
        summary.linked = len(first_index)

        elapsed = time.perf_counter() - started
        logger.info(
            "Linked %d POIs to track %s (%d waypoints, %d new, %d duplicates, %d skipped)",
            summary.linked,
            track.id,
            summary.waypoints,
            summary.created,
            summary.duplicates,
            summary.skipped,
        )
        if elapsed > SLOW_LINK_SECONDS:
            logger.warning(
                "Linking %d waypoints to track %s took %.2fs",
                summary.waypoints,
                track.id,
                elapsed,
            )
        return summary

    @staticmethod
    async def unlink(
        track_id: str | PydanticObjectId,
        poi_id: str | PydanticObjectId,
    ) -> dict[str, Any]:
        """Remove a track/POI link and re-rank the remaining POIs."""
        track = await PoiLinkService._get_track(track_id)
        pid = coerce_object_id(poi_id, "POI id")

        link = await TrackPoi.find_one(
            TrackPoi.track_id == track.id,
            TrackPoi.poi_id == pid,
        )
        if not link:
            msg = f"POI {poi_id} is not linked to track {track_id}"
            raise ResourceNotFoundException(msg)

        await link.delete()
        await PoiLinkService.resequence_track(track)
        events.publish(
            events.ENTITY_TRACK_POI,
            events.ACTION_UNLINKED,
            pid,
            track_id=str(track.id),
        )
        logger.info("Unlinked POI %s from track %s", pid, track.id)
        return {"status": "success", "track_id": str(track.id), "poi_id": str(pid)}

    @staticmethod
    async def unlink_all(track: Track) -> int:
        """Delete every link of ``track``; used when the track is removed."""
        links = await TrackPoi.find(TrackPoi.track_id == track.id).to_list()
        if not links:
            return 0
        await TrackPoi.find(TrackPoi.track_id == track.id).delete()
        for link in links:
            events.publish(
                events.ENTITY_TRACK_POI,
                events.ACTION_UNLINKED,
                link.poi_id,
                track_id=str(track.id),
                reason="track_deleted",
            )
        return len(links)

    @staticmethod
    async def get_track_pois(track_id: str | PydanticObjectId) -> list[dict[str, Any]]:
        """POIs of a track in visiting order, with distance from the start."""
        track = await PoiLinkService._get_track(track_id)
        links = (
            await TrackPoi.find(TrackPoi.track_id == track.id)
            .sort("+sequence_order")
            .to_list()
        )
        pois = await Poi.find(In(Poi.id, [link.poi_id for link in links])).to_list()
        by_id = {poi.id: poi for poi in pois}

        items = []
        for link in links:
            poi = by_id.get(link.poi_id)
            if poi is None:
                continue
            items.append(
                {
                    **serialize_poi(poi),
                    "distance_from_start_m": link.distance_from_start_m,
                    "sequence_order": link.sequence_order,
                },
            )
        return items
