"""Display geometry for tracks: per-segment simplification and gap reporting."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import shapely
from shapely.geometry import LineString

from config import SIMPLIFY_MIN_POINTS
from core.spatial import geodesic_distance_meters
from tracks.normalization import clean_segments
from tracks.tolerance import tolerance_for_zoom

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


def _simplify_segment(coords: list[list[float]], tolerance: float) -> list[list[float]]:
    if len(coords) <= 2:
        return coords
    simplified = shapely.simplify(
        LineString(coords),
        tolerance,
        preserve_topology=False,
    )
    if simplified.is_empty or len(simplified.coords) < 2:
        return [coords[0], coords[-1]]
    return [[x, y] for x, y in simplified.coords]


def compute_segment_gaps(
    segments: Sequence[Sequence[Sequence[float]]],
) -> list[dict[str, Any]]:
    """
    Describe the breaks between consecutive non-empty segments.

    Indexes refer to the segment list as given and to point positions within
    each segment.
    """
    gaps: list[dict[str, Any]] = []
    previous: tuple[int, Sequence[Sequence[float]]] | None = None
    for index, segment in enumerate(segments):
        if not segment:
            continue
        if previous is not None:
            prev_index, prev_segment = previous
            end = prev_segment[-1]
            start = segment[0]
            gaps.append(
                {
                    "kind": "segment",
                    "from": {
                        "lon": end[0],
                        "lat": end[1],
                        "segment_index": prev_index,
                        "point_index": len(prev_segment) - 1,
                    },
                    "to": {
                        "lon": start[0],
                        "lat": start[1],
                        "segment_index": index,
                        "point_index": 0,
                    },
                    "distance_m": geodesic_distance_meters(
                        end[0],
                        end[1],
                        start[0],
                        start[1],
                    ),
                },
            )
        previous = (index, segment)
    return gaps


def simplify_segments(
    segments: Sequence[Sequence[Any]],
    zoom: float,
    *,
    min_points: int = SIMPLIFY_MIN_POINTS,
) -> dict[str, Any]:
    """
    Build the display geometry of a track for ``zoom``.

    Segments are simplified independently so gaps survive; tracks with at
    most ``min_points`` points are returned as stored (after cleaning).
    """
    cleaned = [seg for seg in clean_segments(segments) if seg]
    point_count = sum(len(seg) for seg in cleaned)
    tolerance = tolerance_for_zoom(zoom)
    simplify = point_count > min_points

    display = (
        [_simplify_segment(seg, tolerance.degree_tolerance) for seg in cleaned]
        if simplify
        else cleaned
    )
    display_count = sum(len(seg) for seg in display)
    if simplify:
        logger.debug(
            "Simplified track from %d to %d points at zoom %s",
            point_count,
            display_count,
            zoom,
        )

    return {
        "segments": display,
        "segment_gaps": compute_segment_gaps(display),
        "tolerance": tolerance.to_dict(),
        "simplified": simplify,
        "point_count": point_count,
        "display_point_count": display_count,
    }
