"""
Reduce multi-segment track geometry to one traversable line.

The normalized line is only used for distance-along-track projection. The
stored segments (and the gaps between them) are what the map renders.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import shapely
from shapely.geometry import LineString, MultiLineString

from core.exceptions import NoLinearGeometryError
from core.spatial import GeometryService, geodesic_length_meters

if TYPE_CHECKING:
    from collections.abc import Sequence

    from shapely.geometry.base import BaseGeometry

logger = logging.getLogger(__name__)


def clean_segments(segments: Sequence[Sequence[Any]] | None) -> list[list[list[float]]]:
    """Clean every segment, keeping positions so indexes stay meaningful."""
    return [
        GeometryService.clean_coordinates(segment or [], dedupe=True)
        for segment in segments or []
    ]


def _linear_parts(geom: BaseGeometry) -> list[LineString]:
    """Flatten ``geom`` into its non-empty LineStrings."""
    if geom is None or geom.is_empty:
        return []
    if isinstance(geom, LineString):
        return [geom] if len(geom.coords) >= 2 else []
    parts: list[LineString] = []
    if geom.geom_type in ("MultiLineString", "GeometryCollection"):
        for part in shapely.get_parts(geom):
            parts.extend(_linear_parts(part))
    return parts


def _repair(line: LineString) -> list[LineString]:
    repaired = shapely.make_valid(line) if not line.is_valid else line
    return _linear_parts(repaired)


def normalize(segments: Sequence[Sequence[Any]] | None) -> LineString:
    """
    Return the single dominant line of a track.

    Endpoint-connected segments are merged (travel direction preserved). When
    several disconnected lines remain the longest one wins, with ties going to
    the line containing the earliest original segment.

    Raises:
        NoLinearGeometryError: if no segment survives cleaning and repair
    """
    cleaned = clean_segments(segments)

    parts: list[LineString] = []
    # vertex -> earliest segment index it appears in
    first_segment: dict[tuple[float, float], int] = {}
    for index, coords in enumerate(cleaned):
        if len(coords) < 2:
            continue
        for part in _repair(LineString(coords)):
            parts.append(part)
            for xy in part.coords:
                first_segment.setdefault((xy[0], xy[1]), index)

    if not parts:
        msg = "Track geometry has no linear component"
        raise NoLinearGeometryError(msg, {"segments": len(cleaned)})

    if len(parts) == 1:
        return parts[0]

    merged = shapely.line_merge(MultiLineString(parts), directed=True)
    candidates = _linear_parts(merged)
    if not candidates:
        msg = "Track geometry has no linear component after merging"
        raise NoLinearGeometryError(msg, {"segments": len(cleaned)})
    if len(candidates) == 1:
        return candidates[0]

    def _rank(line: LineString) -> int:
        return min(
            first_segment.get((xy[0], xy[1]), len(cleaned)) for xy in line.coords
        )

    ranked = sorted(
        candidates,
        key=lambda line: (-geodesic_length_meters(line), _rank(line)),
    )
    chosen = ranked[0]
    logger.debug(
        "Normalized %d segments into %d disconnected lines, chose rank %d",
        len(cleaned),
        len(candidates),
        _rank(chosen),
    )
    return chosen


def try_normalize(segments: Sequence[Sequence[Any]] | None) -> LineString | None:
    """Like :func:`normalize` but returns ``None`` instead of raising."""
    try:
        return normalize(segments)
    except NoLinearGeometryError as e:
        logger.warning("Skipping projection: %s", e.message)
        return None
