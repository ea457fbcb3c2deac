"""
Zoom-adaptive simplification tolerance.

``ZOOM_TOLERANCE_TABLE`` is the only place the zoom banding is defined. The
data-layer SQL function and the browser module are rendered from it by
``scripts/python/generate_tolerance_mirrors.py`` so every code path simplifies
a track with identical tolerances.

Meter annotations are approximations at the reference latitude of 55 degrees.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Final


@dataclass(frozen=True)
class ZoomTolerance:
    degree_tolerance: float
    meter_approx: float

    def to_dict(self) -> dict[str, float]:
        return {
            "degree_tolerance": self.degree_tolerance,
            "meter_approx": self.meter_approx,
        }


# (inclusive max zoom, tolerance), coarse to fine; the last bucket is open-ended
ZOOM_TOLERANCE_TABLE: Final[tuple[tuple[float, ZoomTolerance], ...]] = (
    (8, ZoomTolerance(0.001, 100.0)),
    (10, ZoomTolerance(0.0005, 50.0)),
    (12, ZoomTolerance(0.00025, 25.0)),
    (14, ZoomTolerance(0.0001, 10.0)),
    (16, ZoomTolerance(0.00005, 5.0)),
    (math.inf, ZoomTolerance(0.00002, 2.0)),
)

COARSEST: Final[ZoomTolerance] = ZOOM_TOLERANCE_TABLE[0][1]
FINEST: Final[ZoomTolerance] = ZOOM_TOLERANCE_TABLE[-1][1]


def tolerance_for_zoom(zoom: float) -> ZoomTolerance:
    """
    Map a display zoom level to a simplification tolerance.

    Total over all floats: anything below the first bucket clamps to the
    coarsest tolerance, ``+inf`` and NaN resolve to the finest.
    """
    zoom = float(zoom)
    if math.isnan(zoom):
        return FINEST
    for max_zoom, tolerance in ZOOM_TOLERANCE_TABLE:
        if zoom <= max_zoom:
            return tolerance
    return FINEST


def resolve_tolerance(zoom: float) -> dict[str, float]:
    """Tolerance for ``zoom`` as a JSON-ready mapping."""
    return tolerance_for_zoom(zoom).to_dict()


def _bounded_rows() -> list[tuple[float, ZoomTolerance]]:
    return [(z, t) for z, t in ZOOM_TOLERANCE_TABLE if math.isfinite(z)]


def _format_zoom(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def _format_decimal(value: float) -> str:
    return format(Decimal(repr(value)), "f")


def render_sql_function(name: str = "get_simplify_tolerance") -> str:
    """Render the PostgreSQL mirror of the zoom tolerance table."""
    lines = [
        "-- Generated by scripts/python/generate_tolerance_mirrors.py. Do not edit.",
        f"CREATE OR REPLACE FUNCTION {name}(zoom_level DOUBLE PRECISION)",
        "RETURNS DOUBLE PRECISION AS $$",
        "BEGIN",
        "    RETURN CASE",
    ]
    for max_zoom, tolerance in _bounded_rows():
        lines.append(
            f"        WHEN zoom_level <= {_format_zoom(max_zoom)} "
            f"THEN {_format_decimal(tolerance.degree_tolerance)}  -- ~{tolerance.meter_approx:g} m",
        )
    lines.extend(
        [
            f"        ELSE {_format_decimal(FINEST.degree_tolerance)}  -- ~{FINEST.meter_approx:g} m",
            "    END;",
            "END;",
            "$$ LANGUAGE plpgsql IMMUTABLE;",
            "",
        ],
    )
    return "\n".join(lines)


def render_js_module(export_name: str = "ZOOM_TOLERANCE_TABLE") -> str:
    """Render the browser mirror as an ES module."""
    rows = [
        {
            "maxZoom": max_zoom,
            "degreeTolerance": tolerance.degree_tolerance,
            "meterApprox": tolerance.meter_approx,
        }
        for max_zoom, tolerance in _bounded_rows()
    ]
    finest = {
        "degreeTolerance": FINEST.degree_tolerance,
        "meterApprox": FINEST.meter_approx,
    }
    return "\n".join(
        [
            "// Generated by scripts/python/generate_tolerance_mirrors.py. Do not edit.",
            f"export const {export_name} = {json.dumps(rows, indent=2)};",
            "",
            f"export const FINEST_TOLERANCE = {json.dumps(finest)};",
            "",
            "export function toleranceForZoom(zoom) {",
            "  if (Number.isNaN(zoom)) {",
            "    return FINEST_TOLERANCE;",
            "  }",
            f"  for (const row of {export_name}) {{",
            "    if (zoom <= row.maxZoom) {",
            "      return { degreeTolerance: row.degreeTolerance, meterApprox: row.meterApprox };",
            "    }",
            "  }",
            "  return FINEST_TOLERANCE;",
            "}",
            "",
        ],
    )
