"""POI deduplication keys.

The stored dedup hash is the identity of a POI: two rows with the same hash
describe the same real-world place. Its format is fixed and must stay
bit-exact with every other place that computes it:

    md5( pad10(q(lat)) + pad10(q(lon)) + lower(trim(name)) )

where ``q(x)`` is ``x * 100000`` rounded half-to-even to an integer and
``pad10`` left-pads the decimal string with ``'0'`` to 10 characters.

Negative coordinates keep their sign in-band (``-5575580`` becomes
``"00-5575580"``). The integer never needs more than 9 characters including
the sign (|lon| <= 180), so padding never truncates and the two fixed-width
fields cannot bleed into each other.
"""

from __future__ import annotations

import hashlib
import math

from core.exceptions import InvalidPoiError

COORDINATE_SCALE = 100_000
PAD_WIDTH = 10

# Coarser grid (~11 m) used to collapse repeated waypoints inside one upload
BATCH_KEY_SCALE = 10_000


def normalize_name(name: str | None) -> str:
    """Trim and lowercase a POI name for hashing."""
    return (name or "").strip().lower()


def quantize_coordinate(value: float) -> int:
    """Scale a coordinate to 1e-5 degrees, rounding half to even."""
    scaled = float(value) * COORDINATE_SCALE
    if not math.isfinite(scaled):
        msg = f"Coordinate must be finite, got {value!r}"
        raise InvalidPoiError(msg)
    return int(round(scaled))


def pad10(value: int) -> str:
    return str(value).rjust(PAD_WIDTH, "0")


def dedup_key_material(name: str, lat: float, lon: float) -> str:
    """Return the exact string that is digested into the dedup hash."""
    normalized = normalize_name(name)
    if not normalized:
        msg = "POI name must not be empty"
        raise InvalidPoiError(msg)
    return pad10(quantize_coordinate(lat)) + pad10(quantize_coordinate(lon)) + normalized


def compute_dedup_hash(name: str, lat: float, lon: float) -> str:
    """Compute the POI dedup hash (hex md5)."""
    material = dedup_key_material(name, lat, lon).encode("utf-8")
    return hashlib.md5(material, usedforsecurity=False).hexdigest()  # nosec


def _round_half_away_from_zero(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def waypoint_batch_key(name: str, lat: float, lon: float) -> tuple[str, int, int]:
    """Key used to drop repeated waypoints of a single upload before storing."""
    return (
        normalize_name(name),
        _round_half_away_from_zero(float(lat) * BATCH_KEY_SCALE),
        _round_half_away_from_zero(float(lon) * BATCH_KEY_SCALE),
    )
