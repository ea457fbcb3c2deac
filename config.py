"""Centralized configuration for environment variables.

This module is the single source of truth for configuration used across the
application. Import constants from here rather than calling os.getenv directly
in multiple places. MongoDB connection settings are read by db.manager.
"""

from __future__ import annotations

import os
from typing import Final

from dotenv import load_dotenv

# Load environment variables from .env if present
load_dotenv()


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# --- POI clustering ---
# Pixel size of a clustering cell at the requested zoom
CLUSTER_MAX_RADIUS_PX: Final[float] = _env_float("CLUSTER_MAX_RADIUS_PX", 50.0)
# Clusters smaller than this may be expanded in place; larger ones zoom to bounds
CLUSTER_EXPAND_THRESHOLD: Final[int] = _env_int("CLUSTER_EXPAND_THRESHOLD", 12)
# Highest zoom the map offers; clusters there are always expandable
CLUSTER_MAX_ZOOM: Final[float] = _env_float("CLUSTER_MAX_ZOOM", 18.0)
# Zoom at and above which every point is returned individually (unset = never)
CLUSTER_DISABLE_AT_ZOOM: Final[float | None] = _env_float(
    "CLUSTER_DISABLE_AT_ZOOM", None
)

# --- Track display ---
# Tracks with at most this many points are returned without simplification
SIMPLIFY_MIN_POINTS: Final[int] = _env_int("SIMPLIFY_MIN_POINTS", 1000)

# --- POI lifecycle ---
POI_ORPHAN_GRACE_DAYS: Final[int] = _env_int("POI_ORPHAN_GRACE_DAYS", 7)
POI_LIST_MAX_LIMIT: Final[int] = _env_int("POI_LIST_MAX_LIMIT", 1000)
POI_MAX_NAME_LENGTH: Final[int] = 256
POI_MAX_DESCRIPTION_LENGTH: Final[int] = 50000
POI_MAX_CATEGORY_LENGTH: Final[int] = 100

# --- HTTP ---
CORS_ALLOWED_ORIGINS: Final[list[str]] = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOWED_ORIGINS", "").split(",")
    if origin.strip()
]


__all__ = [
    "CLUSTER_DISABLE_AT_ZOOM",
    "CLUSTER_EXPAND_THRESHOLD",
    "CLUSTER_MAX_RADIUS_PX",
    "CLUSTER_MAX_ZOOM",
    "CORS_ALLOWED_ORIGINS",
    "POI_LIST_MAX_LIMIT",
    "POI_MAX_CATEGORY_LENGTH",
    "POI_MAX_DESCRIPTION_LENGTH",
    "POI_MAX_NAME_LENGTH",
    "POI_ORPHAN_GRACE_DAYS",
    "SIMPLIFY_MIN_POINTS",
]
