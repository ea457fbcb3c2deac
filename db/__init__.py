"""Database package for MongoDB operations using Beanie ODM.

Modules:
    manager: DatabaseManager singleton for connection handling
    models: Beanie Document models (tracks, POIs, track/POI links)

Usage:
    from db import db_manager, Poi

    await db_manager.init_beanie()
    poi = await Poi.get(poi_id)
"""

from __future__ import annotations

from db.manager import DatabaseManager, db_manager
from db.models import ALL_DOCUMENT_MODELS, Poi, Track, TrackPoi

__all__ = [
    "ALL_DOCUMENT_MODELS",
    "DatabaseManager",
    "Poi",
    "Track",
    "TrackPoi",
    "db_manager",
]
