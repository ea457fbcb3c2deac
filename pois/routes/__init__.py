"""POI API routes."""

from fastapi import APIRouter

from pois.routes import pois, track_pois

# Create main router that aggregates all POI-related routes
router = APIRouter()

router.include_router(pois.router, tags=["pois"])
router.include_router(track_pois.router, tags=["track-pois"])

__all__ = ["router"]
