"""Track API routes."""

from fastapi import APIRouter

from tracks.routes import tracks

# Create main router that aggregates all track-related routes
router = APIRouter()

router.include_router(tracks.router, tags=["tracks"])

__all__ = ["router"]
