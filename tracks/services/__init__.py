"""Track services."""

from tracks.services.track_service import TrackService

__all__ = ["TrackService"]
