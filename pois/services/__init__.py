"""POI services."""

from pois.services.link_service import LinkResult, LinkSummary, PoiLinkService
from pois.services.poi_service import PoiCandidate, PoiService

__all__ = [
    "LinkResult",
    "LinkSummary",
    "PoiCandidate",
    "PoiLinkService",
    "PoiService",
]
