"""
Points of interest package.

This package provides modular functionality for:
- Content-addressed POI deduplication (hashing.py)
- Viewport clustering for map display (clustering.py)
- Track/POI linking and ordering along a track
- Mutation events for audit consumers (events.py)

The package is organized into:
- routes/: API endpoint handlers (aggregated in routes.router)
- services/: Business logic and persistence
- serializers.py: Data transformation utilities
"""
