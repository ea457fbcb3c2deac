"""
GPS track package.

This package provides modular functionality for:
- Zoom-adaptive simplification tolerance (tolerance.py)
- Normalizing multi-segment geometry into one line (normalization.py)
- Distance-along-track projection (projection.py)
- Display geometry with segment gaps (simplification.py)

The package is organized into:
- routes/: API endpoint handlers (aggregated in routes.router)
- services/: Track ingestion, reads and deletion
"""
