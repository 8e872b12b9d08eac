"""
Pydantic Models Package

Data models shared across the RoadWatch backend.
Import from here for convenience.
"""

from .coordinates import GPSCoordinate

__all__ = [
    "GPSCoordinate",
]
