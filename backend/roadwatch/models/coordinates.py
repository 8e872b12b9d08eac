"""
Coordinate Models

GPS coordinate model shared by the incident store, the routing engine
and the API layer.
"""

from pydantic import BaseModel, Field
from typing import Sequence, Tuple


class GPSCoordinate(BaseModel):
    """GPS coordinate (latitude, longitude) in degrees"""
    lat: float = Field(..., ge=-90, le=90)      # Latitude (-90 to 90)
    lon: float = Field(..., ge=-180, le=180)    # Longitude (-180 to 180)

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {"lat": 37.3349, "lon": -122.0090}
        }

    def as_tuple(self) -> Tuple[float, float]:
        """Get (lat, lon) tuple"""
        return (self.lat, self.lon)

    @classmethod
    def from_lon_lat(cls, pair: Sequence[float]) -> "GPSCoordinate":
        """Build from a GeoJSON-ordered [lon, lat] pair"""
        return cls(lat=pair[1], lon=pair[0])
