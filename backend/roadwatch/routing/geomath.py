"""Geographic utility functions."""

import math
from typing import List, Optional, Sequence, Tuple

from roadwatch.models import GPSCoordinate

EARTH_RADIUS_M = 6371000  # mean Earth radius in meters
METERS_PER_DEGREE_LAT = 111000  # approximation used for local offsets


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance between two points in meters using Haversine formula"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def distance_between(a: GPSCoordinate, b: GPSCoordinate) -> float:
    """Great-circle distance in meters between two coordinates"""
    return haversine_distance(a.lat, a.lon, b.lat, b.lon)


def meters_to_degrees(meters: float, latitude: float) -> Tuple[float, float]:
    """Convert a metric offset to (lat_delta, lon_delta) degrees at a latitude.

    Uses 111 km per degree of latitude and shrinks the longitude degree by
    cos(latitude). Only meant for short local offsets.
    """
    lat_delta = meters / METERS_PER_DEGREE_LAT
    lon_delta = meters / (METERS_PER_DEGREE_LAT * math.cos(math.radians(latitude)))
    return lat_delta, lon_delta


def endpoint_midpoint(polyline: Sequence[GPSCoordinate]) -> GPSCoordinate:
    """Mean of the first and last polyline coordinates (not a centroid)"""
    if not polyline:
        raise ValueError("Cannot take the midpoint of an empty polyline")
    first, last = polyline[0], polyline[-1]
    return GPSCoordinate(
        lat=(first.lat + last.lat) / 2,
        lon=(first.lon + last.lon) / 2,
    )


def offset_point(center: GPSCoordinate, lat_delta: float, lon_delta: float) -> Optional[GPSCoordinate]:
    """Shift center by degree deltas; None if the result leaves the valid range"""
    lat = center.lat + lat_delta
    lon = center.lon + lon_delta
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        return None
    return GPSCoordinate(lat=lat, lon=lon)


def diagonal_offsets(center: GPSCoordinate, meters: float) -> List[Optional[GPSCoordinate]]:
    """Two points offset from center along the fixed NE/SW diagonal.

    The +lat/+lon point comes first. The direction ignores the route bearing.
    A point that would cross a pole or the antimeridian is None.
    """
    lat_delta, lon_delta = meters_to_degrees(meters, center.lat)
    return [
        offset_point(center, lat_delta, lon_delta),
        offset_point(center, -lat_delta, -lon_delta),
    ]
