"""
Tests for geographic helpers and the coordinate model
"""

import math

import pytest
from pydantic import ValidationError

from roadwatch.models import GPSCoordinate
from roadwatch.routing.geomath import (
    haversine_distance,
    distance_between,
    meters_to_degrees,
    endpoint_midpoint,
    diagonal_offsets,
    METERS_PER_DEGREE_LAT,
)

from conftest import north_of


class TestHaversine:
    """Great-circle distance"""

    def test_zero_distance(self):
        assert haversine_distance(37.0, -122.0, 37.0, -122.0) == 0.0

    def test_one_degree_latitude(self):
        """One degree along a meridian is ~111.2 km on a 6371 km sphere"""
        d = haversine_distance(0.0, 0.0, 1.0, 0.0)
        assert d == pytest.approx(111194.9, abs=1.0)

    def test_symmetric(self):
        a = GPSCoordinate(lat=37.7749, lon=-122.4194)
        b = GPSCoordinate(lat=37.8044, lon=-122.2712)
        assert distance_between(a, b) == pytest.approx(distance_between(b, a))

    def test_north_of_helper_is_exact(self):
        origin = GPSCoordinate(lat=37.7749, lon=-122.4194)
        assert distance_between(origin, north_of(origin, 49)) == pytest.approx(49, abs=1e-6)


class TestLocalOffsets:
    """Metric to degree conversion and detour geometry"""

    def test_meters_to_degrees_at_equator(self):
        lat_delta, lon_delta = meters_to_degrees(111000, 0.0)
        assert lat_delta == pytest.approx(1.0)
        assert lon_delta == pytest.approx(1.0)

    def test_longitude_shrinks_with_latitude(self):
        lat_delta, lon_delta = meters_to_degrees(300, 60.0)
        assert lat_delta == pytest.approx(300 / METERS_PER_DEGREE_LAT)
        assert lon_delta == pytest.approx(2 * lat_delta)

    def test_endpoint_midpoint_ignores_interior_points(self):
        polyline = [
            GPSCoordinate(lat=10.0, lon=20.0),
            GPSCoordinate(lat=50.0, lon=50.0),
            GPSCoordinate(lat=12.0, lon=22.0),
        ]
        mid = endpoint_midpoint(polyline)
        assert mid.lat == pytest.approx(11.0)
        assert mid.lon == pytest.approx(21.0)

    def test_endpoint_midpoint_empty(self):
        with pytest.raises(ValueError):
            endpoint_midpoint([])

    def test_diagonal_offsets_order_and_symmetry(self):
        center = GPSCoordinate(lat=37.0, lon=-122.0)
        first, second = diagonal_offsets(center, 300)

        assert first.lat > center.lat and first.lon > center.lon
        assert second.lat < center.lat and second.lon < center.lon
        assert first.lat - center.lat == pytest.approx(center.lat - second.lat)
        assert first.lon - center.lon == pytest.approx(center.lon - second.lon)

    def test_diagonal_offsets_past_antimeridian(self):
        center = GPSCoordinate(lat=0.0, lon=179.999)
        first, second = diagonal_offsets(center, 300)

        assert first is None
        assert second.lon < center.lon

    def test_diagonal_offsets_near_pole(self):
        assert diagonal_offsets(GPSCoordinate(lat=89.9999, lon=0.0), 300) == [None, None]


class TestGPSCoordinate:
    """Coordinate model validation"""

    def test_rejects_out_of_range(self):
        with pytest.raises(ValidationError):
            GPSCoordinate(lat=91.0, lon=0.0)
        with pytest.raises(ValidationError):
            GPSCoordinate(lat=0.0, lon=-181.0)

    def test_immutable(self):
        coord = GPSCoordinate(lat=1.0, lon=2.0)
        with pytest.raises(ValidationError):
            coord.lat = 3.0

    def test_from_lon_lat(self):
        coord = GPSCoordinate.from_lon_lat([-122.4, 37.7])
        assert coord.as_tuple() == (37.7, -122.4)
        assert not math.isnan(coord.lat)
