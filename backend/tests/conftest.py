"""
Shared test helpers: deterministic route provider, virtual clock and
geometry helpers for placing points at exact great-circle distances.
"""

import asyncio
import math
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from roadwatch.models import GPSCoordinate
from roadwatch.routing.geomath import EARTH_RADIUS_M
from roadwatch.routing.route_provider import (
    RouteCandidate,
    RouteProvider,
    RouteProviderError,
)


def north_of(point: GPSCoordinate, meters: float) -> GPSCoordinate:
    """Point due north of `point` at exactly `meters` great-circle distance"""
    return GPSCoordinate(lat=point.lat + math.degrees(meters / EARTH_RADIUS_M), lon=point.lon)


def make_route(points: Sequence[GPSCoordinate], seconds: float) -> RouteCandidate:
    return RouteCandidate(polyline=tuple(points), expected_travel_time=seconds)


class VirtualClock:
    """Manually advanced epoch clock"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class StubRouteProvider(RouteProvider):
    """
    Deterministic provider keyed on (origin, destination)

    Results are looked up by exact (origin, destination) first and then by
    destination alone. A result may be an exception instance, which is
    raised. Gates (asyncio.Event per destination) hold a call until set.
    """

    def __init__(self, default: Optional[RouteCandidate] = None):
        self.default = default
        self.routes: Dict[tuple, object] = {}
        self.gates: Dict[Tuple[float, float], asyncio.Event] = {}
        self.calls: List[Tuple[GPSCoordinate, GPSCoordinate]] = []
        self.closed = False

    def set_route(self, destination: GPSCoordinate, result, origin: Optional[GPSCoordinate] = None):
        if origin is None:
            self.routes[destination.as_tuple()] = result
        else:
            self.routes[(origin.as_tuple(), destination.as_tuple())] = result

    def gate(self, destination: GPSCoordinate) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[destination.as_tuple()] = event
        return event

    async def route(self, origin: GPSCoordinate, destination: GPSCoordinate) -> RouteCandidate:
        self.calls.append((origin, destination))

        gate = self.gates.get(destination.as_tuple())
        if gate is not None:
            await gate.wait()

        key = (origin.as_tuple(), destination.as_tuple())
        if key in self.routes:
            result = self.routes[key]
        else:
            result = self.routes.get(destination.as_tuple(), self.default)

        if isinstance(result, BaseException):
            raise result
        if result is None:
            raise RouteProviderError(f"no stub route to {destination.as_tuple()}")
        return result

    async def close(self):
        self.closed = True


@pytest.fixture
def clock():
    return VirtualClock()


@pytest.fixture
def start():
    return GPSCoordinate(lat=37.7749, lon=-122.4194)


@pytest.fixture
def end(start):
    return north_of(start, 2000)
