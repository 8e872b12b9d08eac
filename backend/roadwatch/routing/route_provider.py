"""
Route Provider

Contract for the external routing backend plus an OSRM implementation.

Given a start and end coordinate a provider asynchronously returns the
best-known route (polyline + expected travel time) or raises
RouteProviderError. Callers treat every call as independent and safe to
issue concurrently: there is no retry and no caching at this layer.

OSRM specifics:
- coordinate formatting (lon,lat;lon,lat)
- /route/v1/{profile} URL construction
- GeoJSON geometry parsing into internal (lat, lon) coordinates
"""

import aiohttp
import asyncio
import math
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple, List

from roadwatch.models import GPSCoordinate


class RouteProviderError(Exception):
    """A single route request could not be satisfied"""
    pass


@dataclass(frozen=True)
class RouteCandidate:
    """
    Route returned by a provider

    Owned by the call that produced it and never mutated afterwards.
    """
    polyline: Tuple[GPSCoordinate, ...]
    expected_travel_time: float  # seconds

    @property
    def has_usable_time(self) -> bool:
        """True when the travel time is a finite, non-negative number"""
        t = self.expected_travel_time
        return t is not None and math.isfinite(t) and t >= 0


def format_eta(seconds: Optional[float]) -> str:
    """Render a travel time as whole minutes rounded up ("7m"), "--" if unknown"""
    if seconds is None or not math.isfinite(seconds):
        return "--"
    return f"{int(math.ceil(seconds / 60))}m"


class RouteProvider(ABC):
    """Asynchronous point-to-point routing capability"""

    @abstractmethod
    async def route(self, origin: GPSCoordinate, destination: GPSCoordinate) -> RouteCandidate:
        """Return the best route from origin to destination or raise RouteProviderError"""

    async def close(self):
        """Release any transport resources"""
        return None


class OSRMRouteProvider(RouteProvider):
    """
    OSRM /route adapter over aiohttp

    Usage:
        provider = OSRMRouteProvider(base_url="http://localhost:5000")
        route = await provider.route(start, end)
        await provider.close()
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        profile: str = "driving",
        timeout: float = 10.0
    ):
        """
        Initialize the provider

        Args:
            base_url: OSRM server URL (defaults to OSRM_BASE_URL env var)
            profile: Mode of transportation (driving, walking, cycling)
            timeout: Total seconds to wait for one response
        """
        self.base_url = (base_url or os.getenv("OSRM_BASE_URL", "")).rstrip("/")
        self.profile = profile
        self.timeout = timeout

        if not self.base_url:
            raise ValueError("OSRM base URL not set. Set OSRM_BASE_URL or routing.provider.baseUrl.")

        self._session: Optional[aiohttp.ClientSession] = None

        # Statistics
        self.request_count = 0
        self.error_count = 0
        self.last_response_ms = 0.0

    async def initialize(self):
        """Initialize the HTTP session"""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)

    async def close(self):
        """Close the HTTP session"""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    @staticmethod
    def format_coordinates(coords: List[GPSCoordinate]) -> str:
        """Convert coordinates to OSRM format 'lon,lat;lon,lat;...'"""
        return ";".join(f"{c.lon},{c.lat}" for c in coords)

    def build_url(self, origin: GPSCoordinate, destination: GPSCoordinate) -> str:
        coordinates = self.format_coordinates([origin, destination])
        return f"{self.base_url}/route/v1/{self.profile}/{coordinates}"

    async def route(self, origin: GPSCoordinate, destination: GPSCoordinate) -> RouteCandidate:
        await self.initialize()

        url = self.build_url(origin, destination)
        params = {
            "overview": "full",
            "geometries": "geojson",
        }

        start_time = time.time()
        self.request_count += 1

        try:
            async with self._session.get(url, params=params) as response:
                self.last_response_ms = (time.time() - start_time) * 1000
                if response.status != 200:
                    raise RouteProviderError(f"OSRM HTTP {response.status}")
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.error_count += 1
            raise RouteProviderError(f"OSRM request failed: {e}") from e
        except ValueError as e:
            # body was not valid JSON
            self.error_count += 1
            raise RouteProviderError(f"Malformed OSRM response: {e}") from e
        except RouteProviderError:
            self.error_count += 1
            raise

        try:
            return self.parse_route(data)
        except RouteProviderError:
            self.error_count += 1
            raise

    @staticmethod
    def parse_route(data: dict) -> RouteCandidate:
        """Normalize an OSRM /route JSON payload into a RouteCandidate"""
        if not isinstance(data, dict):
            raise RouteProviderError(f"Malformed OSRM response: expected an object, got {type(data).__name__}")

        if data.get("code") != "Ok":
            raise RouteProviderError(f"OSRM error: {data.get('message', data.get('code', 'Unknown error'))}")

        routes = data.get("routes") or []
        if not routes:
            raise RouteProviderError("OSRM returned no routes")

        try:
            # take the first route (OSRM may return alternatives)
            route = routes[0]
            polyline = tuple(
                GPSCoordinate.from_lon_lat(pair)
                for pair in route["geometry"]["coordinates"]
            )
            duration = float(route["duration"])
        except (KeyError, TypeError, ValueError, IndexError) as e:
            raise RouteProviderError(f"Malformed OSRM route: {e}") from e

        return RouteCandidate(polyline=polyline, expected_travel_time=duration)

    def get_statistics(self) -> dict:
        return {
            'baseUrl': self.base_url,
            'profile': self.profile,
            'requestCount': self.request_count,
            'errorCount': self.error_count,
            'lastResponseMs': round(self.last_response_ms, 1),
        }


# ============================================
# Global Instance Management
# ============================================

_route_provider: Optional[RouteProvider] = None


def init_route_provider(
    base_url: Optional[str] = None,
    profile: str = "driving",
    timeout: float = 10.0
) -> RouteProvider:
    """Initialize global OSRM route provider"""
    global _route_provider
    _route_provider = OSRMRouteProvider(base_url=base_url, profile=profile, timeout=timeout)
    return _route_provider


def get_route_provider() -> Optional[RouteProvider]:
    """Get global route provider"""
    return _route_provider


def set_route_provider(provider: Optional[RouteProvider]):
    """Set global route provider"""
    global _route_provider
    _route_provider = provider
