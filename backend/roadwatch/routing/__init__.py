"""
Incident-Aware Routing

Components:
- geomath: Great-circle distance and local offset helpers
- RouteProvider / OSRMRouteProvider: Routing backend contract and HTTP adapter
- RouteGuard: Detects compromised routes and evaluates detours
- RefreshCoordinator: Decides when the guarded route is recomputed
"""

from .geomath import (
    haversine_distance,
    distance_between,
    meters_to_degrees,
    endpoint_midpoint,
    diagonal_offsets,
)

from .route_provider import (
    RouteCandidate,
    RouteProvider,
    RouteProviderError,
    OSRMRouteProvider,
    format_eta,
    init_route_provider,
    get_route_provider,
    set_route_provider,
)

from .route_guard import (
    RouteGuard,
    RouteUnavailableError,
    DetourEvaluation,
    intersects_incident,
    merge_detour_legs,
    init_route_guard,
    get_route_guard,
    set_route_guard,
)

from .refresh_coordinator import (
    RefreshCoordinator,
    RouteState,
    init_refresh_coordinator,
    get_refresh_coordinator,
    set_refresh_coordinator,
)


__all__ = [
    # Geo
    "haversine_distance",
    "distance_between",
    "meters_to_degrees",
    "endpoint_midpoint",
    "diagonal_offsets",

    # Provider
    "RouteCandidate",
    "RouteProvider",
    "RouteProviderError",
    "OSRMRouteProvider",
    "format_eta",
    "init_route_provider",
    "get_route_provider",
    "set_route_provider",

    # Guard
    "RouteGuard",
    "RouteUnavailableError",
    "DetourEvaluation",
    "intersects_incident",
    "merge_detour_legs",
    "init_route_guard",
    "get_route_guard",
    "set_route_guard",

    # Coordinator
    "RefreshCoordinator",
    "RouteState",
    "init_refresh_coordinator",
    "get_refresh_coordinator",
    "set_refresh_coordinator",
]
