"""
Route Guard - Incident-Aware Routing

Computes a base route, checks it against active blocking incidents and,
when the route is compromised, evaluates two detour candidates built
around offset waypoints.

Algorithm:
1. Base route from the provider (failure -> RouteUnavailableError)
2. Compromised if any polyline point is within 50 m of a blocking incident
3. Detour waypoints: endpoint midpoint offset +/-300 m on a fixed diagonal
4. Per waypoint, legs start->waypoint and waypoint->end requested concurrently
5. A candidate scores the sum of its leg times; strictly lower than the
   current best wins, ties keep the earlier candidate
6. The winning candidate is carried forward as its second leg only
"""

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, TYPE_CHECKING

from roadwatch.models import GPSCoordinate
from roadwatch.routing.geomath import (
    distance_between,
    endpoint_midpoint,
    diagonal_offsets,
)
from roadwatch.routing.route_provider import (
    RouteCandidate,
    RouteProvider,
    RouteProviderError,
)

if TYPE_CHECKING:
    from roadwatch.incident.incident_store import IncidentReport


DEFAULT_PROXIMITY_M = 50.0
DEFAULT_DETOUR_OFFSET_M = 300.0


class RouteUnavailableError(Exception):
    """The base route could not be obtained"""
    pass


@dataclass(frozen=True)
class DetourEvaluation:
    """Settled legs for one detour waypoint"""
    waypoint: GPSCoordinate
    first_leg: Optional[RouteCandidate]
    second_leg: Optional[RouteCandidate]

    @property
    def is_viable(self) -> bool:
        return self.first_leg is not None and self.second_leg is not None

    @property
    def combined_time(self) -> float:
        if not self.is_viable:
            return math.inf
        return self.first_leg.expected_travel_time + self.second_leg.expected_travel_time


def blocking_incidents(incidents: Iterable["IncidentReport"]) -> List["IncidentReport"]:
    """Filter to the incident kinds that can compromise a route"""
    return [i for i in incidents if i.incident_type.is_blocking]


def intersects_incident(
    polyline: Sequence[GPSCoordinate],
    incidents: Iterable["IncidentReport"],
    proximity_m: float = DEFAULT_PROXIMITY_M
) -> bool:
    """True if any polyline point lies within proximity_m of a blocking incident"""
    for incident in blocking_incidents(incidents):
        for point in polyline:
            if distance_between(point, incident.coordinate) < proximity_m:
                return True
    return False


def merge_detour_legs(first_leg: RouteCandidate, second_leg: RouteCandidate) -> RouteCandidate:
    """Combine a detour's legs into the route handed to callers.

    Only the second leg is carried forward: its geometry and time stand for
    the whole detour.
    """
    return second_leg


class RouteGuard:
    """
    Incident-aware route selection

    Usage:
        guard = RouteGuard(provider)
        route = await guard.compute_guarded_route(start, end, store.list_near(start))
    """

    def __init__(
        self,
        provider: RouteProvider,
        proximity_m: float = DEFAULT_PROXIMITY_M,
        detour_offset_m: float = DEFAULT_DETOUR_OFFSET_M
    ):
        """
        Initialize route guard

        Args:
            provider: Routing backend used for base routes and detour legs
            proximity_m: Distance under which a blocking incident compromises a route
            detour_offset_m: Offset of the detour waypoints from the route midpoint
        """
        self.provider = provider
        self.proximity_m = proximity_m
        self.detour_offset_m = detour_offset_m

        # Statistics
        self.total_requests = 0
        self.total_compromised = 0
        self.total_detours_chosen = 0
        self.last_compute_ms = 0.0

        print("[OK] Route guard initialized")

    async def compute_guarded_route(
        self,
        start: GPSCoordinate,
        end: GPSCoordinate,
        active_incidents: Iterable["IncidentReport"]
    ) -> RouteCandidate:
        """
        Compute the guarded route from start to end

        Args:
            start: Current user position
            end: Destination
            active_incidents: Incidents in play (non-blocking kinds are ignored)

        Returns:
            The base route, or the winning detour (second leg only)

        Raises:
            RouteUnavailableError: if the base route request fails
        """
        started = time.time()
        self.total_requests += 1
        incidents = list(active_incidents)

        try:
            base = await self.provider.route(start, end)
        except RouteProviderError as e:
            print(f"[ROUTE] Base route unavailable: {e}")
            raise RouteUnavailableError(str(e)) from e

        if not intersects_incident(base.polyline, incidents, self.proximity_m):
            self.last_compute_ms = (time.time() - started) * 1000
            return base

        self.total_compromised += 1
        print(f"⚠️ [ROUTE] Base route passes within {self.proximity_m:.0f}m of a blocking incident")

        waypoints = []
        for waypoint in self.detour_waypoints(base):
            if waypoint is None:
                print("[ROUTE] Detour waypoint out of coordinate range, candidate discarded")
            else:
                waypoints.append(waypoint)

        evaluations = await asyncio.gather(
            *(self._evaluate_detour(start, end, wp) for wp in waypoints)
        )

        chosen = self.select_route(base, evaluations)
        if chosen is not base:
            self.total_detours_chosen += 1

        self.last_compute_ms = (time.time() - started) * 1000
        return chosen

    def detour_waypoints(self, base: RouteCandidate) -> List[Optional[GPSCoordinate]]:
        """The two detour waypoints for a compromised base route (None if out of range)"""
        midpoint = endpoint_midpoint(base.polyline)
        return diagonal_offsets(midpoint, self.detour_offset_m)

    async def _evaluate_detour(
        self,
        start: GPSCoordinate,
        end: GPSCoordinate,
        waypoint: GPSCoordinate
    ) -> DetourEvaluation:
        # Both legs are settled before the candidate is scored
        first, second = await asyncio.gather(
            self.provider.route(start, waypoint),
            self.provider.route(waypoint, end),
            return_exceptions=True,
        )

        legs: List[Optional[RouteCandidate]] = []
        for leg in (first, second):
            if isinstance(leg, RouteProviderError):
                legs.append(None)
            elif isinstance(leg, BaseException):
                raise leg
            else:
                legs.append(leg)

        evaluation = DetourEvaluation(waypoint=waypoint, first_leg=legs[0], second_leg=legs[1])
        if not evaluation.is_viable:
            print(f"[ROUTE] Detour via {waypoint.lat:.5f},{waypoint.lon:.5f} discarded (leg failed)")
        return evaluation

    @staticmethod
    def select_route(
        base: RouteCandidate,
        evaluations: Sequence[DetourEvaluation]
    ) -> RouteCandidate:
        """
        Pick the route to return among the base route and detour candidates

        Candidates are scanned in order; one replaces the current best only
        if its summed leg time is strictly lower than the best's expected
        time, so ties keep the earlier route.
        """
        best = base
        best_time = base.expected_travel_time if base.has_usable_time else math.inf

        for evaluation in evaluations:
            if not evaluation.is_viable:
                continue
            combined = evaluation.combined_time
            if combined < best_time:
                best = merge_detour_legs(evaluation.first_leg, evaluation.second_leg)
                best_time = best.expected_travel_time
                print(f"[ROUTE] Detour via {evaluation.waypoint.lat:.5f},"
                      f"{evaluation.waypoint.lon:.5f} selected ({combined:.0f}s)")

        return best

    def get_statistics(self) -> dict:
        """Get route guard statistics"""
        return {
            'totalRequests': self.total_requests,
            'totalCompromised': self.total_compromised,
            'totalDetoursChosen': self.total_detours_chosen,
            'lastComputeMs': round(self.last_compute_ms, 1),
            'proximityMeters': self.proximity_m,
            'detourOffsetMeters': self.detour_offset_m,
        }


# ============================================
# Global Instance Management
# ============================================

_route_guard: Optional[RouteGuard] = None


def init_route_guard(provider: RouteProvider, config: Optional[dict] = None) -> RouteGuard:
    """Initialize global route guard from the routing config section"""
    global _route_guard
    config = config or {}

    _route_guard = RouteGuard(
        provider,
        proximity_m=config.get('proximityMeters', DEFAULT_PROXIMITY_M),
        detour_offset_m=config.get('detourOffsetMeters', DEFAULT_DETOUR_OFFSET_M),
    )

    return _route_guard


def get_route_guard() -> Optional[RouteGuard]:
    """Get global route guard"""
    return _route_guard


def set_route_guard(guard: Optional[RouteGuard]):
    """Set global route guard"""
    global _route_guard
    _route_guard = guard
