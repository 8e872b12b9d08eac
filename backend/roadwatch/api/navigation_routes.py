"""
Navigation Routes - Incident-aware route for the active session

Endpoints:
- PUT /api/navigation/origin - Update the user position
- PUT /api/navigation/destination - Set the destination and compute a route
- DELETE /api/navigation/destination - Clear the destination
- POST /api/navigation/refresh - Recompute the route now
- GET /api/navigation/route - Current guarded route
- GET /api/navigation/status - Coordinator, guard and provider statistics
- GET /api/reputation - Reporter reputation score
"""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field
from typing import Optional
import time

from roadwatch.incident import get_reputation_ledger
from roadwatch.models import GPSCoordinate
from roadwatch.routing import (
    get_refresh_coordinator,
    get_route_guard,
    get_route_provider,
)
from roadwatch.websocket.events import RouteData

router = APIRouter(prefix="/api/navigation", tags=["navigation"])
reputation_router = APIRouter(prefix="/api/reputation", tags=["reputation"])


# ============================================
# Request/Response Models
# ============================================

class PositionRequest(BaseModel):
    """A position on the map"""
    lat: float = Field(..., ge=-90, le=90, description="Latitude")
    lon: float = Field(..., ge=-180, le=180, description="Longitude")

    def to_coordinate(self) -> GPSCoordinate:
        return GPSCoordinate(lat=self.lat, lon=self.lon)


class NavigationStateResponse(BaseModel):
    """Navigation session state"""
    origin: Optional[GPSCoordinate]
    destination: Optional[GPSCoordinate]
    route: RouteData


def _require_coordinator():
    coordinator = get_refresh_coordinator()
    if coordinator is None or not coordinator.is_running:
        raise HTTPException(
            status_code=503,
            detail="Navigation system not initialized"
        )
    return coordinator


def _navigation_state(coordinator) -> NavigationStateResponse:
    return NavigationStateResponse(
        origin=coordinator.origin,
        destination=coordinator.destination,
        route=RouteData.from_state(coordinator.state)
    )


# ============================================
# Endpoints
# ============================================

@router.put("/origin", response_model=NavigationStateResponse)
async def set_origin(request: PositionRequest):
    """
    Update the user position

    Moving does not recompute the route on its own; the next refresh
    (timer, incident change or explicit) uses the new position.
    """
    coordinator = _require_coordinator()
    coordinator.set_origin(request.to_coordinate())
    return _navigation_state(coordinator)


@router.put("/destination", response_model=NavigationStateResponse)
async def set_destination(request: PositionRequest):
    """
    Set or change the destination

    Issues a route request immediately, restarts the 20 second refresh
    timer and waits for the request to settle.
    """
    coordinator = _require_coordinator()
    if coordinator.origin is None:
        raise HTTPException(
            status_code=409,
            detail="Origin must be set before a destination"
        )

    token = coordinator.set_destination(request.to_coordinate())
    await coordinator.wait_for(token)
    return _navigation_state(coordinator)


@router.delete("/destination", response_model=NavigationStateResponse)
async def clear_destination():
    """Clear the destination, stop the refresh timer and drop the route"""
    coordinator = _require_coordinator()
    coordinator.set_destination(None)
    return _navigation_state(coordinator)


@router.post("/refresh", response_model=NavigationStateResponse)
async def refresh_route():
    """Recompute the guarded route now (user initiated)"""
    coordinator = _require_coordinator()
    if not coordinator.has_destination:
        raise HTTPException(
            status_code=409,
            detail="No active destination"
        )

    token = coordinator.request_refresh("user")
    await coordinator.wait_for(token)
    return _navigation_state(coordinator)


@router.get("/route", response_model=RouteData)
async def get_route():
    """Get the current guarded route"""
    coordinator = _require_coordinator()
    return RouteData.from_state(coordinator.state)


@router.get("/status")
async def get_navigation_status():
    """Get navigation component statistics"""
    coordinator = _require_coordinator()
    guard = get_route_guard()
    provider = get_route_provider()

    provider_stats = None
    if provider is not None and hasattr(provider, "get_statistics"):
        provider_stats = provider.get_statistics()

    return {
        "coordinator": coordinator.get_statistics(),
        "guard": guard.get_statistics() if guard else None,
        "provider": provider_stats,
        "timestamp": time.time()
    }


@reputation_router.get("")
async def get_reputation():
    """Get the reporter reputation score"""
    ledger = get_reputation_ledger()
    if ledger is None:
        raise HTTPException(
            status_code=503,
            detail="Reputation ledger not initialized"
        )
    return {
        "score": ledger.score,
        "timestamp": time.time()
    }
