"""
WebSocket Event Type Definitions

Event names and payload models for the RoadWatch real-time channel.
The payload models double as REST response bodies so both surfaces
render incidents and routes identically.

Events are categorized as:
- Server → Client: Updates pushed from backend
- Client → Server: User actions from the frontend
"""

from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, List, TYPE_CHECKING

from roadwatch.incident.incident_store import IncidentReport, IncidentType
from roadwatch.models import GPSCoordinate
from roadwatch.routing.geomath import distance_between
from roadwatch.routing.route_provider import format_eta

if TYPE_CHECKING:
    from roadwatch.routing.refresh_coordinator import RouteState


# ============================================
# Event Name Constants
# ============================================

class ServerEvent(str, Enum):
    """Events emitted from server to client"""

    # Connection
    CONNECTION_SUCCESS = "connection:success"

    # Incident updates
    INCIDENT_ADDED = "incident:added"
    INCIDENT_CONFIRMED = "incident:confirmed"
    INCIDENT_DENIED = "incident:denied"
    INCIDENTS_PURGED = "incident:purged"

    # Route updates
    ROUTE_UPDATED = "route:updated"
    ROUTE_UNAVAILABLE = "route:unavailable"

    # Errors in response to client actions
    ERROR = "error"


class ClientEvent(str, Enum):
    """Events received from client"""

    # Connection
    CONNECT = "connect"
    DISCONNECT = "disconnect"

    # Incident actions
    INCIDENT_REPORT = "incident:report"
    INCIDENT_VOTE = "incident:vote"


# ============================================
# Server → Client Payloads
# ============================================

class IncidentReportData(BaseModel):
    """Incident report as shown to clients"""
    id: str
    type: IncidentType
    label: str
    lat: float
    lon: float
    createdAt: float
    expiresAt: float
    confirmations: int
    denials: int
    distanceMeters: Optional[float] = None  # from the requesting user, when known

    @classmethod
    def from_report(
        cls,
        report: IncidentReport,
        origin: Optional[GPSCoordinate] = None
    ) -> "IncidentReportData":
        distance = None
        if origin is not None:
            distance = round(distance_between(origin, report.coordinate), 1)
        return cls(
            id=report.id,
            type=report.incident_type,
            label=report.incident_type.label,
            lat=report.coordinate.lat,
            lon=report.coordinate.lon,
            createdAt=report.created_at,
            expiresAt=report.expires_at,
            confirmations=report.confirmations,
            denials=report.denials,
            distanceMeters=distance,
        )


class IncidentChangeData(BaseModel):
    """Payload for incident:* events"""
    event: str
    reportIds: List[str]
    timestamp: float


class RouteData(BaseModel):
    """Current guarded route"""
    status: str                              # ROUTE, NO_ROUTE, IDLE
    token: int = 0
    reason: Optional[str] = None
    polyline: List[GPSCoordinate] = Field(default_factory=list)
    expectedTravelTime: Optional[float] = None
    etaText: str = "--"
    error: Optional[str] = None
    appliedAt: Optional[float] = None

    @classmethod
    def from_state(cls, state: Optional["RouteState"]) -> "RouteData":
        if state is None:
            return cls(status="IDLE")
        if state.route is None:
            return cls(
                status="NO_ROUTE",
                token=state.token,
                reason=state.reason,
                error=state.error,
                appliedAt=state.applied_at,
            )
        return cls(
            status="ROUTE",
            token=state.token,
            reason=state.reason,
            polyline=list(state.route.polyline),
            expectedTravelTime=state.route.expected_travel_time,
            etaText=format_eta(state.route.expected_travel_time),
            appliedAt=state.applied_at,
        )


# ============================================
# Client → Server Requests
# ============================================

class IncidentReportRequest(BaseModel):
    """Request for incident:report event"""
    type: IncidentType
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class IncidentVoteRequest(BaseModel):
    """Request for incident:vote event"""
    reportId: str
    stillThere: bool
