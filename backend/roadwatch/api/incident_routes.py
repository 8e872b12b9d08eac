"""
Incident Routes - Community road incident reports

Endpoints:
- POST /api/incidents - Submit a report at a position
- GET /api/incidents - List active reports (optionally near a position)
- GET /api/incidents/statistics - Get store statistics
- GET /api/incidents/{id} - Get a single report
- POST /api/incidents/{id}/vote - Answer "still there?" for a report
"""

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field
from typing import Optional, List

from roadwatch.incident import (
    get_incident_store,
    get_reputation_ledger,
    ReportNotFoundError,
)
from roadwatch.models import GPSCoordinate
from roadwatch.websocket.events import IncidentReportData, IncidentReportRequest

router = APIRouter(prefix="/api/incidents", tags=["incidents"])


# ============================================
# Request/Response Models
# ============================================

class IncidentVoteBody(BaseModel):
    """Answer to the "still there?" prompt"""
    stillThere: bool = Field(..., description="True confirms, False denies")


class IncidentVoteResponse(BaseModel):
    """Result of a vote"""
    report: IncidentReportData
    reputationDelta: int
    active: bool
    reputationScore: Optional[int] = None


class IncidentListResponse(BaseModel):
    """Incident list response"""
    total: int
    incidents: List[IncidentReportData]


def _require_store():
    store = get_incident_store()
    if store is None:
        raise HTTPException(
            status_code=503,
            detail="Incident system not initialized"
        )
    return store


def _current_score() -> Optional[int]:
    ledger = get_reputation_ledger()
    return ledger.score if ledger else None


# ============================================
# Endpoints
# ============================================

@router.post("", response_model=IncidentReportData, status_code=201)
async def submit_incident(request: IncidentReportRequest):
    """
    Submit an incident report

    The report is active immediately for the configured TTL (30 minutes).
    Submitting earns the reporter +3 reputation.
    """
    store = _require_store()
    report = store.add(request.type, GPSCoordinate(lat=request.lat, lon=request.lon))
    return IncidentReportData.from_report(report)


@router.get("", response_model=IncidentListResponse)
async def list_incidents(
    lat: Optional[float] = Query(None, ge=-90, le=90, description="User latitude"),
    lon: Optional[float] = Query(None, ge=-180, le=180, description="User longitude"),
    radius: Optional[float] = Query(None, gt=0, description="Radius in meters (default 804.67)")
):
    """
    List active incident reports

    With lat/lon only reports within the radius are returned, each annotated
    with its distance from that position.
    """
    store = _require_store()

    if (lat is None) != (lon is None):
        raise HTTPException(
            status_code=422,
            detail="lat and lon must be given together"
        )

    if lat is not None:
        origin = GPSCoordinate(lat=lat, lon=lon)
        reports = store.list_near(origin, radius)
    else:
        origin = None
        reports = store.list_active()

    incidents = [IncidentReportData.from_report(r, origin) for r in reports]
    if origin is not None:
        incidents.sort(key=lambda r: r.distanceMeters)

    return IncidentListResponse(total=len(incidents), incidents=incidents)


@router.get("/statistics")
async def get_incident_statistics():
    """Get incident store statistics"""
    store = _require_store()
    return store.get_statistics()


@router.get("/{report_id}", response_model=IncidentReportData)
async def get_incident(report_id: str):
    """Get a single active report (expired reports awaiting the sweep are 404)"""
    store = _require_store()
    try:
        report = store.get(report_id)
    except ReportNotFoundError:
        report = None
    if report is None or not report.is_active(store.clock()):
        raise HTTPException(
            status_code=404,
            detail=f"Report not found: {report_id}"
        )
    return IncidentReportData.from_report(report)


@router.post("/{report_id}/vote", response_model=IncidentVoteResponse)
async def vote_incident(report_id: str, body: IncidentVoteBody):
    """
    Confirm or deny a report

    A confirmation extends the report to a full TTL from now (+2 reputation).
    The second denial expires it immediately (-1 reputation per denial).
    """
    store = _require_store()
    try:
        result = store.confirm(report_id, body.stillThere)
    except ReportNotFoundError:
        raise HTTPException(
            status_code=404,
            detail=f"Report not found: {report_id}"
        )

    return IncidentVoteResponse(
        report=IncidentReportData.from_report(result.report),
        reputationDelta=result.reputation_delta,
        active=result.is_active,
        reputationScore=_current_score()
    )
