"""
WebSocket Client Event Handlers

Handles client→server WebSocket events: connection lifecycle and user
incident actions (submit a report, answer "still there?").

All handlers are registered with the Socket.IO server in main.py.
"""

import time
from typing import Dict, Any, Optional

from pydantic import ValidationError

from roadwatch.incident import get_incident_store, ReportNotFoundError
from roadwatch.models import GPSCoordinate

from .events import (
    ServerEvent,
    ClientEvent,
    IncidentReportData,
    IncidentReportRequest,
    IncidentVoteRequest,
)
from .emitter import WebSocketEmitter


class WebSocketHandlers:
    """
    Centralized WebSocket event handlers

    Handles all client→server events and delegates to the incident store.
    """

    def __init__(self, sio, emitter: WebSocketEmitter):
        """
        Initialize handlers

        Args:
            sio: Socket.IO AsyncServer instance
            emitter: WebSocket emitter instance
        """
        self.sio = sio
        self.emitter = emitter

        # Track connected clients
        self._clients: Dict[str, Dict[str, Any]] = {}

        # Register all event handlers
        self._register_handlers()

    def _register_handlers(self):
        """Register all Socket.IO event handlers"""

        # Connection events
        self.sio.on(ClientEvent.CONNECT.value, self.handle_connect)
        self.sio.on(ClientEvent.DISCONNECT.value, self.handle_disconnect)

        # Incident actions
        self.sio.on(ClientEvent.INCIDENT_REPORT.value, self.handle_incident_report)
        self.sio.on(ClientEvent.INCIDENT_VOTE.value, self.handle_incident_vote)

    # ============================================
    # Connection Handlers
    # ============================================

    async def handle_connect(self, sid: str, environ: Dict, auth: Optional[Dict] = None):
        """
        Handle client connection

        Args:
            sid: Session ID
            environ: Connection environment
        """
        client_info = {
            "sid": sid,
            "connected_at": time.time(),
            "remote_addr": environ.get("REMOTE_ADDR", "unknown"),
        }

        self._clients[sid] = client_info

        print(f"[WS] Client connected: {sid} from {client_info['remote_addr']}")

        await self.emitter.emit_connection_success(sid)

    async def handle_disconnect(self, sid: str, *args):
        """
        Handle client disconnection

        Args:
            sid: Session ID
        """
        if sid in self._clients:
            client = self._clients.pop(sid)
            duration = time.time() - client["connected_at"]
            print(f"[WS] Client disconnected: {sid} (duration: {duration:.1f}s)")

    # ============================================
    # Incident Handlers
    # ============================================

    async def handle_incident_report(self, sid: str, data: Dict):
        """
        Handle a submitted incident report

        Args:
            sid: Session ID
            data: {type, lat, lon}
        """
        store = get_incident_store()
        if store is None:
            return await self._send_error(sid, "Incident system not initialized")

        try:
            request = IncidentReportRequest(**(data or {}))
        except ValidationError as e:
            return await self._send_error(sid, f"Invalid report: {e.errors()[0]['msg']}")

        report = store.add(request.type, GPSCoordinate(lat=request.lat, lon=request.lon))
        return IncidentReportData.from_report(report).model_dump()

    async def handle_incident_vote(self, sid: str, data: Dict):
        """
        Handle a "still there?" answer

        Args:
            sid: Session ID
            data: {reportId, stillThere}
        """
        store = get_incident_store()
        if store is None:
            return await self._send_error(sid, "Incident system not initialized")

        try:
            request = IncidentVoteRequest(**(data or {}))
        except ValidationError as e:
            return await self._send_error(sid, f"Invalid vote: {e.errors()[0]['msg']}")

        try:
            result = store.confirm(request.reportId, request.stillThere)
        except ReportNotFoundError as e:
            return await self._send_error(sid, str(e))

        return {
            "report": IncidentReportData.from_report(result.report).model_dump(),
            "reputationDelta": result.reputation_delta,
            "active": result.is_active,
        }

    async def _send_error(self, sid: str, message: str):
        await self.sio.emit(ServerEvent.ERROR.value, {
            "message": message,
            "timestamp": time.time()
        }, room=sid)
        return {"error": message}

    # ============================================
    # Client Info
    # ============================================

    def get_client_count(self) -> int:
        """Get number of connected clients"""
        return len(self._clients)

    def get_connected_clients(self) -> Dict[str, Dict[str, Any]]:
        """Get information about all connected clients"""
        return dict(self._clients)


# Global handlers instance (initialized in main.py)
handlers: Optional[WebSocketHandlers] = None


def get_handlers() -> Optional[WebSocketHandlers]:
    """Get the global WebSocket handlers instance"""
    return handlers


def set_handlers(h: Optional[WebSocketHandlers]):
    """Set the global WebSocket handlers instance"""
    global handlers
    handlers = h
