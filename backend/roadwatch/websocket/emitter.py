"""
WebSocket Event Emitter

Provides the WebSocketEmitter class for pushing real-time updates to
connected clients. All server→client events are sent from here.

Features:
- Incident change broadcasts (added / confirmed / denied / purged)
- Guarded route broadcasts whenever the current route is applied
- Thread-safe bridging from synchronous store listeners onto the loop
- Error handling and statistics
"""

import asyncio
import time
from typing import Any, Dict, List, Optional, Set, TYPE_CHECKING

from .events import (
    ServerEvent,
    IncidentChangeData,
    RouteData,
)

if TYPE_CHECKING:
    from roadwatch.incident.incident_store import IncidentEvent
    from roadwatch.routing.refresh_coordinator import RouteState


class WebSocketEmitter:
    """
    Centralized WebSocket event emitter

    Usage:
        emitter = WebSocketEmitter(sio)
        emitter.bind_loop(asyncio.get_running_loop())
        store.add_listener(emitter.on_incident_event)
        coordinator.add_listener(emitter.emit_route_update)
    """

    def __init__(self, sio):
        """
        Initialize the WebSocket emitter

        Args:
            sio: Socket.IO AsyncServer instance
        """
        self.sio = sio
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: Set[asyncio.Task] = set()

        # Statistics
        self._emit_count = 0
        self._error_count = 0
        self._last_emit_time = 0

    def bind_loop(self, loop: asyncio.AbstractEventLoop):
        """Set the loop that store notifications are forwarded onto"""
        self._loop = loop

    # ============================================
    # Connection Events
    # ============================================

    async def emit_connection_success(self, sid: str):
        """Emit connection success to specific client"""
        await self._emit(
            ServerEvent.CONNECTION_SUCCESS.value,
            {
                "message": "Connected to RoadWatch",
                "timestamp": time.time(),
                "serverVersion": "1.0.0"
            },
            room=sid
        )

    # ============================================
    # Incident Events
    # ============================================

    def on_incident_event(self, event: "IncidentEvent", report_ids: List[str]):
        """
        Incident store listener

        Store listeners are synchronous and may run on worker threads, so
        the emission is scheduled onto the bound loop.
        """
        if self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._spawn_incident_event, event.value, list(report_ids))

    def _spawn_incident_event(self, event: str, report_ids: List[str]):
        # runs on the bound loop; the task is held until it finishes
        task = self._loop.create_task(self.emit_incident_event(event, report_ids))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def emit_incident_event(self, event: str, report_ids: List[str]):
        """Broadcast an incident collection change"""
        data = IncidentChangeData(
            event=event,
            reportIds=list(report_ids),
            timestamp=time.time()
        )
        await self._emit(event, data.model_dump())

    # ============================================
    # Route Events
    # ============================================

    async def emit_route_update(self, state: "RouteState"):
        """Broadcast the newly applied guarded route (or its absence)"""
        data = RouteData.from_state(state)
        event = ServerEvent.ROUTE_UPDATED if state.route is not None else ServerEvent.ROUTE_UNAVAILABLE
        await self._emit(event.value, data.model_dump())

    # ============================================
    # Internals
    # ============================================

    async def _emit(self, event: str, data: Any, room: str = None):
        """
        Internal emit with error handling and statistics

        Args:
            event: Event name
            data: Event data
            room: Optional room to emit to
        """
        try:
            if room:
                await self.sio.emit(event, data, room=room)
            else:
                await self.sio.emit(event, data)

            self._emit_count += 1
            self._last_emit_time = time.time()

        except Exception as e:
            self._error_count += 1
            print(f"[WS ERROR] Failed to emit {event}: {e}")

    def get_stats(self) -> Dict[str, Any]:
        """Get emitter statistics"""
        return {
            "totalEmits": self._emit_count,
            "errorCount": self._error_count,
            "lastEmitTime": self._last_emit_time,
            "pendingEmits": len(self._tasks),
        }


# Global emitter instance (initialized in main.py)
emitter: Optional[WebSocketEmitter] = None


def get_emitter() -> Optional[WebSocketEmitter]:
    """Get the global WebSocket emitter instance"""
    return emitter


def set_emitter(e: Optional[WebSocketEmitter]):
    """Set the global WebSocket emitter instance"""
    global emitter
    emitter = e
