"""
WebSocket Package

Real-time communication for RoadWatch using Socket.IO.

Components:
- events: Event names and payload models
- emitter: Server→Client event emission
- handlers: Client→Server event handling

Usage:
    from roadwatch.websocket import WebSocketEmitter, WebSocketHandlers

    # Initialize with Socket.IO server
    emitter = WebSocketEmitter(sio)
    handlers = WebSocketHandlers(sio, emitter)
"""

from .events import ServerEvent, ClientEvent, IncidentReportData, RouteData
from .emitter import WebSocketEmitter, get_emitter, set_emitter
from .handlers import WebSocketHandlers, get_handlers, set_handlers

__all__ = [
    "ServerEvent",
    "ClientEvent",
    "IncidentReportData",
    "RouteData",
    "WebSocketEmitter",
    "WebSocketHandlers",
    "get_emitter",
    "set_emitter",
    "get_handlers",
    "set_handlers",
]
