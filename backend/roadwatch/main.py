"""
RoadWatch
Main FastAPI Application Entry Point

This is the main entry point for the backend server.
It initializes FastAPI, Socket.IO, the incident store and the
incident-aware routing components.
"""

import asyncio
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import socketio
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Create Socket.IO server
sio = socketio.AsyncServer(
    async_mode='asgi',
    cors_allowed_origins='*',
    logger=False,  # Reduce noise in production
    engineio_logger=False,
    ping_interval=25,
    ping_timeout=60
)

_started_at = time.time()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events - startup and shutdown"""

    # Startup
    print("=" * 60)
    print("[STARTUP] RoadWatch")
    print("=" * 60)

    # Initialize configuration
    from roadwatch.config import get_config
    cfg = get_config()
    incident_config = cfg.get_incident_config()
    routing_config = cfg.get_routing_config()
    print("[OK] Configuration loaded")

    # Initialize WebSocket emitter and handlers
    from roadwatch.websocket import WebSocketEmitter, WebSocketHandlers, set_emitter, set_handlers

    ws_emitter = WebSocketEmitter(sio)
    ws_emitter.bind_loop(asyncio.get_running_loop())
    ws_handlers = WebSocketHandlers(sio, ws_emitter)

    set_emitter(ws_emitter)
    set_handlers(ws_handlers)

    print("[OK] WebSocket emitter and handlers initialized")

    # Initialize incident store with the reputation ledger as its sink
    from roadwatch.incident import init_reputation_ledger, init_incident_store

    ledger = init_reputation_ledger()
    store = init_incident_store(incident_config, reputation_sink=ledger.apply)
    store.add_listener(ws_emitter.on_incident_event)
    await store.start_sweeper()

    print("[OK] Incident store initialized")

    # Initialize routing
    from roadwatch.routing import (
        init_route_provider,
        get_route_provider,
        init_route_guard,
        init_refresh_coordinator,
    )

    # A provider injected before startup (e.g. a local stub) is kept
    provider = get_route_provider()
    if provider is None:
        provider_config = routing_config.get('provider', {})
        provider = init_route_provider(
            base_url=os.getenv("OSRM_BASE_URL") or provider_config.get("baseUrl"),
            profile=provider_config.get('profile', 'driving'),
            timeout=provider_config.get('timeoutSeconds', 10.0),
        )

    guard = init_route_guard(provider, routing_config)
    coordinator = init_refresh_coordinator(guard, store, routing_config)
    coordinator.add_listener(ws_emitter.emit_route_update)
    await coordinator.start()

    print("[OK] Incident-aware routing initialized")

    print("=" * 60)
    print("[SERVER] Ready at http://localhost:8000")
    print("[DOCS] API docs at http://localhost:8000/docs")
    print("[WS] WebSocket ready for connections")
    print("=" * 60)

    yield

    # Shutdown
    print("[SHUTDOWN] Shutting down...")

    await coordinator.stop()
    store.remove_listener(ws_emitter.on_incident_event)
    await store.stop_sweeper()

    try:
        await provider.close()
        print("[SHUTDOWN] Route provider closed")
    except Exception as e:
        print(f"[SHUTDOWN] Error closing route provider: {e}")

    print("[SHUTDOWN] Complete")


# Create FastAPI application
app = FastAPI(
    title="RoadWatch API",
    description="Community road incident reports and incident-aware routing",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",  # Vite dev server
        "http://localhost:3000",  # Alternative dev server
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
        "*"  # Allow all for development
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================
# Include API Routers
# ============================================

from roadwatch.api import (
    incident_router,
    navigation_router,
    reputation_router,
)

# Incident routes: /api/incidents, /api/incidents/{id}/vote, ...
app.include_router(incident_router)

# Navigation routes: /api/navigation/origin, /destination, /refresh, /route
app.include_router(navigation_router)

# Reputation: /api/reputation
app.include_router(reputation_router)


# ============================================
# Root Endpoints
# ============================================

@app.get("/", tags=["root"])
async def root():
    """Root endpoint - API information"""
    return {
        "name": "RoadWatch",
        "version": "1.0.0",
        "status": "operational",
        "documentation": "/docs",
        "websocket": "ws://localhost:8000",
        "endpoints": {
            "incidents": "/api/incidents",
            "navigation": "/api/navigation/*",
            "reputation": "/api/reputation"
        }
    }


@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint"""
    from roadwatch.websocket import get_handlers
    from roadwatch.incident import get_incident_store
    from roadwatch.routing import get_refresh_coordinator

    handlers = get_handlers()
    store = get_incident_store()
    coordinator = get_refresh_coordinator()

    return {
        "status": "healthy",
        "timestamp": time.time(),
        "uptime": time.time() - _started_at,
        "incidents": {
            "active": len(store.list_active()) if store is not None else 0,
            "stored": len(store) if store is not None else 0,
            "sweeping": store.is_sweeping if store is not None else False
        },
        "navigation": {
            "running": coordinator.is_running if coordinator else False,
            "hasDestination": coordinator.has_destination if coordinator else False
        },
        "websocket": {
            "connected_clients": handlers.get_client_count() if handlers else 0,
            "status": "ready"
        }
    }


@app.get("/ws/stats", tags=["websocket"])
async def websocket_stats():
    """Get WebSocket statistics"""
    from roadwatch.websocket import get_emitter, get_handlers

    emitter = get_emitter()
    handlers = get_handlers()

    return {
        "emitter": emitter.get_stats() if emitter else None,
        "clients": {
            "count": handlers.get_client_count() if handlers else 0,
            "connected": list(handlers.get_connected_clients().keys()) if handlers else []
        },
        "timestamp": time.time()
    }


# ============================================
# Create Socket.IO ASGI app
# ============================================

sio_app = socketio.ASGIApp(sio, app)


# ============================================
# WebSocket Event Reference (handled by WebSocketHandlers)
# ============================================
#
# Server → Client Events:
#   - connection:success      : Connection established
#   - incident:added          : Report submitted
#   - incident:confirmed      : Report confirmed (expiry extended)
#   - incident:denied         : Report denied
#   - incident:purged         : Expired reports removed
#   - route:updated           : Guarded route applied
#   - route:unavailable       : No route could be computed
#   - error                   : Rejected client action
#
# Client → Server Events:
#   - incident:report         : Submit a report {type, lat, lon}
#   - incident:vote           : Answer "still there?" {reportId, stillThere}


# ============================================
# Entry Point
# ============================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "roadwatch.main:sio_app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
