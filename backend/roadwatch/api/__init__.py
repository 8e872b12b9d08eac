"""
API Routes Package

This module exports all FastAPI routers for RoadWatch.
"""

from .incident_routes import router as incident_router
from .navigation_routes import router as navigation_router
from .navigation_routes import reputation_router

__all__ = [
    "incident_router",
    "navigation_router",
    "reputation_router",
]
