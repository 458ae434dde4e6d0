"""
Carnival Hub API Routers
========================

All API routers for the Carnival Hub API.
"""

from carnivals.routers.health import router as health_router
from carnivals.routers.carnivals import router as carnivals_router
from carnivals.routers.registrations import router as registrations_router

__all__ = [
    "health_router",
    "carnivals_router",
    "registrations_router",
]
