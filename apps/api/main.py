"""
Carnival Hub API
================
Ownership and attendance for community sporting carnivals

Main FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI
from fastapi.responses import ORJSONResponse

from carnivals.config import configure_logging, settings
from carnivals.database import check_database_connection, engine
from carnivals.middleware import setup_middleware
from carnivals.routers import carnivals_router, health_router, registrations_router

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Carnival Hub API starting up...")
    await check_database_connection()
    logger.info("Database connection verified")
    yield
    # Shutdown
    logger.info("Carnival Hub API shutting down...")
    await engine.dispose()


# OpenAPI tags metadata for better documentation
tags_metadata = [
    {
        "name": "Health",
        "description": "Health check and status endpoints",
    },
    {
        "name": "Carnivals",
        "description": "Claiming, releasing and pricing carnivals; attendee lists",
    },
    {
        "name": "Registrations",
        "description": "Attendance approvals, withdrawals and player rosters",
    },
]


app = FastAPI(
    title="Carnival Hub API",
    description="""
## Carnival ownership and attendance

- **Ownership**: claim imported carnivals, release them, or have an
  administrator assign them to a club
- **Attendance**: clubs register to attend, organisers approve or reject
- **Fees**: team and per-player fees, with the host club always exempt

### Authentication

Session authentication happens upstream. Mutating endpoints require the
acting user's id in the `X-User-Id` header.
""",
    version=settings.api_version,
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    openapi_tags=tags_metadata,
)

setup_middleware(app)


# Include routers
# Health endpoints at root level
app.include_router(health_router)

# API v1 endpoints
app.include_router(carnivals_router, prefix="/api/v1")
app.include_router(registrations_router, prefix="/api/v1")


@app.get("/", response_class=ORJSONResponse)
async def root() -> dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "name": "Carnival Hub API",
        "version": settings.api_version,
        "docs": "/docs",
        "health": "/health",
        "api": {
            "carnival": "/api/v1/carnivals/{carnival_id}",
            "claim": "/api/v1/carnivals/{carnival_id}/claim",
            "registrations": "/api/v1/carnivals/{carnival_id}/registrations",
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
