"""
Health Router
=============

Service status endpoints. The database is the only dependency Carnival Hub
needs to serve claims and registrations. Notification delivery is
best-effort and is not checked.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from carnivals.config import settings
from carnivals.dependencies import get_db
from carnivals.schemas import HealthResponse, ReadyResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


async def _database_reachable(db: AsyncSession) -> bool:
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Database check failed: {e}")
        return False
    return True


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Service status; ``degraded`` while the database is unreachable."""
    database_ok = await _database_reachable(db)
    return HealthResponse(
        status="healthy" if database_ok else "degraded",
        version=settings.api_version,
        timestamp=datetime.now(timezone.utc),
        database="healthy" if database_ok else "unhealthy",
        environment=settings.environment,
    )


@router.get("/ready", response_model=ReadyResponse)
async def readiness_check(db: AsyncSession = Depends(get_db)) -> ReadyResponse:
    checks = {"database": await _database_reachable(db)}
    return ReadyResponse(ready=all(checks.values()), checks=checks)


@router.get("/live")
async def liveness_check() -> dict:
    return {"alive": True}
