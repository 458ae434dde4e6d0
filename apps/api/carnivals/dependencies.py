"""
FastAPI Dependencies
====================

Common dependencies for dependency injection.

Session authentication happens upstream; the authenticated user's id
reaches this service in the ``X-User-Id`` header.
"""

from typing import AsyncGenerator, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from carnivals.database import async_session_factory
from carnivals.services import (
    NotificationDispatcher,
    OwnershipManager,
    RegistrationManager,
    RosterManager,
    get_dispatcher,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_acting_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id")
) -> UUID:
    """Identify the acting user."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user header (X-User-Id)"
        )
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user header (X-User-Id)"
        )


def get_ownership_manager(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_dispatcher),
) -> OwnershipManager:
    return OwnershipManager(db, notifier)


def get_registration_manager(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_dispatcher),
) -> RegistrationManager:
    return RegistrationManager(db, notifier)


def get_roster_manager(db: AsyncSession = Depends(get_db)) -> RosterManager:
    return RosterManager(db)

