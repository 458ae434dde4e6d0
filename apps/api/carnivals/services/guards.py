"""
Shared Validation Helpers
=========================

Precondition checks used by the ownership, registration and roster
services. Each check raises an ``OperationError`` subclass with a message
fit for the end user.

Ownership is read from two nullable columns (``owner_user_id``,
``host_club_id``) but validated as an explicit tagged state:

    Unowned                       both null
    Claimed(owner, host, at)      either set

Organizer: the carnival's owning user, or any user of its host club.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carnivals.directory import get_user
from carnivals.errors import InvalidStateError, NotFoundError, UnauthorizedError
from carnivals.models import AttendanceRegistration, Carnival, User


# =============================================================================
# OWNERSHIP STATE
# =============================================================================

@dataclass(frozen=True)
class Unowned:
    pass


@dataclass(frozen=True)
class Claimed:
    owner_user_id: Optional[UUID]
    host_club_id: Optional[UUID]
    claimed_at: Optional[datetime]


OwnershipState = Union[Unowned, Claimed]


def ownership_state(carnival: Carnival) -> OwnershipState:
    if carnival.owner_user_id is None and carnival.host_club_id is None:
        return Unowned()
    return Claimed(
        owner_user_id=carnival.owner_user_id,
        host_club_id=carnival.host_club_id,
        claimed_at=carnival.claimed_at,
    )


def is_owner(state: OwnershipState, user: User) -> bool:
    """
    Whether ``user`` holds ownership.

    An admin-assigned carnival is owned by the named delegate. A self-claimed
    carnival has no owning user, so it is owned by the users of its host club.
    """
    if not isinstance(state, Claimed):
        return False
    if state.owner_user_id is not None:
        return state.owner_user_id == user.id
    return user.club_id is not None and user.club_id == state.host_club_id


def is_organizer(carnival: Carnival, user: User) -> bool:
    if carnival.owner_user_id is not None and carnival.owner_user_id == user.id:
        return True
    return user.club_id is not None and user.club_id == carnival.host_club_id


def is_external_import(carnival: Carnival) -> bool:
    return not carnival.is_manually_entered and carnival.external_sync_timestamp is not None


# =============================================================================
# TIME
# =============================================================================

def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (SQLite round-trips) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# LOADERS
# =============================================================================

async def load_carnival(
    db: AsyncSession,
    carnival_id: UUID,
    *,
    lock: bool = False,
    require_active: bool = True,
) -> Carnival:
    """
    Load a carnival, refreshing any copy already in the session.

    ``lock`` takes a row lock (SELECT ... FOR UPDATE) so that ownership
    transitions on one carnival are serialized.
    """
    stmt = (
        select(Carnival)
        .where(Carnival.id == carnival_id)
        .execution_options(populate_existing=True)
    )
    if lock:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    carnival = result.scalar_one_or_none()
    if carnival is None or (require_active and not carnival.is_active):
        raise NotFoundError("Carnival not found")
    return carnival


async def load_registration(
    db: AsyncSession,
    registration_id: UUID,
    *,
    require_active: bool = True,
) -> AttendanceRegistration:
    stmt = (
        select(AttendanceRegistration)
        .where(AttendanceRegistration.id == registration_id)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    registration = result.scalar_one_or_none()
    if registration is None:
        raise NotFoundError("Registration not found")
    if require_active and not registration.is_active:
        raise InvalidStateError("This registration has already been removed")
    return registration


async def require_user(db: AsyncSession, user_id: UUID) -> User:
    user = await get_user(db, user_id)
    if user is None or not user.is_active:
        raise NotFoundError("User not found")
    return user


# =============================================================================
# AUTHORIZATION
# =============================================================================

def require_organizer_or_admin(carnival: Carnival, user: User, action: str) -> None:
    if user.is_admin or is_organizer(carnival, user):
        return
    raise UnauthorizedError(f"Only the carnival organiser or an administrator can {action}")


def require_claimable(carnival: Carnival) -> None:
    """Provenance and ownership checks shared by claim and admin claim, in order."""
    if carnival.is_manually_entered:
        raise InvalidStateError(
            "This carnival was entered manually and cannot be claimed"
        )
    if carnival.external_sync_timestamp is None:
        raise InvalidStateError(
            "Only carnivals imported from the external event feed can be claimed"
        )
    if isinstance(ownership_state(carnival), Claimed):
        raise InvalidStateError("This carnival already has an owner")
