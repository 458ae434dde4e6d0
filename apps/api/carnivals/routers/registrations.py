"""
Registrations Router
====================

Approval workflow, updates, withdrawal and rosters of attendance
registrations.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from carnivals.dependencies import (
    get_acting_user_id,
    get_db,
    get_registration_manager,
    get_roster_manager,
)
from carnivals.routers.common import raise_for_result
from carnivals.schemas import (
    AddPlayersRequest,
    AssignmentRead,
    AttendanceStatusUpdate,
    RegistrationResult,
    RegistrationUpdate,
    RejectRequest,
    RosterResult,
)
from carnivals.services import RegistrationManager, RosterManager
from carnivals.services.roster import list_assignments

router = APIRouter(prefix="/registrations", tags=["Registrations"])


@router.patch("/{registration_id}", response_model=RegistrationResult)
async def update_registration(
    registration_id: UUID,
    request: RegistrationUpdate,
    user_id: UUID = Depends(get_acting_user_id),
    manager: RegistrationManager = Depends(get_registration_manager),
) -> RegistrationResult:
    """
    Update team/player counts, contact details or notes.

    ``payment_amount`` is always recomputed. Only the organiser may set
    ``is_paid``.
    """
    return raise_for_result(await manager.update(registration_id, request, user_id))


@router.post("/{registration_id}/approve", response_model=RegistrationResult)
async def approve_registration(
    registration_id: UUID,
    user_id: UUID = Depends(get_acting_user_id),
    manager: RegistrationManager = Depends(get_registration_manager),
) -> RegistrationResult:
    return raise_for_result(await manager.approve(registration_id, user_id))


@router.post("/{registration_id}/reject", response_model=RegistrationResult)
async def reject_registration(
    registration_id: UUID,
    request: RejectRequest,
    user_id: UUID = Depends(get_acting_user_id),
    manager: RegistrationManager = Depends(get_registration_manager),
) -> RegistrationResult:
    """Reject a registration. A reason is required."""
    return raise_for_result(await manager.reject(registration_id, user_id, request.reason))


@router.delete("/{registration_id}", response_model=RegistrationResult)
async def unregister(
    registration_id: UUID,
    user_id: UUID = Depends(get_acting_user_id),
    manager: RegistrationManager = Depends(get_registration_manager),
) -> RegistrationResult:
    """
    Withdraw a registration.

    A club may withdraw only while unpaid; after payment the organiser has
    to remove it.
    """
    return raise_for_result(await manager.unregister(registration_id, user_id))


@router.post(
    "/{registration_id}/recalculate",
    response_model=RegistrationResult,
    dependencies=[Depends(get_acting_user_id)],
)
async def recalculate_fees(
    registration_id: UUID,
    manager: RegistrationManager = Depends(get_registration_manager),
) -> RegistrationResult:
    return raise_for_result(await manager.recalculate_fees(registration_id))


# =============================================================================
# ROSTER
# =============================================================================

@router.get("/{registration_id}/players", response_model=List[AssignmentRead])
async def get_players(
    registration_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> List[AssignmentRead]:
    assignments = await list_assignments(db, registration_id)
    return [AssignmentRead.model_validate(a) for a in assignments]


@router.post("/{registration_id}/players", response_model=RosterResult)
async def add_players(
    registration_id: UUID,
    request: AddPlayersRequest,
    user_id: UUID = Depends(get_acting_user_id),
    manager: RosterManager = Depends(get_roster_manager),
) -> RosterResult:
    """Add club players to the roster as confirmed attendees."""
    return raise_for_result(
        await manager.add_players(registration_id, request.club_player_ids, user_id)
    )


@router.patch("/players/{assignment_id}", response_model=RosterResult)
async def set_attendance_status(
    assignment_id: UUID,
    request: AttendanceStatusUpdate,
    user_id: UUID = Depends(get_acting_user_id),
    manager: RosterManager = Depends(get_roster_manager),
) -> RosterResult:
    return raise_for_result(
        await manager.set_attendance_status(
            assignment_id, request.attendance_status, user_id, notes=request.notes
        )
    )


@router.delete("/players/{assignment_id}", response_model=RosterResult)
async def remove_player(
    assignment_id: UUID,
    user_id: UUID = Depends(get_acting_user_id),
    manager: RosterManager = Depends(get_roster_manager),
) -> RosterResult:
    return raise_for_result(await manager.remove_player(assignment_id, user_id))
