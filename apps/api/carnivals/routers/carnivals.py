"""
Carnivals Router
================

Ownership transitions, fee structure and attendee lists for a carnival.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from carnivals.dependencies import (
    get_acting_user_id,
    get_db,
    get_ownership_manager,
    get_registration_manager,
)
from carnivals.models import Carnival
from carnivals.routers.common import raise_for_result
from carnivals.schemas import (
    AdminClaimRequest,
    AttendanceCounts,
    CarnivalRead,
    FeeStructureResult,
    FeeStructureUpdate,
    OwnershipResult,
    RegisterClubRequest,
    RegistrationDetails,
    RegistrationRead,
    RegistrationResult,
    ReorderRequest,
    ReorderResult,
)
from carnivals.services import OwnershipManager, RegistrationManager, RegistrationMode
from carnivals.services.registrations import attendance_counts, list_registrations

router = APIRouter(prefix="/carnivals", tags=["Carnivals"])


@router.get("/{carnival_id}", response_model=CarnivalRead)
async def get_carnival(
    carnival_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> CarnivalRead:
    """Get a carnival, including ownership and capacity fields."""
    carnival = await db.get(Carnival, carnival_id)
    if carnival is None or not carnival.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Carnival {carnival_id} not found"
        )
    return CarnivalRead.model_validate(carnival)


# =============================================================================
# OWNERSHIP
# =============================================================================

@router.post("/{carnival_id}/claim", response_model=OwnershipResult)
async def claim_carnival(
    carnival_id: UUID,
    user_id: UUID = Depends(get_acting_user_id),
    manager: OwnershipManager = Depends(get_ownership_manager),
) -> OwnershipResult:
    """
    Claim an unowned, imported carnival for the acting user's club.

    **Errors:**
    - 404: carnival or user not found
    - 409: manual carnival, missing feed provenance, already owned, or
      cross-state claim
    """
    return raise_for_result(await manager.claim(carnival_id, user_id))


@router.post("/{carnival_id}/release", response_model=OwnershipResult)
async def release_carnival(
    carnival_id: UUID,
    user_id: UUID = Depends(get_acting_user_id),
    manager: OwnershipManager = Depends(get_ownership_manager),
) -> OwnershipResult:
    """Release ownership. Only the current owner may do this."""
    return raise_for_result(await manager.release(carnival_id, user_id))


@router.post("/{carnival_id}/admin-claim", response_model=OwnershipResult)
async def admin_claim_carnival(
    carnival_id: UUID,
    request: AdminClaimRequest,
    user_id: UUID = Depends(get_acting_user_id),
    manager: OwnershipManager = Depends(get_ownership_manager),
) -> OwnershipResult:
    """
    Administrator assigns the carnival to another club.

    The target club's primary delegate becomes the owner. A state mismatch
    is returned in ``warnings`` and does not block the claim.
    """
    return raise_for_result(
        await manager.admin_claim_on_behalf(carnival_id, user_id, request.target_club_id)
    )


@router.patch("/{carnival_id}/fees", response_model=FeeStructureResult)
async def update_fees(
    carnival_id: UUID,
    request: FeeStructureUpdate,
    user_id: UUID = Depends(get_acting_user_id),
    manager: OwnershipManager = Depends(get_ownership_manager),
) -> FeeStructureResult:
    """Change fee rates; active registrations are re-priced."""
    return raise_for_result(
        await manager.update_fee_structure(
            carnival_id,
            user_id,
            team_registration_fee=request.team_registration_fee,
            per_player_fee=request.per_player_fee,
        )
    )


# =============================================================================
# ATTENDEES
# =============================================================================

@router.get("/{carnival_id}/registrations", response_model=List[RegistrationRead])
async def get_registrations(
    carnival_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> List[RegistrationRead]:
    """Active registrations in display order."""
    registrations = await list_registrations(db, carnival_id)
    return [RegistrationRead.model_validate(r) for r in registrations]


@router.get("/{carnival_id}/attendance", response_model=AttendanceCounts)
async def get_attendance_counts(
    carnival_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> AttendanceCounts:
    counts = await attendance_counts(db, carnival_id)
    if counts is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Carnival {carnival_id} not found"
        )
    return counts


@router.post(
    "/{carnival_id}/registrations",
    response_model=RegistrationResult,
    status_code=status.HTTP_201_CREATED,
)
async def add_club(
    carnival_id: UUID,
    request: RegisterClubRequest,
    user_id: UUID = Depends(get_acting_user_id),
    manager: RegistrationManager = Depends(get_registration_manager),
) -> RegistrationResult:
    """Organiser adds a club. The registration is approved immediately."""
    details = RegistrationDetails(**request.model_dump(exclude={"club_id"}))
    return raise_for_result(
        await manager.register(
            carnival_id, request.club_id, details, user_id, RegistrationMode.ORGANIZER_ADDS
        )
    )


@router.post(
    "/{carnival_id}/registrations/self",
    response_model=RegistrationResult,
    status_code=status.HTTP_201_CREATED,
)
async def register_own_club(
    carnival_id: UUID,
    request: RegistrationDetails,
    user_id: UUID = Depends(get_acting_user_id),
    manager: RegistrationManager = Depends(get_registration_manager),
) -> RegistrationResult:
    """
    A club delegate registers their own club.

    The registration is pending until the organiser approves it, unless the
    club hosts the carnival.
    """
    return raise_for_result(await manager.register_own_club(carnival_id, request, user_id))


@router.put("/{carnival_id}/registrations/order", response_model=ReorderResult)
async def reorder_registrations(
    carnival_id: UUID,
    request: ReorderRequest,
    user_id: UUID = Depends(get_acting_user_id),
    manager: RegistrationManager = Depends(get_registration_manager),
) -> ReorderResult:
    return raise_for_result(
        await manager.reorder(carnival_id, request.registration_ids, user_id)
    )
