"""
Fee Policy
==========

Amount owed for an attendance registration:

    team_registration_fee * number_of_teams + per_player_fee * confirmed_players

RULES:
1. Missing fee rates count as zero.
2. Amounts are fixed-point with two fraction digits (ROUND_HALF_UP).
3. Recalculating an existing registration counts only active roster
   assignments with status ``confirmed``. The coarse ``player_count`` is an
   estimate used once, at creation.
4. Hosting-club exemption: when the registering club hosts the carnival the
   amount is zero and the registration is paid and approved, whatever the
   caller sent. A pending or rejected registration of a club that becomes
   host is approved by the next recalculation, so callers that can change
   the host must recount the carnival afterwards.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from carnivals.models import (
    ApprovalStatus,
    AttendancePlayerAssignment,
    AttendanceRegistration,
    AttendanceStatus,
    Carnival,
    utcnow,
)

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def _money(value) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_fee(carnival: Carnival, number_of_teams: int, confirmed_player_count: int) -> Decimal:
    """Raw fee before the hosting-club exemption."""
    team_fee = _money(carnival.team_registration_fee)
    player_fee = _money(carnival.per_player_fee)
    amount = team_fee * max(number_of_teams or 0, 0) + player_fee * max(confirmed_player_count or 0, 0)
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def is_host_club(carnival: Carnival, club_id: Optional[UUID]) -> bool:
    return carnival.host_club_id is not None and club_id == carnival.host_club_id


@dataclass(frozen=True)
class FeeAssessment:
    """What the fee policy says a registration should hold."""
    payment_amount: Decimal
    exempt: bool


def assess_fee(
    carnival: Carnival,
    club_id: UUID,
    number_of_teams: int,
    player_count: int,
) -> FeeAssessment:
    if is_host_club(carnival, club_id):
        return FeeAssessment(payment_amount=ZERO, exempt=True)
    return FeeAssessment(
        payment_amount=compute_fee(carnival, number_of_teams, player_count),
        exempt=False,
    )


def apply_fee(
    registration: AttendanceRegistration,
    carnival: Carnival,
    player_count: int,
    now: Optional[datetime] = None,
    approved_by: Optional[UUID] = None,
) -> bool:
    """
    Write the assessed fee onto ``registration``.

    Only fields whose value actually changes are assigned, so an unchanged
    registration produces no UPDATE. Returns True if anything changed.
    ``approved_by`` is recorded when a host registration gets auto-approved.
    """
    assessment = assess_fee(carnival, registration.club_id, registration.number_of_teams, player_count)
    changed = False
    now = now or utcnow()

    if _money(registration.payment_amount) != assessment.payment_amount:
        registration.payment_amount = assessment.payment_amount
        changed = True

    if assessment.exempt:
        if not registration.is_paid:
            registration.is_paid = True
            changed = True
        if registration.payment_date is None:
            registration.payment_date = now
            changed = True
        if registration.approval_status != ApprovalStatus.APPROVED:
            registration.approval_status = ApprovalStatus.APPROVED
            registration.approved_at = now
            registration.approved_by_user_id = approved_by
            registration.rejection_reason = None
            changed = True

    return changed


async def count_confirmed_players(db: AsyncSession, registration_id: UUID) -> int:
    """Active roster assignments marked as confirmed."""
    stmt = select(func.count(AttendancePlayerAssignment.id)).where(
        AttendancePlayerAssignment.registration_id == registration_id,
        AttendancePlayerAssignment.attendance_status == AttendanceStatus.CONFIRMED,
        AttendancePlayerAssignment.is_active.is_(True),
    )
    result = await db.execute(stmt)
    return result.scalar_one()


async def recalculate_registration_fee(
    db: AsyncSession,
    registration: AttendanceRegistration,
    carnival: Carnival,
    approved_by: Optional[UUID] = None,
) -> bool:
    """Re-derive the fee of an existing registration from its confirmed roster."""
    confirmed = await count_confirmed_players(db, registration.id)
    return apply_fee(registration, carnival, confirmed, approved_by=approved_by)


async def recalculate_carnival_fees(
    db: AsyncSession,
    carnival: Carnival,
    approved_by: Optional[UUID] = None,
) -> int:
    """
    Re-apply the fee policy to every active registration of a carnival.

    Used after the host club or the fee rates change. Returns how many
    registrations changed. The host's registration may have become approved,
    so the caller recounts ``current_registrations``.
    """
    stmt = select(AttendanceRegistration).where(
        AttendanceRegistration.carnival_id == carnival.id,
        AttendanceRegistration.is_active.is_(True),
    )
    result = await db.execute(stmt)
    changed = 0
    for registration in result.scalars().all():
        if await recalculate_registration_fee(db, registration, carnival, approved_by=approved_by):
            changed += 1
    return changed
