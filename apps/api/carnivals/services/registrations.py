"""
Attendance Registration Manager
===============================

A club's registration to attend a carnival:

    Pending -> Approved | Rejected      (re-approve / re-reject overwrite)
    Active  -> Inactive                 (soft delete, from any approval state)

RULES:
1. At most one active registration per (carnival, club). The application
   check runs first; the partial unique index is the real guard.
2. ``Carnival.current_registrations`` equals the number of active, approved
   registrations. It is recomputed explicitly, in the same transaction, by
   every operation that changes approval status or the active flag.
3. Capacity (``max_teams``) is checked against the approved count. The host
   club is exempt.
4. The host club's registration is free, paid and auto-approved.
"""

import enum
from typing import List, Optional, Union
from uuid import UUID, uuid4

from pydantic import ValidationError
from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carnivals.directory import get_club
from carnivals.errors import (
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailureError,
)
from carnivals.models import (
    ApprovalStatus,
    AttendanceRegistration,
    Carnival,
    Club,
    User,
    utcnow,
)
from carnivals.schemas import (
    AttendanceCounts,
    CarnivalRead,
    RegistrationDetails,
    RegistrationRead,
    RegistrationResult,
    RegistrationUpdate,
    ReorderResult,
)
from carnivals.services.common import OperationContext, run_operation
from carnivals.services.fees import apply_fee, is_host_club, recalculate_registration_fee
from carnivals.services.guards import (
    as_utc,
    is_organizer,
    load_carnival,
    load_registration,
    require_organizer_or_admin,
    require_user,
)
from carnivals.services.notifications import NotificationDispatcher, get_dispatcher

MAX_TEAMS_PER_REGISTRATION = 10

DUPLICATE_REGISTRATION = "This club is already registered for this carnival"
PAID_WITHDRAWAL = (
    "Cannot unregister from a carnival after payment has been made. "
    "Please contact the organiser."
)


class RegistrationMode(str, enum.Enum):
    """Who is creating the registration."""
    ORGANIZER_ADDS = "organizer_adds"
    SELF_SERVICE = "self_service"


# =============================================================================
# COUNTERS
# =============================================================================

async def count_approved_registrations(db: AsyncSession, carnival_id: UUID) -> int:
    stmt = select(func.count(AttendanceRegistration.id)).where(
        AttendanceRegistration.carnival_id == carnival_id,
        AttendanceRegistration.is_active.is_(True),
        AttendanceRegistration.approval_status == ApprovalStatus.APPROVED,
    )
    return (await db.execute(stmt)).scalar_one()


async def count_active_registrations(db: AsyncSession, carnival_id: UUID) -> int:
    stmt = select(func.count(AttendanceRegistration.id)).where(
        AttendanceRegistration.carnival_id == carnival_id,
        AttendanceRegistration.is_active.is_(True),
    )
    return (await db.execute(stmt)).scalar_one()


async def recount_registrations(db: AsyncSession, carnival: Carnival) -> int:
    """
    Recompute ``carnival.current_registrations`` from the registrations table.

    Pending writes are flushed first so the count sees them.
    """
    await db.flush()
    approved = await count_approved_registrations(db, carnival.id)
    if carnival.current_registrations != approved:
        carnival.current_registrations = approved
    return approved


async def list_registrations(db: AsyncSession, carnival_id: UUID) -> List[AttendanceRegistration]:
    """Active registrations of a carnival in display order."""
    stmt = (
        select(AttendanceRegistration)
        .where(
            AttendanceRegistration.carnival_id == carnival_id,
            AttendanceRegistration.is_active.is_(True),
        )
        .order_by(AttendanceRegistration.display_order, AttendanceRegistration.registered_at)
    )
    return list((await db.execute(stmt)).scalars().all())


async def attendance_counts(db: AsyncSession, carnival_id: UUID) -> Optional[AttendanceCounts]:
    """Approved / pending / rejected totals for a carnival's active registrations."""
    carnival = await db.get(Carnival, carnival_id)
    if carnival is None:
        return None

    stmt = select(
        func.count(case((AttendanceRegistration.approval_status == ApprovalStatus.APPROVED, 1))),
        func.count(case((AttendanceRegistration.approval_status == ApprovalStatus.PENDING, 1))),
        func.count(case((AttendanceRegistration.approval_status == ApprovalStatus.REJECTED, 1))),
        func.count(AttendanceRegistration.id),
    ).where(
        AttendanceRegistration.carnival_id == carnival_id,
        AttendanceRegistration.is_active.is_(True),
    )
    approved, pending, rejected, total = (await db.execute(stmt)).one()
    return AttendanceCounts(
        carnival_id=carnival_id,
        approved=approved,
        pending=pending,
        rejected=rejected,
        total=total,
    )


# =============================================================================
# VALIDATION
# =============================================================================

def _validate_counts(number_of_teams: Optional[int], player_count: Optional[int]) -> None:
    if number_of_teams is not None and not 1 <= number_of_teams <= MAX_TEAMS_PER_REGISTRATION:
        raise ValidationFailureError(
            f"Number of teams must be between 1 and {MAX_TEAMS_PER_REGISTRATION}"
        )
    if player_count is not None and player_count < 0:
        raise ValidationFailureError("Player count cannot be negative")


def _check_registration_window(carnival: Carnival) -> None:
    if not carnival.is_registration_open:
        raise InvalidStateError("Registration for this carnival is currently closed.")
    deadline = as_utc(carnival.registration_deadline)
    if deadline is not None and utcnow() > deadline:
        raise InvalidStateError("The registration deadline for this carnival has passed.")


async def _check_capacity(db: AsyncSession, carnival: Carnival) -> None:
    if carnival.max_teams is None:
        return
    approved = await count_approved_registrations(db, carnival.id)
    if approved >= carnival.max_teams:
        raise InvalidStateError(
            f"This carnival has reached its maximum capacity of {carnival.max_teams} teams."
        )


async def _find_active_registration(
    db: AsyncSession, carnival_id: UUID, club_id: UUID
) -> Optional[AttendanceRegistration]:
    stmt = select(AttendanceRegistration).where(
        AttendanceRegistration.carnival_id == carnival_id,
        AttendanceRegistration.club_id == club_id,
        AttendanceRegistration.is_active.is_(True),
    )
    return (await db.execute(stmt)).scalars().first()


async def _next_display_order(db: AsyncSession, carnival_id: UUID) -> int:
    stmt = select(func.max(AttendanceRegistration.display_order)).where(
        AttendanceRegistration.carnival_id == carnival_id,
        AttendanceRegistration.is_active.is_(True),
    )
    current = (await db.execute(stmt)).scalar_one_or_none()
    return (current or 0) + 1


def _update_fields(changes: Union[RegistrationUpdate, dict]) -> dict:
    """Fields a registration update may touch, refusing anything else."""
    if not isinstance(changes, RegistrationUpdate):
        try:
            changes = RegistrationUpdate.model_validate(changes)
        except ValidationError as e:
            unknown = sorted(
                str(error["loc"][0]) for error in e.errors() if error["type"] == "extra_forbidden"
            )
            if unknown:
                raise ValidationFailureError(f"These fields cannot be updated: {', '.join(unknown)}")
            raise ValidationFailureError(f"Invalid registration update: {e.errors()[0]['msg']}")
    return changes.model_dump(exclude_unset=True)


async def _require_club(db: AsyncSession, club_id: UUID) -> Club:
    club = await get_club(db, club_id)
    if club is None:
        raise NotFoundError("Club not found")
    return club


# =============================================================================
# REGISTRATION MANAGER
# =============================================================================

class RegistrationManager:
    """Register, approve, reject, update and withdraw attendance registrations."""

    def __init__(self, db: AsyncSession, notifier: Optional[NotificationDispatcher] = None):
        self.db = db
        self.notifier = notifier or get_dispatcher()

    # -------------------------------------------------------------------------
    # Register
    # -------------------------------------------------------------------------

    async def register(
        self,
        carnival_id: UUID,
        club_id: UUID,
        details: RegistrationDetails,
        acting_user_id: UUID,
        mode: RegistrationMode,
    ) -> RegistrationResult:
        return await self._register(carnival_id, club_id, details, acting_user_id, RegistrationMode(mode))

    async def register_own_club(
        self,
        carnival_id: UUID,
        details: RegistrationDetails,
        acting_user_id: UUID,
    ) -> RegistrationResult:
        """Self-service registration of the acting user's club."""
        return await self._register(
            carnival_id, None, details, acting_user_id, RegistrationMode.SELF_SERVICE
        )

    async def _register(
        self,
        carnival_id: UUID,
        club_id: Optional[UUID],
        details: RegistrationDetails,
        acting_user_id: UUID,
        mode: RegistrationMode,
    ) -> RegistrationResult:
        async def body(ctx: OperationContext) -> RegistrationResult:
            target_club_id = club_id
            if target_club_id is None:
                member = await require_user(self.db, acting_user_id)
                if member.club_id is None:
                    raise InvalidStateError(
                        "You must be associated with a club to register for a carnival"
                    )
                target_club_id = member.club_id

            _validate_counts(details.number_of_teams, details.player_count)

            carnival = await load_carnival(self.db, carnival_id, lock=True)
            club = await _require_club(self.db, target_club_id)
            if not club.is_active:
                raise InvalidStateError("Cannot register an inactive club")

            user = await require_user(self.db, acting_user_id)
            if mode == RegistrationMode.ORGANIZER_ADDS:
                require_organizer_or_admin(carnival, user, "add clubs to this carnival")
            elif user.club_id != club.id:
                raise UnauthorizedError("You can only register your own club")

            if await _find_active_registration(self.db, carnival.id, club.id) is not None:
                raise InvalidStateError(DUPLICATE_REGISTRATION)

            host = is_host_club(carnival, club.id)
            if not host:
                if mode == RegistrationMode.SELF_SERVICE:
                    _check_registration_window(carnival)
                await _check_capacity(self.db, carnival)

            registration = self._build_registration(carnival, club, user, details, mode, host)
            registration.display_order = await _next_display_order(self.db, carnival.id)
            self.db.add(registration)
            try:
                await self.db.flush()
            except IntegrityError:
                # A concurrent request registered the same club first
                raise InvalidStateError(DUPLICATE_REGISTRATION)

            current = await recount_registrations(self.db, carnival)
            await self.db.flush()

            if registration.approval_status == ApprovalStatus.APPROVED:
                message = f'{club.name} is registered for "{carnival.title}".'
            else:
                message = (
                    f'Registration for "{carnival.title}" submitted. '
                    f"The organiser will review your registration."
                )
            return RegistrationResult(
                success=True,
                message=message,
                registration=RegistrationRead.model_validate(registration),
                current_registrations=current,
            )

        return await run_operation(
            self.db, "register", RegistrationResult, body,
            carnival_id=carnival_id, club_id=club_id, user_id=acting_user_id, mode=mode.value,
        )

    def _build_registration(
        self,
        carnival: Carnival,
        club: Club,
        user: User,
        details: RegistrationDetails,
        mode: RegistrationMode,
        host: bool,
    ) -> AttendanceRegistration:
        now = utcnow()
        approved = host or mode == RegistrationMode.ORGANIZER_ADDS

        if mode == RegistrationMode.SELF_SERVICE:
            contact = (user.full_name, user.email, user.phone_number)
            notes = details.registration_notes or f"Self-registered by {user.full_name}"
            # Payment is recorded by the organiser, never by the registering club
            is_paid = False
        else:
            contact = (club.contact_person, club.contact_email, club.contact_phone)
            notes = details.registration_notes
            is_paid = bool(details.is_paid)

        registration = AttendanceRegistration(
            id=uuid4(),
            carnival_id=carnival.id,
            club_id=club.id,
            number_of_teams=details.number_of_teams,
            player_count=details.player_count,
            team_name=details.team_name or club.name,
            contact_person=details.contact_person or contact[0],
            contact_email=details.contact_email or contact[1],
            contact_phone=details.contact_phone or contact[2],
            special_requirements=details.special_requirements,
            registration_notes=notes,
            payment_amount=0,
            is_paid=is_paid,
            payment_date=now if is_paid else None,
            approval_status=ApprovalStatus.APPROVED if approved else ApprovalStatus.PENDING,
            approved_at=now if approved else None,
            approved_by_user_id=user.id if approved else None,
            display_order=0,
            is_active=True,
            registered_at=now,
        )
        # Initial estimate: no roster is confirmed yet, so the coarse headcount is used
        apply_fee(registration, carnival, details.player_count, now=now)
        return registration

    # -------------------------------------------------------------------------
    # Approve / Reject
    # -------------------------------------------------------------------------

    async def approve(self, registration_id: UUID, acting_user_id: UUID) -> RegistrationResult:
        async def body(ctx: OperationContext) -> RegistrationResult:
            registration = await load_registration(self.db, registration_id)
            carnival = await load_carnival(self.db, registration.carnival_id, lock=True, require_active=False)
            user = await require_user(self.db, acting_user_id)
            require_organizer_or_admin(carnival, user, "approve registrations")

            if registration.approval_status == ApprovalStatus.APPROVED:
                return RegistrationResult(
                    success=True,
                    message="This registration is already approved.",
                    registration=RegistrationRead.model_validate(registration),
                    current_registrations=carnival.current_registrations,
                )

            if not is_host_club(carnival, registration.club_id):
                await _check_capacity(self.db, carnival)

            registration.approval_status = ApprovalStatus.APPROVED
            registration.approved_at = utcnow()
            registration.approved_by_user_id = user.id
            registration.rejection_reason = None

            current = await recount_registrations(self.db, carnival)
            await self.db.flush()

            club = await _require_club(self.db, registration.club_id)
            carnival_read = CarnivalRead.model_validate(carnival)
            club_email = registration.contact_email or club.contact_email
            club_name, approver_name = club.name, user.full_name
            ctx.after_commit(
                lambda: self.notifier.notify_approval(carnival_read, club_email, club_name, approver_name)
            )

            return RegistrationResult(
                success=True,
                message=f'{club.name} has been approved for "{carnival.title}".',
                registration=RegistrationRead.model_validate(registration),
                current_registrations=current,
            )

        return await run_operation(
            self.db, "approve_registration", RegistrationResult, body,
            registration_id=registration_id, user_id=acting_user_id,
        )

    async def reject(
        self,
        registration_id: UUID,
        acting_user_id: UUID,
        reason: Optional[str],
    ) -> RegistrationResult:
        async def body(ctx: OperationContext) -> RegistrationResult:
            cleaned = (reason or "").strip()
            if not cleaned:
                raise ValidationFailureError("A reason is required to reject a registration")

            registration = await load_registration(self.db, registration_id)
            carnival = await load_carnival(self.db, registration.carnival_id, lock=True, require_active=False)
            user = await require_user(self.db, acting_user_id)
            require_organizer_or_admin(carnival, user, "reject registrations")

            registration.approval_status = ApprovalStatus.REJECTED
            registration.approved_at = None
            registration.approved_by_user_id = user.id
            registration.rejection_reason = cleaned

            current = await recount_registrations(self.db, carnival)
            await self.db.flush()

            club = await _require_club(self.db, registration.club_id)
            carnival_read = CarnivalRead.model_validate(carnival)
            club_email = registration.contact_email or club.contact_email
            club_name, approver_name = club.name, user.full_name
            ctx.after_commit(
                lambda: self.notifier.notify_rejection(
                    carnival_read, club_email, club_name, approver_name, cleaned
                )
            )

            return RegistrationResult(
                success=True,
                message=f'The registration of {club.name} for "{carnival.title}" has been rejected.',
                registration=RegistrationRead.model_validate(registration),
                current_registrations=current,
            )

        return await run_operation(
            self.db, "reject_registration", RegistrationResult, body,
            registration_id=registration_id, user_id=acting_user_id,
        )

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------

    async def update(
        self,
        registration_id: UUID,
        changes: Union[RegistrationUpdate, dict],
        acting_user_id: UUID,
    ) -> RegistrationResult:
        async def body(ctx: OperationContext) -> RegistrationResult:
            fields = _update_fields(changes)
            # Amounts are always derived
            fields.pop("payment_amount", None)
            _validate_counts(fields.get("number_of_teams"), fields.get("player_count"))
            if "number_of_teams" in fields and fields["number_of_teams"] is None:
                raise ValidationFailureError("Number of teams is required")

            registration = await load_registration(self.db, registration_id)
            carnival = await load_carnival(self.db, registration.carnival_id, require_active=False)
            user = await require_user(self.db, acting_user_id)

            manages = user.is_admin or is_organizer(carnival, user)
            if not manages and user.club_id != registration.club_id:
                raise UnauthorizedError("You can only update your own club's registration")

            is_paid = fields.pop("is_paid", None)
            if is_paid is not None and not manages:
                raise UnauthorizedError("Only the carnival organiser can record payments")

            for name, value in fields.items():
                if name == "player_count" and value is None:
                    continue
                setattr(registration, name, value)

            if is_paid is not None and is_paid != registration.is_paid:
                registration.is_paid = is_paid
                registration.payment_date = utcnow() if is_paid else None

            await recalculate_registration_fee(self.db, registration, carnival)
            await self.db.flush()

            return RegistrationResult(
                success=True,
                message="Registration updated.",
                registration=RegistrationRead.model_validate(registration),
                current_registrations=carnival.current_registrations,
            )

        return await run_operation(
            self.db, "update_registration", RegistrationResult, body,
            registration_id=registration_id, user_id=acting_user_id,
        )

    # -------------------------------------------------------------------------
    # Unregister
    # -------------------------------------------------------------------------

    async def unregister(self, registration_id: UUID, acting_user_id: UUID) -> RegistrationResult:
        """
        Soft-delete a registration.

        A club withdrawing its own registration may do so only while unpaid;
        the organiser or an administrator may remove any registration.
        """
        async def body(ctx: OperationContext) -> RegistrationResult:
            registration = await load_registration(self.db, registration_id)
            carnival = await load_carnival(self.db, registration.carnival_id, lock=True, require_active=False)
            user = await require_user(self.db, acting_user_id)

            manages = user.is_admin or is_organizer(carnival, user)
            if not manages:
                if user.club_id != registration.club_id:
                    raise UnauthorizedError("You can only withdraw your own club's registration")
                if registration.is_paid:
                    raise InvalidStateError(PAID_WITHDRAWAL)

            registration.is_active = False
            current = await recount_registrations(self.db, carnival)
            await self.db.flush()

            return RegistrationResult(
                success=True,
                message=f'The registration for "{carnival.title}" has been removed.',
                registration=RegistrationRead.model_validate(registration),
                current_registrations=current,
            )

        return await run_operation(
            self.db, "unregister", RegistrationResult, body,
            registration_id=registration_id, user_id=acting_user_id,
        )

    # -------------------------------------------------------------------------
    # Fees
    # -------------------------------------------------------------------------

    async def recalculate_fees(self, registration_id: UUID) -> RegistrationResult:
        """Re-derive the fee from the confirmed roster. Safe to call repeatedly."""
        async def body(ctx: OperationContext) -> RegistrationResult:
            registration = await load_registration(self.db, registration_id)
            carnival = await load_carnival(self.db, registration.carnival_id, require_active=False)

            changed = await recalculate_registration_fee(self.db, registration, carnival)
            await self.db.flush()

            return RegistrationResult(
                success=True,
                message="Fees recalculated." if changed else "Fees are already up to date.",
                registration=RegistrationRead.model_validate(registration),
                current_registrations=carnival.current_registrations,
            )

        return await run_operation(
            self.db, "recalculate_fees", RegistrationResult, body,
            registration_id=registration_id,
        )

    # -------------------------------------------------------------------------
    # Ordering
    # -------------------------------------------------------------------------

    async def reorder(
        self,
        carnival_id: UUID,
        ordered_registration_ids: List[UUID],
        acting_user_id: UUID,
    ) -> ReorderResult:
        """
        Rewrite ``display_order`` to follow ``ordered_registration_ids``.

        Registrations missing from the list keep their relative order after
        the listed ones.
        """
        async def body(ctx: OperationContext) -> ReorderResult:
            if len(set(ordered_registration_ids)) != len(ordered_registration_ids):
                raise ValidationFailureError("Each registration may appear only once")

            carnival = await load_carnival(self.db, carnival_id)
            user = await require_user(self.db, acting_user_id)
            require_organizer_or_admin(carnival, user, "reorder attendees")

            registrations = await list_registrations(self.db, carnival.id)
            by_id = {r.id: r for r in registrations}

            unknown = [rid for rid in ordered_registration_ids if rid not in by_id]
            if unknown:
                raise ValidationFailureError(
                    f"Registration {unknown[0]} is not an active registration for this carnival"
                )

            listed = [by_id[rid] for rid in ordered_registration_ids]
            rest = [r for r in registrations if r.id not in set(ordered_registration_ids)]
            ordered = listed + rest
            for position, registration in enumerate(ordered, start=1):
                if registration.display_order != position:
                    registration.display_order = position
            await self.db.flush()

            return ReorderResult(
                success=True,
                message="Attendee order updated.",
                registrations=[RegistrationRead.model_validate(r) for r in ordered],
            )

        return await run_operation(
            self.db, "reorder_registrations", ReorderResult, body,
            carnival_id=carnival_id, user_id=acting_user_id,
        )
