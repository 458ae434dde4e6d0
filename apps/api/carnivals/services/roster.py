"""
Roster Manager
==============

Players assigned to an attendance registration. Only active assignments
with status ``confirmed`` count towards the per-player fee, so every roster
change re-prices the registration in the same transaction.
"""

from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carnivals.errors import NotFoundError, UnauthorizedError, ValidationFailureError
from carnivals.models import (
    AttendancePlayerAssignment,
    AttendanceRegistration,
    AttendanceStatus,
    Carnival,
    ClubPlayer,
    User,
    utcnow,
)
from carnivals.schemas import AssignmentRead, RegistrationRead, RosterResult
from carnivals.services.common import OperationContext, run_operation
from carnivals.services.fees import recalculate_registration_fee
from carnivals.services.guards import is_organizer, load_carnival, load_registration, require_user


def _require_roster_access(carnival: Carnival, registration: AttendanceRegistration, user: User) -> None:
    if user.is_admin or is_organizer(carnival, user) or user.club_id == registration.club_id:
        return
    raise UnauthorizedError("You can only manage the roster of your own club's registration")


async def list_assignments(db: AsyncSession, registration_id: UUID) -> List[AttendancePlayerAssignment]:
    stmt = (
        select(AttendancePlayerAssignment)
        .where(
            AttendancePlayerAssignment.registration_id == registration_id,
            AttendancePlayerAssignment.is_active.is_(True),
        )
        .order_by(AttendancePlayerAssignment.added_at)
    )
    return list((await db.execute(stmt)).scalars().all())


async def _load_assignment(db: AsyncSession, assignment_id: UUID) -> AttendancePlayerAssignment:
    assignment = await db.get(AttendancePlayerAssignment, assignment_id, populate_existing=True)
    if assignment is None or not assignment.is_active:
        raise NotFoundError("Player assignment not found")
    return assignment


class RosterManager:
    """Add, update and remove players on an attendance registration."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _reprice(
        self,
        registration: AttendanceRegistration,
        carnival: Carnival,
        message: str,
    ) -> RosterResult:
        await self.db.flush()
        await recalculate_registration_fee(self.db, registration, carnival)
        await self.db.flush()
        assignments = await list_assignments(self.db, registration.id)
        return RosterResult(
            success=True,
            message=message,
            registration=RegistrationRead.model_validate(registration),
            assignments=[AssignmentRead.model_validate(a) for a in assignments],
        )

    async def add_players(
        self,
        registration_id: UUID,
        club_player_ids: List[UUID],
        acting_user_id: UUID,
    ) -> RosterResult:
        """
        Assign club players as confirmed attendees.

        Players already on the roster are skipped; previously removed ones
        are reinstated.
        """
        async def body(ctx: OperationContext) -> RosterResult:
            if not club_player_ids:
                raise ValidationFailureError("Select at least one player")

            registration = await load_registration(self.db, registration_id)
            carnival = await load_carnival(self.db, registration.carnival_id, require_active=False)
            user = await require_user(self.db, acting_user_id)
            _require_roster_access(carnival, registration, user)

            players = (
                await self.db.execute(select(ClubPlayer).where(ClubPlayer.id.in_(club_player_ids)))
            ).scalars().all()
            by_id = {p.id: p for p in players}
            for player_id in club_player_ids:
                player = by_id.get(player_id)
                if player is None or not player.is_active:
                    raise NotFoundError(f"Player {player_id} not found")
                if player.club_id != registration.club_id:
                    raise ValidationFailureError(
                        f"{player.first_name} {player.last_name} does not play for the registered club"
                    )

            existing = (
                await self.db.execute(
                    select(AttendancePlayerAssignment).where(
                        AttendancePlayerAssignment.registration_id == registration.id,
                        AttendancePlayerAssignment.club_player_id.in_(club_player_ids),
                    )
                )
            ).scalars().all()
            existing_by_player = {a.club_player_id: a for a in existing}

            added = 0
            for player_id in dict.fromkeys(club_player_ids):
                assignment = existing_by_player.get(player_id)
                if assignment is None:
                    self.db.add(AttendancePlayerAssignment(
                        id=uuid4(),
                        registration_id=registration.id,
                        club_player_id=player_id,
                        attendance_status=AttendanceStatus.CONFIRMED,
                        is_active=True,
                        added_at=utcnow(),
                    ))
                    added += 1
                elif not assignment.is_active:
                    assignment.is_active = True
                    assignment.attendance_status = AttendanceStatus.CONFIRMED
                    assignment.added_at = utcnow()
                    added += 1

            return await self._reprice(registration, carnival, f"{added} player(s) added to the roster.")

        return await run_operation(
            self.db, "add_players", RosterResult, body,
            registration_id=registration_id, user_id=acting_user_id,
        )

    async def set_attendance_status(
        self,
        assignment_id: UUID,
        status: AttendanceStatus,
        acting_user_id: UUID,
        notes: Optional[str] = None,
    ) -> RosterResult:
        async def body(ctx: OperationContext) -> RosterResult:
            try:
                new_status = AttendanceStatus(status)
            except ValueError:
                raise ValidationFailureError(f"Unknown attendance status: {status}")
            assignment = await _load_assignment(self.db, assignment_id)
            registration = await load_registration(self.db, assignment.registration_id)
            carnival = await load_carnival(self.db, registration.carnival_id, require_active=False)
            user = await require_user(self.db, acting_user_id)
            _require_roster_access(carnival, registration, user)

            assignment.attendance_status = new_status
            if notes is not None:
                assignment.notes = notes

            return await self._reprice(registration, carnival, f"Attendance set to {new_status.value}.")

        return await run_operation(
            self.db, "set_attendance_status", RosterResult, body,
            assignment_id=assignment_id, user_id=acting_user_id,
        )

    async def remove_player(self, assignment_id: UUID, acting_user_id: UUID) -> RosterResult:
        async def body(ctx: OperationContext) -> RosterResult:
            assignment = await _load_assignment(self.db, assignment_id)
            registration = await load_registration(self.db, assignment.registration_id)
            carnival = await load_carnival(self.db, registration.carnival_id, require_active=False)
            user = await require_user(self.db, acting_user_id)
            _require_roster_access(carnival, registration, user)

            assignment.is_active = False

            return await self._reprice(registration, carnival, "Player removed from the roster.")

        return await run_operation(
            self.db, "remove_player", RosterResult, body,
            assignment_id=assignment_id, user_id=acting_user_id,
        )
