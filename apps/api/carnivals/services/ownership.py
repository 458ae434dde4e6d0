"""
Carnival Ownership Manager
==========================

Claim, release and admin-assisted claim of carnivals imported from the
external event feed:

    Unowned(external) --claim / admin_claim_on_behalf--> Claimed
    Claimed           --release-----------------------> Unowned(external)

Manually entered carnivals never enter this machine.

RULES:
1. Preconditions are checked in a fixed order; each failure has its own
   message so users know exactly why a claim was refused.
2. Transitions on one carnival are serialized by a row lock and the
   carnival's optimistic ``version``. A losing concurrent claim is retried,
   sees the new owner, and fails with "already has an owner".
3. The host club changes on every transition, so the fee policy is
   re-applied to the carnival's active registrations in the same
   transaction. A claiming club's own registration becomes free, paid and
   approved, and the approved counter is recounted.
4. The imported organiser contact is notified after commit, best-effort.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from carnivals.directory import get_club, get_primary_delegate
from carnivals.errors import (
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailureError,
)
from carnivals.models import Carnival, Club, User, utcnow
from carnivals.schemas import (
    CarnivalRead,
    ClaimantInfo,
    FeeStructureResult,
    OwnershipResult,
)
from carnivals.services.common import OperationContext, run_operation
from carnivals.services.fees import CENT, recalculate_carnival_fees
from carnivals.services.guards import (
    Unowned,
    is_external_import,
    is_owner,
    load_carnival,
    ownership_state,
    require_claimable,
    require_organizer_or_admin,
    require_user,
)
from carnivals.services.notifications import NotificationDispatcher, get_dispatcher
from carnivals.services.registrations import count_active_registrations, recount_registrations

logger = logging.getLogger(__name__)


def _assign_ownership(
    carnival: Carnival,
    club: Club,
    contact: User,
    owner_user_id: Optional[UUID],
) -> Optional[str]:
    """Apply the Claimed state. Returns the preserved original contact email."""
    if carnival.original_external_contact_email is None:
        carnival.original_external_contact_email = carnival.organiser_contact_email

    carnival.host_club_id = club.id
    carnival.owner_user_id = owner_user_id
    carnival.claimed_at = utcnow()

    carnival.organiser_contact_name = contact.full_name
    carnival.organiser_contact_email = contact.email
    carnival.organiser_contact_phone = contact.phone_number or None

    return carnival.original_external_contact_email


def _clear_ownership(carnival: Carnival) -> None:
    carnival.host_club_id = None
    carnival.owner_user_id = None
    carnival.claimed_at = None
    carnival.organiser_contact_name = None
    carnival.organiser_contact_email = None
    carnival.organiser_contact_phone = None


def _parse_fee(value, label: str) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationFailureError(f"{label} must be a number")
    if not amount.is_finite() or amount < 0:
        raise ValidationFailureError(f"{label} cannot be negative")
    return amount.quantize(CENT)


class OwnershipManager:
    """State machine for who controls an imported carnival."""

    def __init__(self, db: AsyncSession, notifier: Optional[NotificationDispatcher] = None):
        self.db = db
        self.notifier = notifier or get_dispatcher()

    def _notify_claim(
        self,
        ctx: OperationContext,
        carnival: CarnivalRead,
        claimant: ClaimantInfo,
        original_contact: Optional[str],
    ) -> None:
        if original_contact:
            ctx.after_commit(
                lambda: self.notifier.notify_claim(carnival, claimant, original_contact)
            )

    # -------------------------------------------------------------------------
    # Claim
    # -------------------------------------------------------------------------

    async def claim(self, carnival_id: UUID, acting_user_id: UUID) -> OwnershipResult:
        """A club delegate takes ownership of an unowned imported carnival."""
        async def body(ctx: OperationContext) -> OwnershipResult:
            carnival = await load_carnival(self.db, carnival_id, lock=True)
            user = await require_user(self.db, acting_user_id)

            if user.club_id is None:
                raise InvalidStateError("You must be associated with a club to claim carnival ownership")
            club = await get_club(self.db, user.club_id)
            if club is None or not club.is_active:
                raise InvalidStateError("Your club must be active to claim carnival ownership")

            require_claimable(carnival)

            if carnival.state and club.state and carnival.state != club.state:
                raise InvalidStateError(
                    f"You can only claim carnivals in your club's state ({club.state}). "
                    f"This carnival is in {carnival.state}."
                )

            original_contact = _assign_ownership(carnival, club, user, owner_user_id=None)
            await recalculate_carnival_fees(self.db, carnival, approved_by=user.id)
            await recount_registrations(self.db, carnival)
            await self.db.flush()

            carnival_read = CarnivalRead.model_validate(carnival)
            claimant = ClaimantInfo(
                user_id=user.id,
                user_name=user.full_name,
                club_id=club.id,
                club_name=club.name,
            )
            self._notify_claim(ctx, carnival_read, claimant, original_contact)

            return OwnershipResult(
                success=True,
                message=(
                    f'You have successfully claimed ownership of "{carnival.title}". '
                    f"You can now manage this carnival and its attendees."
                ),
                carnival=carnival_read,
                claimed_by=claimant,
            )

        return await run_operation(
            self.db, "claim", OwnershipResult, body,
            carnival_id=carnival_id, user_id=acting_user_id,
        )

    # -------------------------------------------------------------------------
    # Release
    # -------------------------------------------------------------------------

    async def release(self, carnival_id: UUID, acting_user_id: UUID) -> OwnershipResult:
        """The current owner hands the carnival back to the unowned pool."""
        async def body(ctx: OperationContext) -> OwnershipResult:
            carnival = await load_carnival(self.db, carnival_id, lock=True, require_active=False)
            user = await require_user(self.db, acting_user_id)

            state = ownership_state(carnival)
            if isinstance(state, Unowned):
                raise InvalidStateError("This carnival is not currently owned by anyone")
            if not is_owner(state, user):
                raise UnauthorizedError("You can only release ownership of carnivals you own")
            if not is_external_import(carnival):
                raise InvalidStateError("Can only release ownership of imported carnivals")

            registered = await count_active_registrations(self.db, carnival.id)

            _clear_ownership(carnival)
            await recalculate_carnival_fees(self.db, carnival)
            await self.db.flush()

            message = f'You have successfully released ownership of "{carnival.title}".'
            warnings = []
            if registered > 0:
                warning = (
                    f"This carnival has {registered} registered club(s) - "
                    f"you may want to contact them about the ownership change."
                )
                warnings.append(warning)
                message = f"{message} Note: {warning}"

            return OwnershipResult(
                success=True,
                message=message,
                warnings=warnings,
                carnival=CarnivalRead.model_validate(carnival),
                registered_clubs_count=registered,
            )

        return await run_operation(
            self.db, "release", OwnershipResult, body,
            carnival_id=carnival_id, user_id=acting_user_id,
        )

    # -------------------------------------------------------------------------
    # Admin claim
    # -------------------------------------------------------------------------

    async def admin_claim_on_behalf(
        self,
        carnival_id: UUID,
        admin_user_id: UUID,
        target_club_id: UUID,
    ) -> OwnershipResult:
        """
        An administrator assigns an imported carnival to another club.

        The club's active primary delegate becomes the owner. A region
        mismatch is reported as a warning rather than refused.
        """
        async def body(ctx: OperationContext) -> OwnershipResult:
            admin = await require_user(self.db, admin_user_id)
            if not admin.is_admin:
                raise UnauthorizedError("Only administrators can claim carnivals on behalf of other clubs")

            carnival = await load_carnival(self.db, carnival_id, lock=True)

            club = await get_club(self.db, target_club_id)
            if club is None:
                raise NotFoundError("Target club not found")
            if not club.is_active:
                raise InvalidStateError("Cannot claim carnival for an inactive club")
            delegate = await get_primary_delegate(self.db, club.id)
            if delegate is None:
                raise InvalidStateError("Target club must have an active primary delegate to claim carnival")

            require_claimable(carnival)

            warnings = []
            if carnival.state and club.state and carnival.state != club.state:
                warnings.append(
                    f"This carnival is in {carnival.state} but the club is based in {club.state}."
                )

            original_contact = _assign_ownership(carnival, club, delegate, owner_user_id=delegate.id)
            await recalculate_carnival_fees(self.db, carnival, approved_by=admin.id)
            await recount_registrations(self.db, carnival)
            await self.db.flush()

            carnival_read = CarnivalRead.model_validate(carnival)
            claimant = ClaimantInfo(
                user_id=delegate.id,
                user_name=delegate.full_name,
                club_id=club.id,
                club_name=club.name,
            )
            self._notify_claim(ctx, carnival_read, claimant, original_contact)

            logger.info(
                f"Administrator {admin.id} assigned carnival {carnival.id} to club {club.id} "
                f"(delegate {delegate.id})"
            )

            message = f'Successfully claimed "{carnival.title}" on behalf of {club.name}.'
            for warning in warnings:
                message = f"{message} Note: {warning}"

            return OwnershipResult(
                success=True,
                message=message,
                warnings=warnings,
                carnival=carnival_read,
                claimed_by=claimant,
            )

        return await run_operation(
            self.db, "admin_claim_on_behalf", OwnershipResult, body,
            carnival_id=carnival_id, user_id=admin_user_id, club_id=target_club_id,
        )

    # -------------------------------------------------------------------------
    # Fee structure
    # -------------------------------------------------------------------------

    async def update_fee_structure(
        self,
        carnival_id: UUID,
        acting_user_id: UUID,
        team_registration_fee=None,
        per_player_fee=None,
    ) -> FeeStructureResult:
        """Change fee rates and re-price every active registration."""
        async def body(ctx: OperationContext) -> FeeStructureResult:
            team_fee = _parse_fee(team_registration_fee, "Team registration fee")
            player_fee = _parse_fee(per_player_fee, "Per-player fee")

            carnival = await load_carnival(self.db, carnival_id, lock=True)
            user = await require_user(self.db, acting_user_id)
            require_organizer_or_admin(carnival, user, "change carnival fees")

            changed = False
            if team_fee is not None and team_fee != carnival.team_registration_fee:
                carnival.team_registration_fee = team_fee
                changed = True
            if player_fee is not None and player_fee != carnival.per_player_fee:
                carnival.per_player_fee = player_fee
                changed = True

            recalculated = 0
            if changed:
                recalculated = await recalculate_carnival_fees(self.db, carnival)
            await self.db.flush()

            return FeeStructureResult(
                success=True,
                message=(
                    f"Fees updated. {recalculated} registration(s) re-priced."
                    if changed else "Fees are unchanged."
                ),
                carnival=CarnivalRead.model_validate(carnival),
                recalculated_registrations=recalculated,
            )

        return await run_operation(
            self.db, "update_fee_structure", FeeStructureResult, body,
            carnival_id=carnival_id, user_id=acting_user_id,
        )
