"""
Carnival Hub Database Models
============================

Directory (read-only for the core):
- clubs, users, club_players

Events:
- carnivals: manually entered or imported from the external event feed

Participation:
- attendance_registrations: one club's intent to attend one carnival
- attendance_player_assignments: roster entries used for per-player fees

Derived fields (``Carnival.current_registrations``) are recomputed by the
service layer inside the transaction that changed their inputs, never
hand-edited.
"""

import enum
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from carnivals.database import Base


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, enum.Enum):
    """Directory roles relevant to carnival management."""
    ADMINISTRATOR = "administrator"
    PRIMARY_DELEGATE = "primary_delegate"
    MEMBER = "member"


class ApprovalStatus(str, enum.Enum):
    """Registration workflow state. Persisted as the literal values."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AttendanceStatus(str, enum.Enum):
    """Roster player attendance state."""
    CONFIRMED = "confirmed"
    PENDING = "pending"
    DECLINED = "declined"


# =============================================================================
# DIRECTORY - Clubs and Users
# =============================================================================

class Club(Base):
    """A participating or hosting club."""
    __tablename__ = "clubs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    state: Mapped[Optional[str]] = mapped_column(String(10))  # NSW, QLD, ...

    # Outward-facing contact snapshot
    contact_person: Mapped[Optional[str]] = mapped_column(String(255))
    contact_email: Mapped[Optional[str]] = mapped_column(String(255))
    contact_phone: Mapped[Optional[str]] = mapped_column(String(50))

    # Metadata
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_clubs_name", "name"),
        Index("ix_clubs_state", "state"),
    )


class User(Base):
    """A club delegate, member or system administrator."""
    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone_number: Mapped[Optional[str]] = mapped_column(String(50))

    club_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("clubs.id"))
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="userrole", values_callable=_enum_values),
        default=UserRole.MEMBER,
        nullable=False,
    )

    # Metadata
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_users_club", "club_id"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMINISTRATOR


class ClubPlayer(Base):
    """A player on a club's roster."""
    __tablename__ = "club_players"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    club_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("clubs.id"), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_club_players_club", "club_id"),
    )


# =============================================================================
# EVENTS - Carnivals
# =============================================================================

class Carnival(Base):
    """
    A hosted sporting event.

    Provenance:
    - Manually entered carnivals have an owner from creation and never
      take part in claim/release.
    - Imported carnivals arrive unowned with ``is_manually_entered=False``
      and an ``external_sync_timestamp``; a club delegate may claim them.

    ``version`` is an optimistic concurrency counter. Ownership changes
    also take a row lock, so two concurrent claims resolve to one owner.
    """
    __tablename__ = "carnivals"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    event_date: Mapped[Optional[date]] = mapped_column(Date)
    location: Mapped[Optional[str]] = mapped_column(String(255))
    state: Mapped[Optional[str]] = mapped_column(String(10))

    # Provenance
    is_manually_entered: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    external_import_id: Mapped[Optional[str]] = mapped_column(String(100), unique=True)
    external_sync_timestamp: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Ownership
    host_club_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("clubs.id"))
    owner_user_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("users.id"))
    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Outward-facing organiser contact
    organiser_contact_name: Mapped[Optional[str]] = mapped_column(String(255))
    organiser_contact_email: Mapped[Optional[str]] = mapped_column(String(255))
    organiser_contact_phone: Mapped[Optional[str]] = mapped_column(String(50))
    # Contact as it was imported, preserved at first claim
    original_external_contact_email: Mapped[Optional[str]] = mapped_column(String(255))

    # Fee policy inputs
    team_registration_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"), nullable=False)
    per_player_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"), nullable=False)

    # Capacity
    max_teams: Mapped[Optional[int]] = mapped_column(Integer)
    current_registrations: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_registration_open: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    registration_deadline: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Metadata
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("team_registration_fee >= 0", name="ck_carnival_team_fee_non_negative"),
        CheckConstraint("per_player_fee >= 0", name="ck_carnival_player_fee_non_negative"),
        CheckConstraint("current_registrations >= 0", name="ck_carnival_registrations_non_negative"),
        Index("ix_carnivals_event_date", "event_date"),
        Index("ix_carnivals_state", "state"),
        Index("ix_carnivals_host_club", "host_club_id"),
    )


# =============================================================================
# PARTICIPATION - Attendance Registrations and Rosters
# =============================================================================

class AttendanceRegistration(Base):
    """
    One club's registration to attend one carnival.

    At most one active registration per (carnival, club). The partial unique
    index enforces this even when two requests race past the application
    check.
    """
    __tablename__ = "attendance_registrations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    carnival_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("carnivals.id"), nullable=False)
    club_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("clubs.id"), nullable=False)

    # Participation facts
    number_of_teams: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    player_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    team_name: Mapped[Optional[str]] = mapped_column(String(255))
    contact_person: Mapped[Optional[str]] = mapped_column(String(255))
    contact_email: Mapped[Optional[str]] = mapped_column(String(255))
    contact_phone: Mapped[Optional[str]] = mapped_column(String(50))
    special_requirements: Mapped[Optional[str]] = mapped_column(Text)
    registration_notes: Mapped[Optional[str]] = mapped_column(Text)

    # Commercial facts
    payment_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"), nullable=False)
    is_paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    payment_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Workflow facts
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus, name="approvalstatus", values_callable=_enum_values),
        default=ApprovalStatus.PENDING,
        nullable=False,
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    approved_by_user_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("users.id"))
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)

    # Ordering / visibility
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("number_of_teams >= 1", name="ck_registration_teams_positive"),
        CheckConstraint("payment_amount >= 0", name="ck_registration_payment_non_negative"),
        Index(
            "uq_registration_active_carnival_club",
            "carnival_id",
            "club_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("ix_registrations_carnival_status", "carnival_id", "approval_status"),
        Index("ix_registrations_club", "club_id"),
    )


class AttendancePlayerAssignment(Base):
    """A roster player assigned to a registration."""
    __tablename__ = "attendance_player_assignments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    registration_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("attendance_registrations.id", ondelete="CASCADE"), nullable=False
    )
    club_player_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("club_players.id"), nullable=False)

    attendance_status: Mapped[AttendanceStatus] = mapped_column(
        Enum(AttendanceStatus, name="attendancestatus", values_callable=_enum_values),
        default=AttendanceStatus.CONFIRMED,
        nullable=False,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("registration_id", "club_player_id", name="uq_assignment_registration_player"),
        Index("ix_assignments_registration", "registration_id"),
    )
