"""
Carnival Hub API Schemas
========================

Pydantic schemas for request/response validation.
- Read models for carnivals, registrations and roster assignments
- Request bodies for ownership, registration and roster operations
- Structured operation results (success flag, message, error kind)
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from carnivals.errors import ErrorKind
from carnivals.models import ApprovalStatus, AttendanceStatus


# =============================================================================
# BASE SCHEMAS
# =============================================================================

class BaseSchema(BaseModel):
    """Base schema with common configuration."""
    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# HEALTH & STATUS
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    timestamp: datetime
    database: str
    environment: str


class ReadyResponse(BaseModel):
    """Readiness check response."""
    ready: bool
    checks: Dict[str, bool]


# =============================================================================
# CARNIVAL SCHEMAS
# =============================================================================

class CarnivalRead(BaseSchema):
    id: UUID
    title: str
    event_date: Optional[date] = None
    location: Optional[str] = None
    state: Optional[str] = None

    is_manually_entered: bool
    external_import_id: Optional[str] = None
    external_sync_timestamp: Optional[datetime] = None

    host_club_id: Optional[UUID] = None
    owner_user_id: Optional[UUID] = None
    claimed_at: Optional[datetime] = None

    organiser_contact_name: Optional[str] = None
    organiser_contact_email: Optional[str] = None
    organiser_contact_phone: Optional[str] = None

    team_registration_fee: Decimal
    per_player_fee: Decimal

    max_teams: Optional[int] = None
    current_registrations: int
    is_registration_open: bool
    registration_deadline: Optional[datetime] = None

    is_active: bool


class ClaimantInfo(BaseModel):
    """Who ended up owning a claimed carnival."""
    user_id: UUID
    user_name: str
    club_id: UUID
    club_name: str


class FeeStructureUpdate(BaseModel):
    team_registration_fee: Optional[Decimal] = None
    per_player_fee: Optional[Decimal] = None


class AdminClaimRequest(BaseModel):
    target_club_id: UUID


# =============================================================================
# REGISTRATION SCHEMAS
# =============================================================================

class RegistrationDetails(BaseModel):
    """
    Caller-supplied registration facts.

    Range checks happen in the registration service so that every caller
    (HTTP, CLI, jobs) gets the same ``validation_failure`` result.
    ``payment_amount`` is accepted for compatibility but always recomputed.
    """
    number_of_teams: int = 1
    player_count: int = 0
    team_name: Optional[str] = None
    contact_person: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    special_requirements: Optional[str] = None
    registration_notes: Optional[str] = None
    is_paid: Optional[bool] = None
    payment_amount: Optional[Decimal] = None


class RegisterClubRequest(RegistrationDetails):
    """Organizer adds a club to their carnival."""
    club_id: UUID


class RegistrationUpdate(BaseModel):
    """
    Partial update; only fields present in the request are applied.

    Approval status, the active flag and the carnival or club a registration
    belongs to change only through their own operations, so any other field
    is refused.
    """
    model_config = ConfigDict(extra="forbid")

    number_of_teams: Optional[int] = None
    player_count: Optional[int] = None
    team_name: Optional[str] = None
    contact_person: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    special_requirements: Optional[str] = None
    registration_notes: Optional[str] = None
    is_paid: Optional[bool] = None
    payment_amount: Optional[Decimal] = None


class RejectRequest(BaseModel):
    reason: Optional[str] = None


class ReorderRequest(BaseModel):
    registration_ids: List[UUID] = Field(..., min_length=1)


class RegistrationRead(BaseSchema):
    id: UUID
    carnival_id: UUID
    club_id: UUID

    number_of_teams: int
    player_count: int
    team_name: Optional[str] = None
    contact_person: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    special_requirements: Optional[str] = None
    registration_notes: Optional[str] = None

    payment_amount: Decimal
    is_paid: bool
    payment_date: Optional[datetime] = None

    approval_status: ApprovalStatus
    approved_at: Optional[datetime] = None
    approved_by_user_id: Optional[UUID] = None
    rejection_reason: Optional[str] = None

    display_order: int
    is_active: bool
    registered_at: datetime


class AttendanceCounts(BaseModel):
    carnival_id: UUID
    approved: int
    pending: int
    rejected: int
    total: int


# =============================================================================
# ROSTER SCHEMAS
# =============================================================================

class AddPlayersRequest(BaseModel):
    club_player_ids: List[UUID] = Field(..., min_length=1)


class AttendanceStatusUpdate(BaseModel):
    attendance_status: AttendanceStatus
    notes: Optional[str] = None


class AssignmentRead(BaseSchema):
    id: UUID
    registration_id: UUID
    club_player_id: UUID
    attendance_status: AttendanceStatus
    notes: Optional[str] = None
    is_active: bool
    added_at: datetime


# =============================================================================
# OPERATION RESULTS
# =============================================================================

class OperationResult(BaseModel):
    """
    Outcome of a service operation.

    Every service operation returns one of these (or a subclass); failures
    carry ``error_kind`` instead of raising.
    """
    success: bool
    message: str
    error_kind: Optional[ErrorKind] = None
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str):
        return cls(success=False, message=message, error_kind=kind)


class OwnershipResult(OperationResult):
    carnival: Optional[CarnivalRead] = None
    claimed_by: Optional[ClaimantInfo] = None
    registered_clubs_count: int = 0


class FeeStructureResult(OperationResult):
    carnival: Optional[CarnivalRead] = None
    recalculated_registrations: int = 0


class RegistrationResult(OperationResult):
    registration: Optional[RegistrationRead] = None
    current_registrations: Optional[int] = None


class ReorderResult(OperationResult):
    registrations: List[RegistrationRead] = Field(default_factory=list)


class RosterResult(OperationResult):
    registration: Optional[RegistrationRead] = None
    assignments: List[AssignmentRead] = Field(default_factory=list)
