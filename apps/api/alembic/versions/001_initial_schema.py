"""Initial carnival hub schema

Revision ID: 001_initial_schema
Revises: 
Create Date: 2026-10-19

Carnival Hub Database Schema
============================

Directory: clubs, users, club_players
Events: carnivals (manual or feed-imported, optimistic version column)
Participation: attendance_registrations, attendance_player_assignments

The partial unique index on attendance_registrations (carnival_id, club_id)
WHERE is_active guarantees one active registration per club and carnival.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create enums first
    user_role_enum = postgresql.ENUM(
        'administrator', 'primary_delegate', 'member',
        name='userrole', create_type=False
    )
    user_role_enum.create(op.get_bind(), checkfirst=True)

    approval_status_enum = postgresql.ENUM(
        'pending', 'approved', 'rejected',
        name='approvalstatus', create_type=False
    )
    approval_status_enum.create(op.get_bind(), checkfirst=True)

    attendance_status_enum = postgresql.ENUM(
        'confirmed', 'pending', 'declined',
        name='attendancestatus', create_type=False
    )
    attendance_status_enum.create(op.get_bind(), checkfirst=True)

    # =========================================================================
    # DIRECTORY
    # =========================================================================

    op.create_table(
        'clubs',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('state', sa.String(10), nullable=True),
        sa.Column('contact_person', sa.String(255), nullable=True),
        sa.Column('contact_email', sa.String(255), nullable=True),
        sa.Column('contact_phone', sa.String(50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_clubs_name', 'clubs', ['name'])
    op.create_index('ix_clubs_state', 'clubs', ['state'])

    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone_number', sa.String(50), nullable=True),
        sa.Column('club_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('role', user_role_enum, nullable=False, server_default='member'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['club_id'], ['clubs.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email')
    )
    op.create_index('ix_users_club', 'users', ['club_id'])

    op.create_table(
        'club_players',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('club_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['club_id'], ['clubs.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_club_players_club', 'club_players', ['club_id'])

    # =========================================================================
    # EVENTS
    # =========================================================================

    op.create_table(
        'carnivals',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('event_date', sa.Date(), nullable=True),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('state', sa.String(10), nullable=True),

        # Provenance
        sa.Column('is_manually_entered', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('external_import_id', sa.String(100), nullable=True),
        sa.Column('external_sync_timestamp', sa.DateTime(timezone=True), nullable=True),

        # Ownership
        sa.Column('host_club_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('owner_user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True),

        # Contact
        sa.Column('organiser_contact_name', sa.String(255), nullable=True),
        sa.Column('organiser_contact_email', sa.String(255), nullable=True),
        sa.Column('organiser_contact_phone', sa.String(50), nullable=True),
        sa.Column('original_external_contact_email', sa.String(255), nullable=True),

        # Fees
        sa.Column('team_registration_fee', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('per_player_fee', sa.Numeric(10, 2), nullable=False, server_default='0'),

        # Capacity
        sa.Column('max_teams', sa.Integer(), nullable=True),
        sa.Column('current_registrations', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_registration_open', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('registration_deadline', sa.DateTime(timezone=True), nullable=True),

        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['host_club_id'], ['clubs.id']),
        sa.ForeignKeyConstraint(['owner_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_import_id', name='uq_carnivals_external_import_id'),
        sa.CheckConstraint('team_registration_fee >= 0', name='ck_carnival_team_fee_non_negative'),
        sa.CheckConstraint('per_player_fee >= 0', name='ck_carnival_player_fee_non_negative'),
        sa.CheckConstraint('current_registrations >= 0', name='ck_carnival_registrations_non_negative')
    )
    op.create_index('ix_carnivals_event_date', 'carnivals', ['event_date'])
    op.create_index('ix_carnivals_state', 'carnivals', ['state'])
    op.create_index('ix_carnivals_host_club', 'carnivals', ['host_club_id'])

    # =========================================================================
    # PARTICIPATION
    # =========================================================================

    op.create_table(
        'attendance_registrations',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('carnival_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('club_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('number_of_teams', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('player_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('team_name', sa.String(255), nullable=True),
        sa.Column('contact_person', sa.String(255), nullable=True),
        sa.Column('contact_email', sa.String(255), nullable=True),
        sa.Column('contact_phone', sa.String(50), nullable=True),
        sa.Column('special_requirements', sa.Text(), nullable=True),
        sa.Column('registration_notes', sa.Text(), nullable=True),
        sa.Column('payment_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('is_paid', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approval_status', approval_status_enum, nullable=False, server_default='pending'),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_by_user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('registered_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['carnival_id'], ['carnivals.id']),
        sa.ForeignKeyConstraint(['club_id'], ['clubs.id']),
        sa.ForeignKeyConstraint(['approved_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('number_of_teams >= 1', name='ck_registration_teams_positive'),
        sa.CheckConstraint('payment_amount >= 0', name='ck_registration_payment_non_negative')
    )
    op.create_index(
        'uq_registration_active_carnival_club',
        'attendance_registrations',
        ['carnival_id', 'club_id'],
        unique=True,
        postgresql_where=sa.text('is_active'),
    )
    op.create_index('ix_registrations_carnival_status', 'attendance_registrations', ['carnival_id', 'approval_status'])
    op.create_index('ix_registrations_club', 'attendance_registrations', ['club_id'])

    op.create_table(
        'attendance_player_assignments',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('registration_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('club_player_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('attendance_status', attendance_status_enum, nullable=False, server_default='confirmed'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('added_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['registration_id'], ['attendance_registrations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['club_player_id'], ['club_players.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('registration_id', 'club_player_id', name='uq_assignment_registration_player')
    )
    op.create_index('ix_assignments_registration', 'attendance_player_assignments', ['registration_id'])


def downgrade() -> None:
    # Drop tables in reverse order (respecting foreign keys)
    op.drop_table('attendance_player_assignments')
    op.drop_table('attendance_registrations')
    op.drop_table('carnivals')
    op.drop_table('club_players')
    op.drop_table('users')
    op.drop_table('clubs')

    # Drop enums
    op.execute("DROP TYPE IF EXISTS attendancestatus")
    op.execute("DROP TYPE IF EXISTS approvalstatus")
    op.execute("DROP TYPE IF EXISTS userrole")
