"""baseline_booking_engine_schema

Revision ID: 3f1c9a7e2b40
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7e2b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Statuses that occupy a slot; keep in sync with core.constants.ACTIVE_BOOKING_STATUSES
ACTIVE_STATUS_PREDICATE = "status IN ('pending_payment', 'confirmed', 'pending_approval', 'approved')"


def upgrade() -> None:
    op.create_table(
        'doctors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=False),
        sa.Column('slot_duration_minutes', sa.Integer(), nullable=False),
        sa.Column('buffer_minutes', sa.Integer(), nullable=False),
        sa.Column('minimum_notice_minutes', sa.Integer(), nullable=False),
        sa.Column('requires_approval', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_verified', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_doctors_id', 'doctors', ['id'], unique=False)
    op.create_index('idx_doctors_active_verified', 'doctors', ['is_active', 'is_verified'], unique=False)

    op.create_table(
        'patients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_patients_id', 'patients', ['id'], unique=False)

    op.create_table(
        'weekly_availability_rules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('doctor_id', sa.Integer(), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('consultation_type', sa.String(length=20), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('effective_from', sa.Date(), nullable=True),
        sa.Column('effective_until', sa.Date(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint('start_time < end_time', name='check_rule_time_range'),
        sa.CheckConstraint('day_of_week BETWEEN 0 AND 6', name='check_rule_day_of_week'),
        sa.CheckConstraint("consultation_type IN ('in_person', 'video')", name='check_rule_consultation_type'),
        sa.ForeignKeyConstraint(['doctor_id'], ['doctors.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_weekly_availability_rules_id', 'weekly_availability_rules', ['id'], unique=False)
    op.create_index('idx_weekly_rules_doctor_day', 'weekly_availability_rules', ['doctor_id', 'day_of_week'], unique=False)

    op.create_table(
        'availability_exceptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('doctor_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('kind', sa.String(length=20), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=True),
        sa.Column('end_time', sa.Time(), nullable=True),
        sa.Column('consultation_type', sa.String(length=20), nullable=True),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint("kind IN ('blocked', 'added')", name='check_exception_kind'),
        sa.CheckConstraint(
            "(start_time IS NULL AND end_time IS NULL) OR "
            "(start_time IS NOT NULL AND end_time IS NOT NULL AND start_time < end_time)",
            name='check_exception_time_range'
        ),
        sa.CheckConstraint(
            "kind = 'blocked' OR (start_time IS NOT NULL AND consultation_type IS NOT NULL)",
            name='check_exception_addition_fields'
        ),
        sa.ForeignKeyConstraint(['doctor_id'], ['doctors.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_availability_exceptions_id', 'availability_exceptions', ['id'], unique=False)
    op.create_index('idx_availability_exceptions_doctor_date', 'availability_exceptions', ['doctor_id', 'date'], unique=False)

    op.create_table(
        'external_calendar_connections',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('doctor_id', sa.Integer(), nullable=False),
        sa.Column('provider', sa.String(length=50), nullable=False),
        sa.Column('account_email', sa.String(length=255), nullable=True),
        sa.Column('calendar_id', sa.String(length=255), nullable=False),
        sa.Column('encrypted_credentials', sa.Text(), nullable=True),
        sa.Column('webhook_channel_id', sa.String(length=255), nullable=True),
        sa.Column('webhook_resource_id', sa.String(length=255), nullable=True),
        sa.Column('webhook_expiration', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('sync_token', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('sync_enabled', sa.Boolean(), nullable=False),
        sa.Column('last_synced_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('last_sync_error', sa.Text(), nullable=True),
        sa.Column('consecutive_failures', sa.Integer(), nullable=False),
        sa.Column('next_sync_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['doctor_id'], ['doctors.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('doctor_id', 'provider', name='uq_calendar_connection_doctor_provider'),
        sa.CheckConstraint("status IN ('active', 'expired', 'revoked')", name='check_calendar_connection_status'),
        sa.UniqueConstraint('webhook_channel_id'),
        sa.UniqueConstraint('webhook_resource_id'),
    )
    op.create_index('ix_external_calendar_connections_id', 'external_calendar_connections', ['id'], unique=False)
    op.create_index(
        'idx_calendar_connections_status', 'external_calendar_connections', ['status', 'sync_enabled'], unique=False
    )

    op.create_table(
        'external_busy_intervals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('connection_id', sa.Integer(), nullable=False),
        sa.Column('start_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('end_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('provider_event_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['connection_id'], ['external_calendar_connections.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_external_busy_intervals_id', 'external_busy_intervals', ['id'], unique=False)
    op.create_index(
        'idx_busy_intervals_connection_range', 'external_busy_intervals',
        ['connection_id', 'start_at', 'end_at'], unique=False
    )

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('doctor_id', sa.Integer(), nullable=False),
        sa.Column('patient_id', sa.Integer(), nullable=False),
        sa.Column('appointment_date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('consultation_type', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=30), nullable=False),
        sa.Column('patient_notes', sa.String(length=1000), nullable=True),
        sa.Column('cancellation_reason', sa.String(length=500), nullable=True),
        sa.Column('cancelled_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('confirmed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint('start_time < end_time', name='check_booking_time_range'),
        sa.CheckConstraint(
            "status IN ('pending_payment', 'confirmed', 'pending_approval', 'approved', 'rejected', "
            "'completed', 'cancelled_patient', 'cancelled_doctor', 'no_show', 'refunded')",
            name='check_booking_status'
        ),
        sa.CheckConstraint("consultation_type IN ('in_person', 'video')", name='check_booking_consultation_type'),
        sa.ForeignKeyConstraint(['doctor_id'], ['doctors.id']),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bookings_id', 'bookings', ['id'], unique=False)
    # One active booking per doctor slot
    op.create_index(
        'uq_bookings_active_slot',
        'bookings',
        ['doctor_id', 'appointment_date', 'start_time'],
        unique=True,
        postgresql_where=sa.text(ACTIVE_STATUS_PREDICATE),
        sqlite_where=sa.text(ACTIVE_STATUS_PREDICATE),
    )
    op.create_index('idx_bookings_doctor_date', 'bookings', ['doctor_id', 'appointment_date'], unique=False)
    op.create_index('idx_bookings_status_created', 'bookings', ['status', 'created_at'], unique=False)
    op.create_index('idx_bookings_patient', 'bookings', ['patient_id'], unique=False)


def downgrade() -> None:
    op.drop_table('bookings')
    op.drop_table('external_busy_intervals')
    op.drop_table('external_calendar_connections')
    op.drop_table('availability_exceptions')
    op.drop_table('weekly_availability_rules')
    op.drop_table('patients')
    op.drop_table('doctors')
