"""Create organizers, availability, meeting types and meetings tables

Revision ID: 1c4e7a9d2b60
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '1c4e7a9d2b60'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'organizers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('timezone', sa.String(), nullable=False, server_default='UTC'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('buffer_minutes', sa.Integer(), nullable=False, server_default='15'),
        sa.Column('advance_booking_days', sa.Integer(), nullable=False, server_default='90'),
        sa.Column('min_advance_hours', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('requires_calendar', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('calendar_provider', sa.String(), nullable=False, server_default='native'),
        sa.Column('google_calendar_id', sa.String(), nullable=True),
        sa.Column('google_refresh_token', sa.String(), nullable=True),
        sa.Column('sms_number', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'availability_windows',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organizer_id', sa.Uuid(), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['organizer_id'], ['organizers.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_availability_windows_organizer_day', 'availability_windows', ['organizer_id', 'day_of_week'])

    op.create_table(
        'availability_overrides',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organizer_id', sa.Uuid(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=True),
        sa.Column('end_time', sa.Time(), nullable=True),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('reason', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['organizer_id'], ['organizers.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_availability_overrides_organizer_date', 'availability_overrides', ['organizer_id', 'date'])

    op.create_table(
        'meeting_types',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organizer_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('requires_calendar', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('video_provider', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['organizer_id'], ['organizers.id'], ),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'meetings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('uid', sa.String(), nullable=False),
        sa.Column('organizer_id', sa.Uuid(), nullable=False),
        sa.Column('meeting_type_id', sa.Uuid(), nullable=True),
        sa.Column('attendee_name', sa.String(), nullable=False),
        sa.Column('attendee_email', sa.String(), nullable=False),
        sa.Column('attendee_phone', sa.String(), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('attendee_timezone', sa.String(), nullable=True),
        sa.Column('organizer_timezone', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('rescheduled_from_uid', sa.String(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['organizer_id'], ['organizers.id'], ),
        sa.ForeignKeyConstraint(['meeting_type_id'], ['meeting_types.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('uid')
    )
    op.create_index('idx_meetings_organizer_status_start', 'meetings', ['organizer_id', 'status', 'start_time'])


def downgrade() -> None:
    op.drop_index('idx_meetings_organizer_status_start', table_name='meetings')
    op.drop_table('meetings')
    op.drop_table('meeting_types')
    op.drop_index('idx_availability_overrides_organizer_date', table_name='availability_overrides')
    op.drop_table('availability_overrides')
    op.drop_index('idx_availability_windows_organizer_day', table_name='availability_windows')
    op.drop_table('availability_windows')
    op.drop_table('organizers')
