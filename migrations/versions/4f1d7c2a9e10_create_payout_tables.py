"""create shared_calendars, calendar_events and payout_migration_markers

Revision ID: 4f1d7c2a9e10
Revises:
Create Date: 2025-10-20 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4f1d7c2a9e10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'shared_calendars',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.String(length=128), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('payout_details', sa.JSON(), nullable=True),
        sa.Column('payout_records', sa.JSON(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_shared_calendars_owner_id', 'shared_calendars', ['owner_id'], unique=False)

    op.create_table(
        'calendar_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('calendar_id', sa.Integer(),
                  sa.ForeignKey('shared_calendars.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('start_at', sa.DateTime(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('service_status', sa.String(length=20), nullable=False, server_default='scheduled'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_calendar_events_calendar_id', 'calendar_events', ['calendar_id'], unique=False)
    op.create_index('ix_calendar_events_window', 'calendar_events', ['calendar_id', 'start_at'], unique=False)

    op.create_table(
        'payout_migration_markers',
        sa.Column('owner_id', sa.String(length=128), primary_key=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('succeeded', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('failed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('migrated_at', sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('payout_migration_markers')
    op.drop_index('ix_calendar_events_window', table_name='calendar_events')
    op.drop_index('ix_calendar_events_calendar_id', table_name='calendar_events')
    op.drop_table('calendar_events')
    op.drop_index('ix_shared_calendars_owner_id', table_name='shared_calendars')
    op.drop_table('shared_calendars')
