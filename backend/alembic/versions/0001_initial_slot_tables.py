"""initial slot tables

Revision ID: 0001
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('availability_rules',
        sa.Column('provider_id', sa.Integer(), nullable=False),
        sa.Column('days_of_week', sa.Text(), server_default=sa.text("'[]'"), nullable=False),
        sa.Column('start_time', sa.Text(), nullable=False),
        sa.Column('end_time', sa.Text(), nullable=False),
        sa.Column('slot_duration', sa.Integer(), nullable=False),
        sa.Column('breaks', sa.Text(), server_default=sa.text("'[]'"), nullable=False),
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('effective_from', sa.Text(), nullable=True),
        sa.Column('effective_to', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.Text(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('provider_id')
    )
    op.create_table('custom_days',
        sa.Column('provider_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Text(), nullable=False),
        sa.Column('leave_type', sa.Text(), nullable=False),
        sa.Column('breaks', sa.Text(), server_default=sa.text("'[]'"), nullable=False),
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['provider_id'], ['availability_rules.provider_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('provider_id', 'date')
    )
    op.create_table('slot_days',
        sa.Column('provider_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Text(), nullable=False),
        sa.Column('created_at', sa.Text(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('provider_id', 'date')
    )
    op.create_table('slots',
        sa.Column('provider_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Text(), nullable=False),
        sa.Column('start', sa.Text(), nullable=False),
        sa.Column('end', sa.Text(), nullable=False),
        sa.Column('status', sa.Text(), server_default=sa.text("'available'"), nullable=False),
        sa.Column('ever_booked', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('custom_duration', sa.Integer(), nullable=True),
        sa.Column('appointment_id', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.Text(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('provider_id', 'date', 'start')
    )
    op.create_index(op.f('ix_slots_provider_id'), 'slots', ['provider_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_slots_provider_id'), table_name='slots')
    op.drop_table('slots')
    op.drop_table('slot_days')
    op.drop_table('custom_days')
    op.drop_table('availability_rules')
