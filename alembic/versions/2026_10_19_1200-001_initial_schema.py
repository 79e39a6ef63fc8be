"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 12:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create showtimes table
    op.create_table(
        'showtimes',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('showtime_id', sa.String(length=255), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('cinema_name', sa.String(length=200), nullable=False),
        sa.Column('movie_title', sa.String(length=500), nullable=False),
        sa.Column('attributes', ARRAY(sa.String(length=100)), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=False, server_default=''),
        sa.Column('booking_link', sa.String(length=1000), nullable=False),
        sa.Column('showtime_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'start_time', 'cinema_name', 'movie_title', 'attributes', 'city',
            name='uq_showtimes_logical_key',
        ),
        sa.UniqueConstraint('showtime_id', name='uq_showtimes_showtime_id'),
        sa.CheckConstraint('showtime_count >= 1', name='ck_showtimes_count_positive'),
    )
    op.create_index(op.f('ix_showtimes_start_time'), 'showtimes', ['start_time'], unique=False)

    # Create showtime_summaries table
    op.create_table(
        'showtime_summaries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('representative_id', sa.Integer(), nullable=False),
        sa.Column('showtime_count', sa.Integer(), nullable=False),
        sa.Column('key_digest', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['representative_id'], ['showtimes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('representative_id', name='uq_showtime_summaries_representative_id'),
    )


def downgrade() -> None:
    op.drop_table('showtime_summaries')
    op.drop_index(op.f('ix_showtimes_start_time'), table_name='showtimes')
    op.drop_table('showtimes')
