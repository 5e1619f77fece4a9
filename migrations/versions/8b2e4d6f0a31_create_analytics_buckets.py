"""create analytics buckets

Revision ID: 8b2e4d6f0a31
Revises: 3f1c9a7d2b10
Create Date: 2026-10-18 09:47:03.551920

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8b2e4d6f0a31'
down_revision: Union[str, Sequence[str], None] = '3f1c9a7d2b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # 1. analytics_buckets - one row per (period, bucket_start, bucket_end)
    op.create_table(
        'analytics_buckets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('period', sa.String(length=16), nullable=False),
        sa.Column('bucket_start', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('bucket_end', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('total_sales', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('total_expenses', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('net_profit', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('transaction_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_updated', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('period', 'bucket_start', 'bucket_end', name='uq_analytics_bucket_key')
    )
    op.create_index('ix_analytics_buckets_period_start', 'analytics_buckets', ['period', 'bucket_start'])

    # 2. analytics_bucket_entries - items_sold / payment_totals / expense_categories keys
    op.create_table(
        'analytics_bucket_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bucket_id', sa.Integer(), nullable=False),
        sa.Column('map_name', sa.String(length=32), nullable=False),
        sa.Column('entry_key', sa.String(length=255), nullable=False),
        sa.Column('value', sa.BigInteger(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['bucket_id'], ['analytics_buckets.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('bucket_id', 'map_name', 'entry_key', name='uq_analytics_bucket_entry')
    )
    op.create_index('ix_analytics_bucket_entries_bucket_id', 'analytics_bucket_entries', ['bucket_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_analytics_bucket_entries_bucket_id', table_name='analytics_bucket_entries')
    op.drop_table('analytics_bucket_entries')
    op.drop_index('ix_analytics_buckets_period_start', table_name='analytics_buckets')
    op.drop_table('analytics_buckets')
