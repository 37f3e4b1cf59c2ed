"""Swap records table.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'swap_records',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('network', sa.String(10), nullable=False),
        sa.Column('from_asset', sa.String(20), nullable=False),
        sa.Column('to_asset', sa.String(20), nullable=False),
        sa.Column('from_amount', sa.String(80), nullable=False),
        sa.Column('to_amount', sa.String(80), nullable=False),
        sa.Column('fee', sa.String(40), nullable=True),
        sa.Column('from_account_id', sa.String(100), nullable=True),
        sa.Column('to_account_id', sa.String(100), nullable=True),
        sa.Column('status', sa.String(40), nullable=False),
        sa.Column('bitcoin_tx_hash', sa.String(100), nullable=True),
        sa.Column('approve_tx_hash', sa.String(100), nullable=True),
        sa.Column('burn_tx_hash', sa.String(100), nullable=True),
        sa.Column('number_of_bitcoin_confirmations', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('status_changed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_swap_records_status', 'swap_records', ['status'])
    op.create_index('ix_swap_records_bitcoin_tx_hash', 'swap_records', ['bitcoin_tx_hash'])


def downgrade() -> None:
    op.drop_index('ix_swap_records_bitcoin_tx_hash', table_name='swap_records')
    op.drop_index('ix_swap_records_status', table_name='swap_records')
    op.drop_table('swap_records')
