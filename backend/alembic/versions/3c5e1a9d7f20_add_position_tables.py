"""add wallet, token, trade and position tables

Revision ID: 3c5e1a9d7f20
Revises:
Create Date: 2026-10-18 10:12:41.518203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c5e1a9d7f20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('wallets',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('address', sa.String(), nullable=False),
    sa.Column('label', sa.String(), nullable=True),
    sa.Column('tracking_start', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('address')
    )
    op.create_table('tokens',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('mint_address', sa.String(), nullable=False),
    sa.Column('symbol', sa.String(), nullable=True),
    sa.Column('name', sa.String(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('mint_address')
    )
    op.create_table('trades',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('wallet_id', sa.String(length=36), nullable=False),
    sa.Column('token_id', sa.String(length=36), nullable=False),
    sa.Column('side', sa.String(), nullable=False),
    sa.Column('quantity', sa.Numeric(precision=38, scale=12), nullable=False),
    sa.Column('unit_cost', sa.Numeric(precision=38, scale=12), nullable=False),
    sa.Column('base_price_usd', sa.Numeric(precision=38, scale=12), nullable=True),
    sa.Column('timestamp', sa.DateTime(), nullable=False),
    sa.Column('sequence_hint', sa.Integer(), nullable=False),
    sa.Column('signature', sa.String(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint("side IN ('buy', 'sell', 'add', 'remove', 'void')", name='ck_trade_side_valid'),
    sa.ForeignKeyConstraint(['token_id'], ['tokens.id'], ),
    sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('wallet_id', 'signature', name='uix_trade_wallet_signature')
    )
    op.create_index(op.f('ix_trades_wallet_id'), 'trades', ['wallet_id'], unique=False)
    op.create_index(op.f('ix_trades_token_id'), 'trades', ['token_id'], unique=False)
    op.create_index('ix_trades_wallet_token_timestamp', 'trades', ['wallet_id', 'token_id', 'timestamp'], unique=False)

    op.create_table('closed_lots',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('wallet_id', sa.String(length=36), nullable=False),
    sa.Column('token_id', sa.String(length=36), nullable=False),
    sa.Column('buy_trade_id', sa.String(length=36), nullable=True),
    sa.Column('sell_trade_id', sa.String(length=36), nullable=False),
    sa.Column('sequence_number', sa.Integer(), nullable=False),
    sa.Column('cycle_number', sa.Integer(), nullable=False),
    sa.Column('size', sa.Numeric(precision=38, scale=12), nullable=False),
    sa.Column('entry_price', sa.Numeric(precision=38, scale=12), nullable=False),
    sa.Column('exit_price', sa.Numeric(precision=38, scale=12), nullable=False),
    sa.Column('cost_basis', sa.Numeric(precision=38, scale=12), nullable=False),
    sa.Column('proceeds', sa.Numeric(precision=38, scale=12), nullable=False),
    sa.Column('realized_pnl', sa.Numeric(precision=38, scale=12), nullable=False),
    sa.Column('realized_pnl_percent', sa.Numeric(precision=38, scale=6), nullable=False),
    sa.Column('realized_pnl_usd', sa.Numeric(precision=38, scale=6), nullable=True),
    sa.Column('entry_time', sa.DateTime(), nullable=False),
    sa.Column('exit_time', sa.DateTime(), nullable=False),
    sa.Column('hold_time_minutes', sa.Integer(), nullable=True),
    sa.Column('entry_hour_of_day', sa.Integer(), nullable=True),
    sa.Column('entry_day_of_week', sa.Integer(), nullable=True),
    sa.Column('exit_hour_of_day', sa.Integer(), nullable=True),
    sa.Column('exit_day_of_week', sa.Integer(), nullable=True),
    sa.Column('entry_market_cap', sa.Numeric(precision=38, scale=6), nullable=True),
    sa.Column('exit_market_cap', sa.Numeric(precision=38, scale=6), nullable=True),
    sa.Column('entry_liquidity', sa.Numeric(precision=38, scale=6), nullable=True),
    sa.Column('exit_liquidity', sa.Numeric(precision=38, scale=6), nullable=True),
    sa.Column('entry_volume_24h', sa.Numeric(precision=38, scale=6), nullable=True),
    sa.Column('exit_volume_24h', sa.Numeric(precision=38, scale=6), nullable=True),
    sa.Column('token_age_at_entry_minutes', sa.Integer(), nullable=True),
    sa.Column('exit_reason', sa.String(), nullable=True),
    sa.Column('max_profit_percent', sa.Numeric(precision=38, scale=6), nullable=True),
    sa.Column('max_drawdown_percent', sa.Numeric(precision=38, scale=6), nullable=True),
    sa.Column('time_to_max_profit_minutes', sa.Integer(), nullable=True),
    sa.Column('dca_entry_count', sa.Integer(), nullable=True),
    sa.Column('dca_time_span_minutes', sa.Integer(), nullable=True),
    sa.Column('reentry_time_minutes', sa.Integer(), nullable=True),
    sa.Column('reentry_price_change_percent', sa.Numeric(precision=38, scale=6), nullable=True),
    sa.Column('previous_cycle_pnl', sa.Numeric(precision=38, scale=12), nullable=True),
    sa.Column('is_pre_history', sa.Boolean(), nullable=False),
    sa.Column('cost_known', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint('size > 0', name='ck_closed_lot_size_positive'),
    sa.CheckConstraint("exit_reason IS NULL OR exit_reason IN ('take_profit', 'stop_loss', 'manual', 'unknown')", name='ck_closed_lot_exit_reason_valid'),
    sa.ForeignKeyConstraint(['buy_trade_id'], ['trades.id'], ),
    sa.ForeignKeyConstraint(['sell_trade_id'], ['trades.id'], ),
    sa.ForeignKeyConstraint(['token_id'], ['tokens.id'], ),
    sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('wallet_id', 'token_id', 'sequence_number', name='uix_closed_lot_scope_sequence')
    )
    op.create_index(op.f('ix_closed_lots_wallet_id'), 'closed_lots', ['wallet_id'], unique=False)
    op.create_index(op.f('ix_closed_lots_token_id'), 'closed_lots', ['token_id'], unique=False)
    op.create_index(op.f('ix_closed_lots_buy_trade_id'), 'closed_lots', ['buy_trade_id'], unique=False)
    op.create_index(op.f('ix_closed_lots_sell_trade_id'), 'closed_lots', ['sell_trade_id'], unique=False)
    op.create_index(op.f('ix_closed_lots_exit_time'), 'closed_lots', ['exit_time'], unique=False)
    op.create_index(op.f('ix_closed_lots_is_pre_history'), 'closed_lots', ['is_pre_history'], unique=False)
    op.create_index(op.f('ix_closed_lots_cost_known'), 'closed_lots', ['cost_known'], unique=False)
    op.create_index('ix_closed_lots_wallet_token', 'closed_lots', ['wallet_id', 'token_id'], unique=False)

    op.create_table('open_positions',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('wallet_id', sa.String(length=36), nullable=False),
    sa.Column('token_id', sa.String(length=36), nullable=False),
    sa.Column('remaining_quantity', sa.Numeric(precision=38, scale=12), nullable=False),
    sa.Column('average_cost', sa.Numeric(precision=38, scale=12), nullable=False),
    sa.Column('total_cost', sa.Numeric(precision=38, scale=12), nullable=False),
    sa.Column('opened_at', sa.DateTime(), nullable=False),
    sa.Column('last_trade_at', sa.DateTime(), nullable=True),
    sa.Column('buy_count', sa.Integer(), nullable=False),
    sa.Column('sell_count', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint('remaining_quantity > 0', name='ck_open_position_quantity_positive'),
    sa.ForeignKeyConstraint(['token_id'], ['tokens.id'], ),
    sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('wallet_id', 'token_id', name='uix_open_position_wallet_token')
    )
    op.create_index(op.f('ix_open_positions_wallet_id'), 'open_positions', ['wallet_id'], unique=False)
    op.create_index(op.f('ix_open_positions_token_id'), 'open_positions', ['token_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_open_positions_token_id'), table_name='open_positions')
    op.drop_index(op.f('ix_open_positions_wallet_id'), table_name='open_positions')
    op.drop_table('open_positions')
    op.drop_index('ix_closed_lots_wallet_token', table_name='closed_lots')
    op.drop_index(op.f('ix_closed_lots_cost_known'), table_name='closed_lots')
    op.drop_index(op.f('ix_closed_lots_is_pre_history'), table_name='closed_lots')
    op.drop_index(op.f('ix_closed_lots_exit_time'), table_name='closed_lots')
    op.drop_index(op.f('ix_closed_lots_sell_trade_id'), table_name='closed_lots')
    op.drop_index(op.f('ix_closed_lots_buy_trade_id'), table_name='closed_lots')
    op.drop_index(op.f('ix_closed_lots_token_id'), table_name='closed_lots')
    op.drop_index(op.f('ix_closed_lots_wallet_id'), table_name='closed_lots')
    op.drop_table('closed_lots')
    op.drop_index('ix_trades_wallet_token_timestamp', table_name='trades')
    op.drop_index(op.f('ix_trades_token_id'), table_name='trades')
    op.drop_index(op.f('ix_trades_wallet_id'), table_name='trades')
    op.drop_table('trades')
    op.drop_table('tokens')
    op.drop_table('wallets')
