"""ClosedLot model - one FIFO match between a buy fragment and a sell fragment."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class ClosedLot(Base):
    """A realized lot produced by the lot matcher.

    Rows are owned by the recompute run for their (wallet, token) scope:
    each run deletes the scope and inserts fresh rows, so a lot is never
    updated after creation. Analytics columns are nullable and stay null
    when the data behind them was unavailable.
    """

    __tablename__ = "closed_lots"
    __table_args__ = (
        UniqueConstraint(
            "wallet_id", "token_id", "sequence_number", name="uix_closed_lot_scope_sequence"
        ),
        CheckConstraint("size > 0", name="ck_closed_lot_size_positive"),
        CheckConstraint(
            "exit_reason IS NULL OR exit_reason IN ('take_profit', 'stop_loss', 'manual', 'unknown')",
            name="ck_closed_lot_exit_reason_valid",
        ),
        Index("ix_closed_lots_wallet_token", "wallet_id", "token_id"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    wallet_id = Column(String(36), ForeignKey("wallets.id"), nullable=False, index=True)
    token_id = Column(String(36), ForeignKey("tokens.id"), nullable=False, index=True)
    buy_trade_id = Column(String(36), ForeignKey("trades.id"), nullable=True, index=True)  # NULL for pre-history
    sell_trade_id = Column(String(36), ForeignKey("trades.id"), nullable=False, index=True)
    sequence_number = Column(Integer, nullable=False)
    cycle_number = Column(Integer, nullable=False, default=1)

    # Quantities / cost (base currency)
    size = Column(Numeric(38, 12), nullable=False)
    entry_price = Column(Numeric(38, 12), nullable=False)
    exit_price = Column(Numeric(38, 12), nullable=False)
    cost_basis = Column(Numeric(38, 12), nullable=False)
    proceeds = Column(Numeric(38, 12), nullable=False)
    realized_pnl = Column(Numeric(38, 12), nullable=False)
    realized_pnl_percent = Column(Numeric(38, 6), nullable=False)
    realized_pnl_usd = Column(Numeric(38, 6), nullable=True)

    # Timing
    entry_time = Column(DateTime, nullable=False)
    exit_time = Column(DateTime, nullable=False, index=True)
    hold_time_minutes = Column(Integer, nullable=True)
    entry_hour_of_day = Column(Integer, nullable=True)
    entry_day_of_week = Column(Integer, nullable=True)  # 0 = Sunday
    exit_hour_of_day = Column(Integer, nullable=True)
    exit_day_of_week = Column(Integer, nullable=True)

    # Market context
    entry_market_cap = Column(Numeric(38, 6), nullable=True)
    exit_market_cap = Column(Numeric(38, 6), nullable=True)
    entry_liquidity = Column(Numeric(38, 6), nullable=True)
    exit_liquidity = Column(Numeric(38, 6), nullable=True)
    entry_volume_24h = Column(Numeric(38, 6), nullable=True)
    exit_volume_24h = Column(Numeric(38, 6), nullable=True)
    token_age_at_entry_minutes = Column(Integer, nullable=True)

    # Exit classification
    exit_reason = Column(String, nullable=True)
    max_profit_percent = Column(Numeric(38, 6), nullable=True)
    max_drawdown_percent = Column(Numeric(38, 6), nullable=True)
    time_to_max_profit_minutes = Column(Integer, nullable=True)

    # Accumulation pattern
    dca_entry_count = Column(Integer, nullable=True)
    dca_time_span_minutes = Column(Integer, nullable=True)

    # Re-entry pattern
    reentry_time_minutes = Column(Integer, nullable=True)
    reentry_price_change_percent = Column(Numeric(38, 6), nullable=True)
    previous_cycle_pnl = Column(Numeric(38, 12), nullable=True)

    # Flags
    is_pre_history = Column(Boolean, nullable=False, default=False, index=True)
    cost_known = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    wallet = relationship("Wallet", back_populates="closed_lots")
    token = relationship("Token")
    buy_trade = relationship("Trade", foreign_keys=[buy_trade_id])
    sell_trade = relationship("Trade", foreign_keys=[sell_trade_id])
