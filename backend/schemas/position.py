"""Pydantic schemas for closed lots, open positions and recompute results."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class ClosedLotResponse(BaseModel):
    """Schema for ClosedLot API response."""

    id: str
    wallet_id: str
    token_id: str
    buy_trade_id: str | None = None
    sell_trade_id: str
    sequence_number: int
    cycle_number: int

    size: Decimal
    entry_price: Decimal
    exit_price: Decimal
    cost_basis: Decimal
    proceeds: Decimal
    realized_pnl: Decimal
    realized_pnl_percent: Decimal
    realized_pnl_usd: Decimal | None = None

    entry_time: datetime
    exit_time: datetime
    hold_time_minutes: int | None = None
    entry_hour_of_day: int | None = None
    entry_day_of_week: int | None = None
    exit_hour_of_day: int | None = None
    exit_day_of_week: int | None = None

    entry_market_cap: Decimal | None = None
    exit_market_cap: Decimal | None = None
    entry_liquidity: Decimal | None = None
    exit_liquidity: Decimal | None = None
    entry_volume_24h: Decimal | None = None
    exit_volume_24h: Decimal | None = None
    token_age_at_entry_minutes: int | None = None

    exit_reason: str | None = None
    max_profit_percent: Decimal | None = None
    max_drawdown_percent: Decimal | None = None
    time_to_max_profit_minutes: int | None = None

    dca_entry_count: int | None = None
    dca_time_span_minutes: int | None = None

    reentry_time_minutes: int | None = None
    reentry_price_change_percent: Decimal | None = None
    previous_cycle_pnl: Decimal | None = None

    is_pre_history: bool
    cost_known: bool

    model_config = ConfigDict(from_attributes=True)


class OpenPositionResponse(BaseModel):
    """Schema for OpenPosition API response."""

    id: str
    wallet_id: str
    token_id: str
    remaining_quantity: Decimal
    average_cost: Decimal
    total_cost: Decimal
    opened_at: datetime
    last_trade_at: datetime | None = None
    buy_count: int
    sell_count: int

    model_config = ConfigDict(from_attributes=True)


class TradeDiagnosticResponse(BaseModel):
    """A trade skipped during matching."""

    trade_id: str
    token_id: str | None = None
    reason: str


class TokenErrorResponse(BaseModel):
    """A token whose recompute failed."""

    token_id: str
    error: str


class RecomputeResponse(BaseModel):
    """Summary of a recompute run."""

    wallet_id: str
    token_id: str | None = None
    closed_lot_count: int
    open_position_count: int
    diagnostics: list[TradeDiagnosticResponse]
    token_errors: list[TokenErrorResponse]
    error_count: int
