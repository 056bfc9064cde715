"""FIFO lot matching engine.

Replays a wallet's valued trades per token and pairs each sell with the
oldest open buy inventory. Every (buy fragment, sell fragment) pair becomes
one closed lot; residual buy inventory becomes an open position. Sells that
exceed known inventory are closed against an estimated cost and flagged
``cost_known=False``.

The matcher performs no I/O and keeps no state between calls, so the same
input always yields the same lots and sequence numbers.
"""

import logging
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from itertools import groupby
from typing import Iterable

from config import settings
from services.exceptions import TradeInputError
from services.trade_service import ValuedTrade

logger = logging.getLogger(__name__)

BUY_SIDES = frozenset({"buy", "add"})
SELL_SIDES = frozenset({"sell", "remove"})
VOID_SIDE = "void"

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


@dataclass
class OpenLot:
    """Unconsumed buy inventory waiting in a token's FIFO queue."""

    remaining_quantity: Decimal
    unit_cost: Decimal
    origin_trade_id: str
    origin_timestamp: datetime
    is_pre_history: bool = False  # bought before the wallet's tracking start


@dataclass
class ClosedLotRecord:
    """One FIFO match between a buy fragment and a sell fragment.

    Field names mirror the ``closed_lots`` columns. The analytics fields
    default to None and are filled by the lot enricher.
    """

    wallet_id: str
    token_id: str
    buy_trade_id: str | None  # None when the buy side predates known history
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
    entry_time: datetime
    exit_time: datetime
    is_pre_history: bool = False
    cost_known: bool = True
    realized_pnl_usd: Decimal | None = None

    # Timing
    hold_time_minutes: int | None = None
    entry_hour_of_day: int | None = None
    entry_day_of_week: int | None = None
    exit_hour_of_day: int | None = None
    exit_day_of_week: int | None = None

    # Market context
    entry_market_cap: Decimal | None = None
    exit_market_cap: Decimal | None = None
    entry_liquidity: Decimal | None = None
    exit_liquidity: Decimal | None = None
    entry_volume_24h: Decimal | None = None
    exit_volume_24h: Decimal | None = None
    token_age_at_entry_minutes: int | None = None

    # Exit classification
    exit_reason: str | None = None
    max_profit_percent: Decimal | None = None
    max_drawdown_percent: Decimal | None = None
    time_to_max_profit_minutes: int | None = None

    # Accumulation pattern
    dca_entry_count: int | None = None
    dca_time_span_minutes: int | None = None

    # Re-entry pattern
    reentry_time_minutes: int | None = None
    reentry_price_change_percent: Decimal | None = None
    previous_cycle_pnl: Decimal | None = None


@dataclass
class OpenPositionRecord:
    """Residual buy inventory for one token after matching."""

    wallet_id: str
    token_id: str
    remaining_quantity: Decimal
    average_cost: Decimal
    total_cost: Decimal
    opened_at: datetime
    last_trade_at: datetime | None = None
    buy_count: int = 0
    sell_count: int = 0


@dataclass
class TradeDiagnostic:
    """A trade the matcher skipped, and why."""

    trade_id: str
    token_id: str | None
    reason: str


@dataclass
class MatchResult:
    """Output of one matching run."""

    closed_lots: list[ClosedLotRecord] = field(default_factory=list)
    open_positions: list[OpenPositionRecord] = field(default_factory=list)
    diagnostics: list[TradeDiagnostic] = field(default_factory=list)


def to_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are assumed to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _as_decimal(value, name: str, trade_id: str) -> Decimal:
    if value is None or isinstance(value, bool):
        raise TradeInputError(trade_id, f"{name} is missing")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise TradeInputError(trade_id, f"{name} is not a number: {value!r}") from exc
    if not result.is_finite():
        raise TradeInputError(trade_id, f"{name} is not finite: {value!r}")
    if result < 0:
        raise TradeInputError(trade_id, f"{name} is negative: {value}")
    return result


def validate_trade(trade: ValuedTrade, dust_epsilon: Decimal) -> ValuedTrade:
    """Check a non-void trade and return a normalized copy.

    Normalizes side to lowercase, numbers to Decimal and timestamps to
    aware UTC. An unusable ``base_price_usd`` is dropped rather than
    rejecting the trade, since it only feeds the USD PnL column.

    Raises:
        TradeInputError: The trade cannot take part in matching.
    """
    side = trade.side.lower().strip() if isinstance(trade.side, str) else None
    if side not in BUY_SIDES and side not in SELL_SIDES:
        raise TradeInputError(trade.id, f"unknown side: {trade.side!r}")

    quantity = _as_decimal(trade.quantity, "quantity", trade.id)
    if quantity <= dust_epsilon:
        raise TradeInputError(trade.id, f"quantity is zero or dust: {quantity}")
    unit_cost = _as_decimal(trade.unit_cost, "unit_cost", trade.id)

    if not isinstance(trade.timestamp, datetime):
        raise TradeInputError(trade.id, "timestamp is missing")

    base_price_usd = trade.base_price_usd
    if base_price_usd is not None:
        try:
            base_price_usd = _as_decimal(base_price_usd, "base_price_usd", trade.id)
        except TradeInputError as exc:
            logger.debug("Ignoring base_price_usd: %s", exc)
            base_price_usd = None

    return replace(
        trade,
        side=side,
        quantity=quantity,
        unit_cost=unit_cost,
        timestamp=to_utc(trade.timestamp),
        sequence_hint=trade.sequence_hint or 0,
        base_price_usd=base_price_usd,
    )


def trade_sort_key(trade: ValuedTrade):
    """Chronological order; ties broken by sequence hint, then trade id."""
    return (trade.timestamp, trade.sequence_hint, trade.id)


class LotMatcher:
    """FIFO matcher over one wallet's trades."""

    def __init__(self, dust_epsilon: Decimal | None = None):
        self.dust_epsilon = settings.DUST_EPSILON if dust_epsilon is None else dust_epsilon

    def match(
        self,
        trades: Iterable[ValuedTrade],
        tracking_start: datetime | None = None,
        token_id: str | None = None,
    ) -> MatchResult:
        """Match a wallet's trades into closed lots and open positions.

        Args:
            trades: Valued trades of one wallet, in any order.
            tracking_start: When the wallet's known history begins. Buys
                before it produce pre-history lots.
            token_id: Restrict matching to one token.

        Returns:
            MatchResult with lots ordered by token, then sequence number.
        """
        if tracking_start is not None:
            tracking_start = to_utc(tracking_start)

        result = MatchResult()
        valid: list[ValuedTrade] = []

        for trade in trades:
            if token_id is not None and trade.token_id != token_id:
                continue
            if isinstance(trade.side, str) and trade.side.lower().strip() == VOID_SIDE:
                continue
            try:
                valid.append(validate_trade(trade, self.dust_epsilon))
            except TradeInputError as exc:
                logger.warning("Skipping trade %s: %s", exc.trade_id, exc.reason)
                result.diagnostics.append(
                    TradeDiagnostic(trade_id=trade.id, token_id=trade.token_id, reason=exc.reason)
                )

        valid.sort(key=lambda t: (t.wallet_id, t.token_id) + trade_sort_key(t))
        for _, group in groupby(valid, key=lambda t: (t.wallet_id, t.token_id)):
            closed, open_position = self._match_token(list(group), tracking_start)
            result.closed_lots.extend(closed)
            if open_position is not None:
                result.open_positions.append(open_position)

        logger.info(
            "Matched %d trades: %d closed lots, %d open positions, %d skipped",
            len(valid),
            len(result.closed_lots),
            len(result.open_positions),
            len(result.diagnostics),
        )
        return result

    def _match_token(
        self, trades: list[ValuedTrade], tracking_start: datetime | None
    ) -> tuple[list[ClosedLotRecord], OpenPositionRecord | None]:
        """Run the FIFO queue over one token's ordered trades."""
        queue: deque[OpenLot] = deque()
        closed: list[ClosedLotRecord] = []
        sequence = 0
        cycle = 1
        went_flat = False
        buy_count = sell_count = 0

        # Estimated entry for sells beyond known inventory
        fallback_price = next(
            (t.unit_cost for t in trades if t.side in BUY_SIDES), _ZERO
        )

        for trade in trades:
            if trade.side in BUY_SIDES:
                buy_count += 1
                if went_flat:
                    cycle += 1
                    went_flat = False
                queue.append(
                    OpenLot(
                        remaining_quantity=trade.quantity,
                        unit_cost=trade.unit_cost,
                        origin_trade_id=trade.id,
                        origin_timestamp=trade.timestamp,
                        is_pre_history=(
                            tracking_start is not None and trade.timestamp < tracking_start
                        ),
                    )
                )
                continue

            sell_count += 1
            had_inventory = bool(queue)
            remaining = trade.quantity
            while remaining > self.dust_epsilon and queue:
                lot = queue[0]
                size = min(lot.remaining_quantity, remaining)
                sequence += 1
                closed.append(
                    self._close(
                        trade,
                        size=size,
                        sequence=sequence,
                        cycle=cycle,
                        buy_trade_id=lot.origin_trade_id,
                        entry_price=lot.unit_cost,
                        entry_time=lot.origin_timestamp,
                        is_pre_history=lot.is_pre_history,
                        cost_known=True,
                    )
                )
                lot.remaining_quantity -= size
                remaining -= size
                if lot.remaining_quantity <= self.dust_epsilon:
                    queue.popleft()

            if remaining > self.dust_epsilon:
                sequence += 1
                entry_time = trade.timestamp
                if tracking_start is not None and tracking_start < trade.timestamp:
                    entry_time = tracking_start
                logger.info(
                    "Sell %s exceeds known inventory by %s; closing against estimated cost %s",
                    trade.id,
                    remaining,
                    fallback_price,
                )
                closed.append(
                    self._close(
                        trade,
                        size=remaining,
                        sequence=sequence,
                        cycle=cycle,
                        buy_trade_id=None,
                        entry_price=fallback_price,
                        entry_time=entry_time,
                        is_pre_history=True,
                        cost_known=False,
                    )
                )

            if had_inventory and not queue:
                went_flat = True

        open_position = None
        remaining_quantity = sum((lot.remaining_quantity for lot in queue), _ZERO)
        if remaining_quantity > self.dust_epsilon:
            total_cost = sum((lot.remaining_quantity * lot.unit_cost for lot in queue), _ZERO)
            open_position = OpenPositionRecord(
                wallet_id=trades[0].wallet_id,
                token_id=trades[0].token_id,
                remaining_quantity=remaining_quantity,
                average_cost=total_cost / remaining_quantity,
                total_cost=total_cost,
                opened_at=queue[0].origin_timestamp,
                last_trade_at=trades[-1].timestamp,
                buy_count=buy_count,
                sell_count=sell_count,
            )

        return closed, open_position

    @staticmethod
    def _close(
        sell: ValuedTrade,
        *,
        size: Decimal,
        sequence: int,
        cycle: int,
        buy_trade_id: str | None,
        entry_price: Decimal,
        entry_time: datetime,
        is_pre_history: bool,
        cost_known: bool,
    ) -> ClosedLotRecord:
        cost_basis = size * entry_price
        proceeds = size * sell.unit_cost
        realized_pnl = proceeds - cost_basis
        if cost_basis != 0:
            realized_pnl_percent = realized_pnl / cost_basis * _HUNDRED
        else:
            realized_pnl_percent = _ZERO
        realized_pnl_usd = None
        if sell.base_price_usd is not None:
            realized_pnl_usd = realized_pnl * sell.base_price_usd

        return ClosedLotRecord(
            wallet_id=sell.wallet_id,
            token_id=sell.token_id,
            buy_trade_id=buy_trade_id,
            sell_trade_id=sell.id,
            sequence_number=sequence,
            cycle_number=cycle,
            size=size,
            entry_price=entry_price,
            exit_price=sell.unit_cost,
            cost_basis=cost_basis,
            proceeds=proceeds,
            realized_pnl=realized_pnl,
            realized_pnl_percent=realized_pnl_percent,
            realized_pnl_usd=realized_pnl_usd,
            entry_time=entry_time,
            exit_time=sell.timestamp,
            is_pre_history=is_pre_history,
            cost_known=cost_known,
        )
