"""Per-lot analytics for matched closed lots.

Each step fills only its own fields on a copy of the lot:

- Timing: hold time and UTC hour/day buckets
- Market context: market cap, liquidity and volume at entry and exit
- Price path: best and worst excursion while the lot was held, which
  feeds the exit-reason heuristic
- Accumulation: how many buys funded the lot's sell
- Re-entry: gap and price move since the previous lot of the token

Lookups go through the MarketSnapshotProvider / PriceHistoryProvider
protocols. A failed lookup leaves its fields null and never drops the lot.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from itertools import groupby
from typing import Callable, Iterable

from integrations.exceptions import LookupTimeout, ProviderError
from integrations.market_data_protocol import (
    MarketSnapshotProvider,
    PriceHistoryProvider,
    PricePoint,
)
from services.lot_matching_service import ClosedLotRecord, to_utc

logger = logging.getLogger(__name__)

# Exit-reason heuristic. These are tuning knobs, not accounting rules: an
# exit that captured most of the run-up with a real gain reads as a take
# profit, one that realized most of the drawdown with a real loss reads as
# a stop loss, and small moves either way read as manual exits.
TAKE_PROFIT_CAPTURE_RATIO = Decimal("0.9")
STOP_LOSS_CAPTURE_RATIO = Decimal("0.9")
TAKE_PROFIT_MIN_PNL_PERCENT = Decimal("5")
STOP_LOSS_MAX_PNL_PERCENT = Decimal("-5")
MANUAL_EXIT_PNL_BAND_PERCENT = Decimal("10")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


class ExitReason(str, Enum):
    TAKE_PROFIT = "take_profit"
    STOP_LOSS = "stop_loss"
    MANUAL = "manual"
    UNKNOWN = "unknown"


@dataclass
class PricePath:
    """Excursions of the spot price between a lot's entry and exit."""

    max_profit_percent: Decimal
    max_drawdown_percent: Decimal
    time_to_max_profit_minutes: int | None


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, rounded to nearest (may be negative)."""
    seconds = (to_utc(end) - to_utc(start)).total_seconds()
    return round(seconds / 60)


def _day_of_week(value: datetime) -> int:
    """Day of week with Sunday = 0."""
    return (value.weekday() + 1) % 7


def compute_price_path(
    entry_price: Decimal,
    entry_time: datetime,
    exit_price: Decimal,
    exit_time: datetime,
    series: Iterable[PricePoint] = (),
) -> PricePath | None:
    """Compute max profit, max drawdown and time to peak for a holding window.

    The entry and exit fills are always included as samples, so an empty
    series still yields metrics. Samples outside [entry_time, exit_time]
    are ignored.

    Returns:
        PricePath, or None when entry_price is zero (percentages undefined).
    """
    if entry_price <= 0:
        return None

    entry_time = to_utc(entry_time)
    exit_time = to_utc(exit_time)

    # (timestamp, rank, price): entry sorts first and exit last on ties
    samples = [(entry_time, 0, entry_price)]
    for point in series:
        ts = to_utc(point.timestamp)
        if entry_time <= ts <= exit_time and point.price is not None:
            samples.append((ts, 1, point.price))
    samples.append((exit_time, 2, exit_price))
    samples.sort(key=lambda s: (s[0], s[1]))

    prices = [price for _, _, price in samples]
    max_price = max(prices)
    min_price = min(prices)
    peak_index = prices.index(max_price)

    time_to_max = None
    if peak_index > 0:
        time_to_max = minutes_between(entry_time, samples[peak_index][0])

    return PricePath(
        max_profit_percent=(max_price - entry_price) / entry_price * _HUNDRED,
        max_drawdown_percent=(entry_price - min_price) / entry_price * _HUNDRED,
        time_to_max_profit_minutes=time_to_max,
    )


def classify_exit(
    realized_pnl_percent: Decimal,
    entry_price: Decimal,
    exit_price: Decimal,
    max_profit_percent: Decimal | None,
    max_drawdown_percent: Decimal | None,
    cost_known: bool = True,
) -> ExitReason:
    """Classify why a lot was closed from its PnL and price path."""
    if not cost_known:
        return ExitReason.UNKNOWN

    exit_profit_percent = _ZERO
    exit_loss_percent = _ZERO
    if entry_price > 0:
        exit_profit_percent = (exit_price - entry_price) / entry_price * _HUNDRED
        exit_loss_percent = (entry_price - exit_price) / entry_price * _HUNDRED

    profit_ratio = _ZERO
    if max_profit_percent:
        profit_ratio = exit_profit_percent / max_profit_percent
    loss_ratio = _ZERO
    if max_drawdown_percent:
        loss_ratio = exit_loss_percent / max_drawdown_percent

    if profit_ratio > TAKE_PROFIT_CAPTURE_RATIO and realized_pnl_percent > TAKE_PROFIT_MIN_PNL_PERCENT:
        return ExitReason.TAKE_PROFIT
    if loss_ratio > STOP_LOSS_CAPTURE_RATIO and realized_pnl_percent < STOP_LOSS_MAX_PNL_PERCENT:
        return ExitReason.STOP_LOSS
    if abs(realized_pnl_percent) < MANUAL_EXIT_PNL_BAND_PERCENT:
        return ExitReason.MANUAL
    return ExitReason.UNKNOWN


class LotEnricher:
    """Attaches analytics to closed lots produced by the lot matcher."""

    def __init__(
        self,
        snapshot_provider: MarketSnapshotProvider | None = None,
        price_history_provider: PriceHistoryProvider | None = None,
    ):
        self.snapshot_provider = snapshot_provider
        self.price_history_provider = price_history_provider

    def enrich(
        self,
        lots: Iterable[ClosedLotRecord],
        token_addresses: dict[str, str] | None = None,
        check_deadline: Callable[[], None] | None = None,
    ) -> list[ClosedLotRecord]:
        """Return enriched copies of ``lots``; the inputs are not modified.

        Args:
            lots: Closed lots of one wallet, as emitted by the matcher.
            token_addresses: token_id -> mint address for provider lookups.
                Tokens without an entry are looked up by their id.
            check_deadline: Called before each lot's lookups; whatever it
                raises aborts the enrichment.
        """
        token_addresses = token_addresses or {}
        enriched = [replace(lot) for lot in lots]

        for lot in enriched:
            if check_deadline is not None:
                check_deadline()
            address = token_addresses.get(lot.token_id, lot.token_id)
            self._apply_timing(lot)
            self._apply_market_context(lot, address)
            self._apply_price_path(lot, address)

        self._apply_accumulation(enriched)
        self._apply_reentry(enriched)
        return enriched

    # --- Per-lot steps ---

    @staticmethod
    def _apply_timing(lot: ClosedLotRecord) -> None:
        entry = to_utc(lot.entry_time)
        exit_ = to_utc(lot.exit_time)
        lot.hold_time_minutes = minutes_between(entry, exit_)
        lot.entry_hour_of_day = entry.hour
        lot.entry_day_of_week = _day_of_week(entry)
        lot.exit_hour_of_day = exit_.hour
        lot.exit_day_of_week = _day_of_week(exit_)

    def _apply_market_context(self, lot: ClosedLotRecord, address: str) -> None:
        if self.snapshot_provider is None:
            return

        entry = self._lookup_snapshot(address, lot.entry_time)
        if entry is not None:
            lot.entry_market_cap = entry.market_cap
            lot.entry_liquidity = entry.liquidity
            lot.entry_volume_24h = entry.volume_24h
            if entry.token_created_at is not None:
                age = minutes_between(entry.token_created_at, lot.entry_time)
                lot.token_age_at_entry_minutes = age if age >= 0 else None

        exit_ = self._lookup_snapshot(address, lot.exit_time)
        if exit_ is not None:
            lot.exit_market_cap = exit_.market_cap
            lot.exit_liquidity = exit_.liquidity
            lot.exit_volume_24h = exit_.volume_24h

    def _lookup_snapshot(self, address: str, timestamp: datetime):
        try:
            return self.snapshot_provider.get_snapshot(address, timestamp)
        except LookupTimeout as e:
            logger.warning("Snapshot lookup timed out for %s at %s: %s", address, timestamp, e)
        except ProviderError as e:
            logger.warning("Snapshot lookup failed for %s at %s: %s", address, timestamp, e)
        except Exception as e:
            logger.warning(
                "Unexpected snapshot error for %s at %s: %s", address, timestamp, e, exc_info=True
            )
        return None

    def _apply_price_path(self, lot: ClosedLotRecord, address: str) -> None:
        series: list[PricePoint] = []
        if self.price_history_provider is not None:
            try:
                series = self.price_history_provider.get_price_series(
                    address, lot.entry_time, lot.exit_time
                )
            except ProviderError as e:
                logger.warning(
                    "Price history failed for %s (lot %d), using entry/exit only: %s",
                    address, lot.sequence_number, e,
                )
            except Exception as e:
                logger.warning(
                    "Unexpected price history error for %s (lot %d), using entry/exit only: %s",
                    address, lot.sequence_number, e, exc_info=True,
                )

        try:
            path = compute_price_path(
                lot.entry_price, lot.entry_time, lot.exit_price, lot.exit_time, series or ()
            )
        except (ArithmeticError, TypeError) as e:
            logger.warning("Bad price series for %s (lot %d): %s", address, lot.sequence_number, e)
            path = compute_price_path(lot.entry_price, lot.entry_time, lot.exit_price, lot.exit_time)

        if path is not None:
            lot.max_profit_percent = path.max_profit_percent
            lot.max_drawdown_percent = path.max_drawdown_percent
            lot.time_to_max_profit_minutes = path.time_to_max_profit_minutes

        lot.exit_reason = classify_exit(
            lot.realized_pnl_percent,
            lot.entry_price,
            lot.exit_price,
            lot.max_profit_percent,
            lot.max_drawdown_percent,
            cost_known=lot.cost_known,
        ).value

    # --- Cross-lot steps ---

    @staticmethod
    def _apply_accumulation(lots: list[ClosedLotRecord]) -> None:
        """Count the distinct buys that funded each sell."""
        by_sell: dict[str, list[ClosedLotRecord]] = {}
        for lot in lots:
            by_sell.setdefault(lot.sell_trade_id, []).append(lot)

        for sell_lots in by_sell.values():
            buy_times: dict[str, datetime] = {}
            for lot in sell_lots:
                if lot.buy_trade_id is not None:
                    buy_times.setdefault(lot.buy_trade_id, lot.entry_time)

            span = None
            if buy_times:
                span = minutes_between(min(buy_times.values()), max(buy_times.values()))
            for lot in sell_lots:
                lot.dca_entry_count = len(buy_times)
                lot.dca_time_span_minutes = span

    @staticmethod
    def _apply_reentry(lots: list[ClosedLotRecord]) -> None:
        """Relate each lot to the previous lot of the same wallet and token."""
        ordered = sorted(lots, key=lambda lot: (lot.wallet_id, lot.token_id, lot.sequence_number))
        for _, group in groupby(ordered, key=lambda lot: (lot.wallet_id, lot.token_id)):
            previous = None
            for lot in group:
                if previous is not None:
                    lot.reentry_time_minutes = minutes_between(previous.exit_time, lot.entry_time)
                    if previous.exit_price != 0:
                        lot.reentry_price_change_percent = (
                            (lot.entry_price - previous.exit_price) / previous.exit_price * _HUNDRED
                        )
                    lot.previous_cycle_pnl = previous.realized_pnl
                previous = lot
