"""Recompute orchestration: trades -> lot matcher -> lot enricher -> position store."""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from sqlalchemy.orm import Session

from config import settings
from services.exceptions import PersistenceConflict, ScopeTimeout
from services.lot_enrichment_service import LotEnricher
from services.lot_matching_service import (
    ClosedLotRecord,
    LotMatcher,
    OpenPositionRecord,
    TradeDiagnostic,
)
from services.market_data_service import MarketDataService
from services.position_store_service import PositionStoreService
from services.trade_service import TradeService

logger = logging.getLogger(__name__)


@dataclass
class TokenRecomputeError:
    """A token whose recompute failed; its previous rows were kept."""

    token_id: str
    error: str


@dataclass
class RecomputeResult:
    """Outcome of recomputing one wallet (or one token of it)."""

    wallet_id: str
    token_id: str | None = None
    closed_lots: list[ClosedLotRecord] = field(default_factory=list)
    open_positions: list[OpenPositionRecord] = field(default_factory=list)
    diagnostics: list[TradeDiagnostic] = field(default_factory=list)
    token_errors: list[TokenRecomputeError] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.token_errors)

    @property
    def tokens_processed(self) -> int:
        tokens = {lot.token_id for lot in self.closed_lots}
        tokens.update(position.token_id for position in self.open_positions)
        return len(tokens)


@dataclass
class BatchRecomputeResult:
    """Outcome of a multi-wallet recompute."""

    results: list[RecomputeResult] = field(default_factory=list)
    wallet_errors: dict[str, str] = field(default_factory=dict)
    skipped_wallets: list[str] = field(default_factory=list)

    @property
    def wallets_processed(self) -> int:
        return len(self.results)

    @property
    def token_error_count(self) -> int:
        return sum(result.error_count for result in self.results)


class PositionService:
    """Rebuilds closed lots and open positions from a wallet's trades.

    A recompute replaces each token's rows in its own savepoint. A token
    that fails keeps its previous rows and is reported in the result;
    other tokens still commit.
    """

    def __init__(
        self,
        matcher: Optional[LotMatcher] = None,
        enricher: Optional[LotEnricher] = None,
        scope_timeout: Optional[float] = None,
    ):
        self.matcher = matcher or LotMatcher()
        self._market_data: Optional[MarketDataService] = None
        if enricher is None:
            self._market_data = MarketDataService()
            enricher = LotEnricher(self._market_data, self._market_data)
        self.enricher = enricher
        self.scope_timeout = settings.SCOPE_TIMEOUT_SECONDS if scope_timeout is None else scope_timeout

    def recompute_positions(
        self, db: Session, wallet_id: str, token_id: str | None = None
    ) -> RecomputeResult:
        """Recompute one wallet, or one of its tokens. Idempotent.

        Tokens that still have stored rows but no trades left are cleared.
        The caller owns the outer transaction and commits it.

        Raises:
            ValueError: The wallet doesn't exist.
            ScopeTimeout: The recompute ran past ``scope_timeout``; tokens
                already written stay in the session.
        """
        deadline = time.monotonic() + self.scope_timeout
        tracking_start = TradeService.get_tracking_start(db, wallet_id)
        trades = TradeService.list_trades(db, wallet_id, token_id)
        self._check_deadline(deadline, wallet_id)

        match = self.matcher.match(trades, tracking_start=tracking_start, token_id=token_id)
        result = RecomputeResult(wallet_id=wallet_id, token_id=token_id, diagnostics=match.diagnostics)

        if token_id is not None:
            token_ids = {token_id}
        else:
            token_ids = {trade.token_id for trade in trades}
            token_ids.update(TradeService.list_position_token_ids(db, wallet_id))
        addresses = TradeService.get_token_addresses(db, token_ids)

        def check_deadline() -> None:
            self._check_deadline(deadline, wallet_id)

        for current in sorted(token_ids):
            check_deadline()
            lots = [lot for lot in match.closed_lots if lot.token_id == current]
            positions = [p for p in match.open_positions if p.token_id == current]
            try:
                enriched = self.enricher.enrich(
                    lots, token_addresses=addresses, check_deadline=check_deadline
                )
                PositionStoreService.replace_token_scope(db, wallet_id, current, enriched, positions)
            except ScopeTimeout:
                raise
            except PersistenceConflict as e:
                logger.error("Recompute failed for wallet %s token %s: %s", wallet_id, current, e)
                result.token_errors.append(TokenRecomputeError(token_id=current, error=str(e)))
                continue
            except Exception as e:
                logger.exception("Unexpected error recomputing wallet %s token %s", wallet_id, current)
                result.token_errors.append(TokenRecomputeError(token_id=current, error=str(e)))
                continue
            result.closed_lots.extend(enriched)
            result.open_positions.extend(positions)

        check_deadline()

        logger.info(
            "Recomputed wallet %s: %d closed lots, %d open positions, %d skipped trades, %d token errors",
            wallet_id,
            len(result.closed_lots),
            len(result.open_positions),
            len(result.diagnostics),
            result.error_count,
        )
        return result

    def recompute_all_wallets(
        self,
        db: Session,
        wallet_ids: list[str] | None = None,
        delay_seconds: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> BatchRecomputeResult:
        """Recompute several wallets, committing each one separately.

        A failing wallet is rolled back and recorded; the batch continues.
        Wallets without trades are skipped. Defaults to every wallet that
        has trades.

        Args:
            db: Database session.
            wallet_ids: Wallets to recompute (defaults to all with trades).
            delay_seconds: Pause between wallets (defaults to
                          settings.BATCH_DELAY_SECONDS).
            sleep: Sleep function, replaceable in tests.
        """
        if wallet_ids is None:
            wallet_ids = TradeService.list_wallet_ids(db)
        delay = settings.BATCH_DELAY_SECONDS if delay_seconds is None else delay_seconds

        batch = BatchRecomputeResult()
        with_trades = set(TradeService.list_wallet_ids(db))

        for index, wallet_id in enumerate(wallet_ids):
            if wallet_id not in with_trades:
                logger.info("Skipping wallet %s: no trades", wallet_id)
                batch.skipped_wallets.append(wallet_id)
                continue
            if index > 0 and delay > 0:
                sleep(delay)

            try:
                result = self.recompute_positions(db, wallet_id)
                db.commit()
            except Exception as e:
                db.rollback()
                logger.error("Recompute failed for wallet %s: %s", wallet_id, e)
                batch.wallet_errors[wallet_id] = str(e)
                continue
            batch.results.append(result)

        logger.info(
            "Batch recompute finished: %d wallets, %d wallet errors, %d token errors, %d skipped",
            batch.wallets_processed,
            len(batch.wallet_errors),
            batch.token_error_count,
            len(batch.skipped_wallets),
        )
        return batch

    def close(self) -> None:
        """Release the market data client created for the default enricher."""
        if self._market_data is not None:
            self._market_data.close()

    def _check_deadline(self, deadline: float, wallet_id: str) -> None:
        if time.monotonic() > deadline:
            raise ScopeTimeout(wallet_id, self.scope_timeout)
