"""Read access to valued trades for the position engine."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from models import ClosedLot, OpenPosition, Token, Trade, Wallet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValuedTrade:
    """A trade valued in the common base currency, detached from the session."""

    id: str
    wallet_id: str
    token_id: str
    side: str  # "buy" / "sell" / "add" / "remove" / "void"
    quantity: Decimal
    unit_cost: Decimal
    timestamp: datetime
    sequence_hint: int = 0
    base_price_usd: Decimal | None = None


class TradeService:
    """Queries the trades table and wallet metadata."""

    @staticmethod
    def list_trades(
        db: Session, wallet_id: str, token_id: str | None = None
    ) -> list[ValuedTrade]:
        """Return a wallet's trades ordered by timestamp, sequence hint, id."""
        query = db.query(Trade).filter(Trade.wallet_id == wallet_id)
        if token_id is not None:
            query = query.filter(Trade.token_id == token_id)
        rows = query.order_by(Trade.timestamp, Trade.sequence_hint, Trade.id).all()

        return [
            ValuedTrade(
                id=row.id,
                wallet_id=row.wallet_id,
                token_id=row.token_id,
                side=row.side,
                quantity=row.quantity,
                unit_cost=row.unit_cost,
                timestamp=row.timestamp,
                sequence_hint=row.sequence_hint or 0,
                base_price_usd=row.base_price_usd,
            )
            for row in rows
        ]

    @staticmethod
    def get_tracking_start(db: Session, wallet_id: str) -> datetime | None:
        """Return when trade history for the wallet begins.

        Raises ValueError if the wallet doesn't exist.
        """
        wallet = db.get(Wallet, wallet_id)
        if wallet is None:
            raise ValueError(f"Wallet not found: {wallet_id}")
        return wallet.tracking_start

    @staticmethod
    def get_token_addresses(db: Session, token_ids) -> dict[str, str]:
        """Map token ids to mint addresses for market data lookups."""
        token_ids = list(token_ids)
        if not token_ids:
            return {}
        rows = db.query(Token.id, Token.mint_address).filter(Token.id.in_(token_ids)).all()
        return {token_id: mint for token_id, mint in rows}

    @staticmethod
    def list_position_token_ids(db: Session, wallet_id: str) -> set[str]:
        """Token ids that currently have stored closed lots or open positions."""
        lot_tokens = db.query(ClosedLot.token_id).filter(ClosedLot.wallet_id == wallet_id).distinct()
        open_tokens = (
            db.query(OpenPosition.token_id).filter(OpenPosition.wallet_id == wallet_id).distinct()
        )
        return {row[0] for row in lot_tokens} | {row[0] for row in open_tokens}

    @staticmethod
    def list_wallet_ids(db: Session) -> list[str]:
        """Return ids of wallets with at least one trade, in stable order."""
        rows = (
            db.query(Trade.wallet_id)
            .distinct()
            .order_by(Trade.wallet_id)
            .all()
        )
        return [row[0] for row in rows]
