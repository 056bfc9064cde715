"""Test fixtures and sample data."""
import pytest
from datetime import datetime, timezone
from decimal import Decimal

from models import Token, Trade, Wallet
from services.trade_service import ValuedTrade
from sqlalchemy.orm import Session

T0 = datetime(2024, 3, 4, 9, 30, tzinfo=timezone.utc)  # a Monday


def make_trade(
    trade_id: str,
    side: str,
    quantity,
    unit_cost,
    timestamp: datetime = T0,
    token_id: str = "tok-1",
    wallet_id: str = "wal-1",
    sequence_hint: int = 0,
    base_price_usd=None,
) -> ValuedTrade:
    """Build a ValuedTrade, converting str/int amounts to Decimal.

    This is a helper function (not a fixture) for matcher and enricher
    tests that don't need the database.
    """

    def _dec(value):
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            return Decimal(str(value))
        return value

    return ValuedTrade(
        id=trade_id,
        wallet_id=wallet_id,
        token_id=token_id,
        side=side,
        quantity=_dec(quantity),
        unit_cost=_dec(unit_cost),
        timestamp=timestamp,
        sequence_hint=sequence_hint,
        base_price_usd=_dec(base_price_usd),
    )


def add_trade(
    db: Session,
    wallet: Wallet,
    token: Token,
    side: str,
    quantity: str,
    unit_cost: str,
    timestamp: datetime,
    sequence_hint: int = 0,
    base_price_usd: str | None = None,
    signature: str | None = None,
) -> Trade:
    """Insert a Trade row for a wallet and token."""
    trade = Trade(
        wallet_id=wallet.id,
        token_id=token.id,
        side=side,
        quantity=Decimal(quantity),
        unit_cost=Decimal(unit_cost),
        base_price_usd=Decimal(base_price_usd) if base_price_usd is not None else None,
        timestamp=timestamp,
        sequence_hint=sequence_hint,
        signature=signature,
    )
    db.add(trade)
    db.flush()
    return trade


@pytest.fixture
def wallet(db: Session) -> Wallet:
    """Create a tracked wallet."""
    w = Wallet(
        address="7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU",
        label="Test Wallet",
    )
    db.add(w)
    db.flush()
    return w


@pytest.fixture
def token(db: Session) -> Token:
    """Create a test token."""
    t = Token(
        mint_address="DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263",
        symbol="BONK",
        name="Bonk",
    )
    db.add(t)
    db.flush()
    return t


@pytest.fixture
def second_token(db: Session) -> Token:
    """Create a second test token."""
    t = Token(
        mint_address="EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm",
        symbol="WIF",
        name="dogwifhat",
    )
    db.add(t)
    db.flush()
    return t
