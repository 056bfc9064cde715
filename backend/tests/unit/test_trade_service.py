"""Tests for TradeService."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from models import ClosedLot, OpenPosition, Token, Wallet
from services.trade_service import TradeService, ValuedTrade
from tests.fixtures import T0, add_trade


class TestListTrades:
    def test_ordered_by_timestamp_hint_and_id(self, db: Session, wallet: Wallet, token: Token):
        late = add_trade(db, wallet, token, "sell", "1", "2", T0 + timedelta(minutes=5))
        tie_b = add_trade(db, wallet, token, "buy", "1", "1", T0, sequence_hint=2)
        tie_a = add_trade(db, wallet, token, "buy", "1", "1", T0, sequence_hint=1)

        trades = TradeService.list_trades(db, wallet.id)

        assert [t.id for t in trades] == [tie_a.id, tie_b.id, late.id]
        assert all(isinstance(t, ValuedTrade) for t in trades)

    def test_values_are_copied(self, db: Session, wallet: Wallet, token: Token):
        add_trade(db, wallet, token, "buy", "12.5", "0.004", T0, base_price_usd="145.2")

        trade = TradeService.list_trades(db, wallet.id)[0]

        assert trade.side == "buy"
        assert trade.quantity == Decimal("12.5")
        assert trade.unit_cost == Decimal("0.004")
        assert trade.base_price_usd == Decimal("145.2")
        assert trade.token_id == token.id

    def test_token_filter(self, db: Session, wallet: Wallet, token: Token, second_token: Token):
        add_trade(db, wallet, token, "buy", "1", "1", T0)
        other = add_trade(db, wallet, second_token, "buy", "1", "1", T0)

        trades = TradeService.list_trades(db, wallet.id, second_token.id)

        assert [t.id for t in trades] == [other.id]

    def test_other_wallets_excluded(self, db: Session, wallet: Wallet, token: Token):
        other_wallet = Wallet(address="other-address")
        db.add(other_wallet)
        db.flush()
        add_trade(db, other_wallet, token, "buy", "1", "1", T0)

        assert TradeService.list_trades(db, wallet.id) == []


class TestTrackingStart:
    def test_returns_wallet_tracking_start(self, db: Session, wallet: Wallet):
        wallet.tracking_start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        db.flush()

        assert TradeService.get_tracking_start(db, wallet.id).replace(tzinfo=None) == datetime(2024, 1, 1)

    def test_none_when_unset(self, db: Session, wallet: Wallet):
        assert TradeService.get_tracking_start(db, wallet.id) is None

    def test_unknown_wallet_raises(self, db: Session):
        with pytest.raises(ValueError, match="Wallet not found"):
            TradeService.get_tracking_start(db, "missing")


class TestLookups:
    def test_token_addresses(self, db: Session, token: Token, second_token: Token):
        addresses = TradeService.get_token_addresses(db, [token.id, second_token.id])

        assert addresses == {
            token.id: token.mint_address,
            second_token.id: second_token.mint_address,
        }

    def test_token_addresses_empty(self, db: Session):
        assert TradeService.get_token_addresses(db, []) == {}

    def test_list_wallet_ids_only_wallets_with_trades(self, db: Session, wallet: Wallet, token: Token):
        idle = Wallet(address="idle-address")
        db.add(idle)
        db.flush()
        add_trade(db, wallet, token, "buy", "1", "1", T0)

        assert TradeService.list_wallet_ids(db) == [wallet.id]

    def test_position_token_ids(self, db: Session, wallet: Wallet, token: Token, second_token: Token):
        buy = add_trade(db, wallet, token, "buy", "1", "1", T0)
        sell = add_trade(db, wallet, token, "sell", "1", "2", T0 + timedelta(minutes=1))
        db.add(ClosedLot(
            wallet_id=wallet.id, token_id=token.id, buy_trade_id=buy.id, sell_trade_id=sell.id,
            sequence_number=1, cycle_number=1, size=Decimal("1"), entry_price=Decimal("1"),
            exit_price=Decimal("2"), cost_basis=Decimal("1"), proceeds=Decimal("2"),
            realized_pnl=Decimal("1"), realized_pnl_percent=Decimal("100"),
            entry_time=T0, exit_time=T0 + timedelta(minutes=1),
        ))
        db.add(OpenPosition(
            wallet_id=wallet.id, token_id=second_token.id, remaining_quantity=Decimal("3"),
            average_cost=Decimal("1"), total_cost=Decimal("3"), opened_at=T0,
        ))
        db.flush()

        assert TradeService.list_position_token_ids(db, wallet.id) == {token.id, second_token.id}
