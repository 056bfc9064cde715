"""Integration tests for the wallet positions API."""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy.orm import Session

from api.positions import (
    close_position_service,
    get_position_service,
    set_position_service_override,
)
from models import Token, Wallet
from services.exceptions import ScopeTimeout
from services.position_service import PositionService
from tests.fixtures import T0, add_trade


def _seed_fifo(db: Session, wallet: Wallet, token: Token):
    add_trade(db, wallet, token, "buy", "10", "1", T0)
    add_trade(db, wallet, token, "buy", "10", "2", T0 + timedelta(minutes=1))
    add_trade(db, wallet, token, "sell", "15", "3", T0 + timedelta(minutes=2))
    db.commit()


class TestRecompute:
    def test_recompute_wallet(self, client, db, wallet, token):
        _seed_fifo(db, wallet, token)

        response = client.post(f"/api/wallets/{wallet.id}/positions/recompute")

        assert response.status_code == 200
        data = response.json()
        assert data["wallet_id"] == wallet.id
        assert data["token_id"] is None
        assert data["closed_lot_count"] == 2
        assert data["open_position_count"] == 1
        assert data["diagnostics"] == []
        assert data["error_count"] == 0

    def test_recompute_single_token(self, client, db, wallet, token, second_token):
        _seed_fifo(db, wallet, token)
        add_trade(db, wallet, second_token, "buy", "1", "1", T0)
        db.commit()

        response = client.post(
            f"/api/wallets/{wallet.id}/positions/recompute", params={"token_id": second_token.id}
        )

        assert response.status_code == 200
        assert response.json()["closed_lot_count"] == 0
        assert response.json()["open_position_count"] == 1

    def test_recompute_reports_skipped_trades(self, client, db, wallet, token):
        bad = add_trade(db, wallet, token, "buy", "-5", "1", T0)
        db.commit()

        response = client.post(f"/api/wallets/{wallet.id}/positions/recompute")

        diagnostics = response.json()["diagnostics"]
        assert len(diagnostics) == 1
        assert diagnostics[0]["trade_id"] == bad.id
        assert "negative" in diagnostics[0]["reason"]

    def test_unknown_wallet_404(self, client):
        response = client.post("/api/wallets/nonexistent/positions/recompute")

        assert response.status_code == 404
        assert response.json()["detail"] == "Wallet not found"

    def test_unknown_token_404(self, client, wallet):
        response = client.post(
            f"/api/wallets/{wallet.id}/positions/recompute", params={"token_id": "nope"}
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Token not found"

    def test_scope_timeout_maps_to_504(self, client, db, wallet, token):
        _seed_fifo(db, wallet, token)

        class TimingOutService(PositionService):
            def recompute_positions(self, db, wallet_id, token_id=None):
                raise ScopeTimeout(wallet_id, 0.5)

        set_position_service_override(TimingOutService())

        response = client.post(f"/api/wallets/{wallet.id}/positions/recompute")

        assert response.status_code == 504
        assert "exceeded 0.5s" in response.json()["detail"]


class TestReadEndpoints:
    def test_closed_lots_after_recompute(self, client, db, wallet, token):
        _seed_fifo(db, wallet, token)
        client.post(f"/api/wallets/{wallet.id}/positions/recompute")

        response = client.get(f"/api/wallets/{wallet.id}/closed-lots")

        assert response.status_code == 200
        lots = response.json()
        assert [lot["sequence_number"] for lot in lots] == [1, 2]
        assert Decimal(lots[0]["size"]) == Decimal("10")
        assert Decimal(lots[1]["entry_price"]) == Decimal("2")
        assert lots[0]["cost_known"] is True
        assert lots[0]["exit_reason"] in {"take_profit", "stop_loss", "manual", "unknown"}

    def test_closed_lots_token_filter(self, client, db, wallet, token, second_token):
        _seed_fifo(db, wallet, token)
        client.post(f"/api/wallets/{wallet.id}/positions/recompute")

        response = client.get(
            f"/api/wallets/{wallet.id}/closed-lots", params={"token_id": second_token.id}
        )

        assert response.json() == []

    def test_open_positions(self, client, db, wallet, token):
        _seed_fifo(db, wallet, token)
        client.post(f"/api/wallets/{wallet.id}/positions/recompute")

        response = client.get(f"/api/wallets/{wallet.id}/open-positions")

        assert response.status_code == 200
        positions = response.json()
        assert len(positions) == 1
        assert Decimal(positions[0]["remaining_quantity"]) == Decimal("5")
        assert Decimal(positions[0]["average_cost"]) == Decimal("2")
        assert positions[0]["buy_count"] == 2
        assert positions[0]["sell_count"] == 1

    def test_read_unknown_wallet_404(self, client):
        assert client.get("/api/wallets/nope/closed-lots").status_code == 404
        assert client.get("/api/wallets/nope/open-positions").status_code == 404


class TestServiceOverride:
    def test_default_service_when_no_override(self):
        set_position_service_override(None)

        assert isinstance(get_position_service(), PositionService)

    def test_default_service_is_shared_across_requests(self):
        set_position_service_override(None)
        try:
            assert get_position_service() is get_position_service()
        finally:
            close_position_service()

    def test_close_releases_and_resets_shared_service(self):
        set_position_service_override(None)
        service = get_position_service()

        with patch.object(service, "close") as mock_close:
            close_position_service()

        mock_close.assert_called_once()
        assert get_position_service() is not service
        close_position_service()
