"""Unit tests for the provider and position exception hierarchies."""

import pytest

from integrations.exceptions import (
    LookupTimeout,
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDataError,
    ProviderError,
)
from services.exceptions import (
    PersistenceConflict,
    PositionError,
    ScopeTimeout,
    TradeInputError,
)


class TestProviderErrors:
    @pytest.mark.parametrize(
        "exc",
        [
            ProviderAuthError("auth", provider_name="birdeye"),
            ProviderConnectionError("conn", provider_name="birdeye"),
            LookupTimeout("slow", provider_name="birdeye", timeout_seconds=10.0),
            ProviderAPIError("api", provider_name="birdeye", status_code=400),
            ProviderDataError("data", provider_name="birdeye"),
        ],
    )
    def test_caught_as_provider_error(self, exc):
        with pytest.raises(ProviderError):
            raise exc
        assert exc.provider_name == "birdeye"

    def test_lookup_timeout_is_retriable_connection_error(self):
        exc = LookupTimeout("slow", provider_name="birdeye", timeout_seconds=2.5)

        assert isinstance(exc, ProviderConnectionError)
        assert exc.retriable is True
        assert exc.timeout_seconds == 2.5
        assert str(exc) == "slow"

    @pytest.mark.parametrize(
        "status,retriable",
        [(429, True), (500, True), (503, True), (400, False), (404, False), (None, False)],
    )
    def test_api_error_retriable_by_status(self, status, retriable):
        assert ProviderAPIError("x", status_code=status).retriable is retriable

    def test_connection_error_can_be_non_retriable(self):
        assert ProviderConnectionError("dns", retriable=False).retriable is False


class TestPositionErrors:
    def test_all_are_position_errors(self):
        for exc in (
            TradeInputError("t1", "unknown side"),
            PersistenceConflict("w1", "tok"),
            ScopeTimeout("w1", 5.0),
        ):
            assert isinstance(exc, PositionError)

    def test_trade_input_error_fields(self):
        exc = TradeInputError("t1", "quantity is negative: -1")

        assert exc.trade_id == "t1"
        assert exc.reason == "quantity is negative: -1"
        assert "t1" in str(exc)

    def test_persistence_conflict_message(self):
        exc = PersistenceConflict("w1", "tok-9", "UNIQUE constraint failed")

        assert exc.wallet_id == "w1"
        assert exc.token_id == "tok-9"
        assert str(exc) == "Failed to replace positions for wallet w1 token tok-9: UNIQUE constraint failed"

    def test_persistence_conflict_wallet_scope(self):
        assert str(PersistenceConflict("w1")) == "Failed to replace positions for wallet w1"

    def test_scope_timeout_fields(self):
        exc = ScopeTimeout("w1", 30.0)

        assert exc.wallet_id == "w1"
        assert exc.timeout_seconds == 30.0
        assert "30.0s" in str(exc)
