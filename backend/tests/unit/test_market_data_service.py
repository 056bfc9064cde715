"""Unit tests for MarketDataService."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest

from integrations.market_data_protocol import MarketSnapshot
from services.market_data_service import MarketDataService
from tests.fixtures.mocks import MockPriceHistoryProvider, MockSnapshotProvider

TS = datetime(2024, 3, 4, 9, 30, tzinfo=timezone.utc)
SNAPSHOT = MarketSnapshot(token="MINT", observed_at=TS, market_cap=Decimal("1000"))


class UnconfiguredProvider(MockSnapshotProvider):
    def is_configured(self) -> bool:
        return False


class TestSnapshots:
    def test_delegates_and_caches(self):
        provider = MockSnapshotProvider(default=SNAPSHOT)
        service = MarketDataService(snapshot_provider=provider)

        first = service.get_snapshot("MINT", TS)
        second = service.get_snapshot("MINT", TS)

        assert first is SNAPSHOT
        assert second is SNAPSHOT
        assert provider.calls == [("MINT", TS)]

    def test_none_results_are_cached_too(self):
        provider = MockSnapshotProvider()
        service = MarketDataService(snapshot_provider=provider)

        assert service.get_snapshot("MINT", TS) is None
        assert service.get_snapshot("MINT", TS) is None
        assert len(provider.calls) == 1

    def test_expired_entry_is_refetched(self):
        provider = MockSnapshotProvider(default=SNAPSHOT)
        service = MarketDataService(snapshot_provider=provider, cache_ttl_seconds=300)
        service.get_snapshot("MINT", TS)

        later = datetime.now(timezone.utc) + timedelta(seconds=301)
        with patch.object(MarketDataService, "_now", return_value=later):
            service.get_snapshot("MINT", TS)

        assert len(provider.calls) == 2

    def test_timeout_returns_none_and_is_not_cached(self):
        provider = MockSnapshotProvider(should_fail=True, failure_type="timeout")
        service = MarketDataService(snapshot_provider=provider)

        assert service.get_snapshot("MINT", TS) is None
        assert service.get_snapshot("MINT", TS) is None
        assert len(provider.calls) == 2

    def test_api_error_returns_none(self):
        provider = MockSnapshotProvider(should_fail=True, failure_type="api")
        service = MarketDataService(snapshot_provider=provider)

        assert service.get_snapshot("MINT", TS) is None

    def test_unexpected_error_returns_none(self):
        provider = MockSnapshotProvider(should_fail=True, failure_type="unexpected")
        service = MarketDataService(snapshot_provider=provider)

        assert service.get_snapshot("MINT", TS) is None

    def test_unconfigured_provider_is_skipped(self):
        provider = UnconfiguredProvider(default=SNAPSHOT)
        service = MarketDataService(snapshot_provider=provider)

        assert service.get_snapshot("MINT", TS) is None
        assert provider.calls == []


class TestPriceSeries:
    def test_delegates_and_caches(self):
        provider = MockPriceHistoryProvider(series={"MINT": [(TS, "1.5")]})
        service = MarketDataService(
            snapshot_provider=MockSnapshotProvider(), price_history_provider=provider
        )
        end = TS + timedelta(hours=1)

        first = service.get_price_series("MINT", TS, end)
        second = service.get_price_series("MINT", TS, end)

        assert [p.price for p in first] == [Decimal("1.5")]
        assert first == second
        assert len(provider.calls) == 1

    def test_different_windows_are_separate_entries(self):
        provider = MockPriceHistoryProvider()
        service = MarketDataService(
            snapshot_provider=MockSnapshotProvider(), price_history_provider=provider
        )

        service.get_price_series("MINT", TS, TS + timedelta(hours=1))
        service.get_price_series("MINT", TS, TS + timedelta(hours=2))

        assert len(provider.calls) == 2

    def test_failure_returns_empty_list(self):
        provider = MockPriceHistoryProvider(should_fail=True, failure_type="connection")
        service = MarketDataService(
            snapshot_provider=MockSnapshotProvider(), price_history_provider=provider
        )

        assert service.get_price_series("MINT", TS, TS + timedelta(hours=1)) == []

    def test_unexpected_error_returns_empty_list(self):
        provider = MockPriceHistoryProvider(should_fail=True, failure_type="unexpected")
        service = MarketDataService(
            snapshot_provider=MockSnapshotProvider(), price_history_provider=provider
        )

        assert service.get_price_series("MINT", TS, TS + timedelta(hours=1)) == []

    def test_defaults_to_snapshot_provider(self):
        class CombinedProvider(MockSnapshotProvider, MockPriceHistoryProvider):
            def __init__(self):
                MockSnapshotProvider.__init__(self)
                MockPriceHistoryProvider.__init__(self)

        provider = CombinedProvider()
        service = MarketDataService(snapshot_provider=provider)

        assert service.price_history_provider is provider


class TestClearCache:
    def test_clear_cache_forces_refetch(self):
        provider = MockSnapshotProvider(default=SNAPSHOT)
        service = MarketDataService(snapshot_provider=provider)
        service.get_snapshot("MINT", TS)

        service.clear_cache()
        service.get_snapshot("MINT", TS)

        assert len(provider.calls) == 2


class TestDefaultProvider:
    def test_lazily_creates_birdeye_client(self):
        service = MarketDataService()

        with patch("integrations.birdeye_client.BirdeyeClient") as mock_cls:
            provider = service.snapshot_provider

        assert provider is mock_cls.return_value


class TestClose:
    def test_closes_owned_client(self):
        service = MarketDataService()

        with patch("integrations.birdeye_client.BirdeyeClient") as mock_cls:
            service.get_price_series("MINT", TS, TS + timedelta(hours=1))
            service.close()

        mock_cls.return_value.close.assert_called_once()
        assert service._snapshot_provider is None
        assert service._price_history_provider is None

    def test_leaves_injected_providers_open(self):
        provider = MockSnapshotProvider(default=SNAPSHOT)
        provider.close = lambda: pytest.fail("injected provider was closed")
        service = MarketDataService(snapshot_provider=provider)
        service.get_snapshot("MINT", TS)

        service.close()

        assert service.snapshot_provider is provider
