"""Mock implementations for external services."""

from datetime import datetime
from decimal import Decimal

from integrations.exceptions import LookupTimeout, ProviderAPIError, ProviderConnectionError
from integrations.market_data_protocol import MarketSnapshot, PricePoint


def _raise_failure(failure_type: str, message: str, provider_name: str) -> None:
    """Raise the appropriate exception based on failure_type."""
    if failure_type == "timeout":
        raise LookupTimeout(message, provider_name=provider_name, timeout_seconds=10.0)
    elif failure_type == "connection":
        raise ProviderConnectionError(message, provider_name=provider_name)
    elif failure_type == "unexpected":
        raise ValueError(message)
    else:
        raise ProviderAPIError(message, provider_name=provider_name, status_code=500)


class MockSnapshotProvider:
    """Mock MarketSnapshotProvider for testing.

    Returns ``snapshots[(token, timestamp)]`` when present, else
    ``default`` (None unless given). Records every call.
    """

    def __init__(
        self,
        snapshots: dict[tuple[str, datetime], MarketSnapshot] | None = None,
        default: MarketSnapshot | None = None,
        should_fail: bool = False,
        failure_type: str = "api",
        failure_message: str = "Mock snapshot error",
    ):
        self._snapshots = snapshots or {}
        self._default = default
        self._should_fail = should_fail
        self._failure_type = failure_type
        self._failure_message = failure_message
        self.calls: list[tuple[str, datetime]] = []

    @property
    def provider_name(self) -> str:
        return "mock"

    def get_snapshot(self, token: str, timestamp: datetime) -> MarketSnapshot | None:
        self.calls.append((token, timestamp))
        if self._should_fail:
            _raise_failure(self._failure_type, self._failure_message, "mock")
        return self._snapshots.get((token, timestamp), self._default)


class MockPriceHistoryProvider:
    """Mock PriceHistoryProvider returning a fixed series per token."""

    def __init__(
        self,
        series: dict[str, list[tuple[datetime, str]]] | None = None,
        should_fail: bool = False,
        failure_type: str = "api",
        failure_message: str = "Mock price history error",
    ):
        self._series = series or {}
        self._should_fail = should_fail
        self._failure_type = failure_type
        self._failure_message = failure_message
        self.calls: list[tuple[str, datetime, datetime]] = []

    @property
    def provider_name(self) -> str:
        return "mock"

    def get_price_series(self, token: str, start: datetime, end: datetime) -> list[PricePoint]:
        self.calls.append((token, start, end))
        if self._should_fail:
            _raise_failure(self._failure_type, self._failure_message, "mock")
        return [
            PricePoint(timestamp=ts, price=Decimal(price))
            for ts, price in self._series.get(token, [])
        ]
