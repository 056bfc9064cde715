"""Market data provider protocol definitions.

Defines the side lookups the lot enricher consumes: point-in-time market
snapshots (market cap, liquidity, volume) and spot price series between a
lot's entry and exit. Prices are expected in the same base currency the
trades were valued in.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol


@dataclass
class MarketSnapshot:
    """Market conditions for a token around a point in time."""

    token: str  # Mint address the snapshot was fetched for
    observed_at: datetime
    market_cap: Decimal | None = None
    liquidity: Decimal | None = None
    volume_24h: Decimal | None = None
    token_created_at: datetime | None = None
    source: str = ""  # e.g., "birdeye"


@dataclass
class PricePoint:
    """A single spot price sample."""

    timestamp: datetime
    price: Decimal


class MarketSnapshotProvider(Protocol):
    """Protocol for point-in-time market snapshot lookups."""

    @property
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'birdeye')."""
        ...

    def get_snapshot(self, token: str, timestamp: datetime) -> MarketSnapshot | None:
        """Fetch market conditions for a token at (or near) a timestamp.

        Args:
            token: Token mint address.
            timestamp: Point in time the snapshot should describe.

        Returns:
            The snapshot, or None when the provider has no data for it.
        """
        ...


class PriceHistoryProvider(Protocol):
    """Protocol for spot price history lookups."""

    @property
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'birdeye')."""
        ...

    def get_price_series(
        self, token: str, start: datetime, end: datetime
    ) -> list[PricePoint]:
        """Fetch spot prices sampled between start and end (inclusive).

        Args:
            token: Token mint address.
            start: Start of the window.
            end: End of the window.

        Returns:
            Samples in ascending timestamp order. May be empty.
        """
        ...
