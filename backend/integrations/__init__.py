"""External API integrations.

This package contains:
- Market data protocols: snapshot and price history interfaces used by
  the lot enricher
- Birdeye client: Integration with the Birdeye public API
- Provider exceptions: typed errors shared by all providers
"""

from integrations.market_data_protocol import (
    MarketSnapshot,
    MarketSnapshotProvider,
    PriceHistoryProvider,
    PricePoint,
)

__all__ = [
    "MarketSnapshot",
    "MarketSnapshotProvider",
    "PriceHistoryProvider",
    "PricePoint",
]
