"""Market data service: cached, failure-tolerant front for market data providers."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from config import settings
from integrations.exceptions import LookupTimeout, ProviderError
from integrations.market_data_protocol import (
    MarketSnapshot,
    MarketSnapshotProvider,
    PriceHistoryProvider,
    PricePoint,
)

logger = logging.getLogger(__name__)


class MarketDataService:
    """Serves market snapshots and price series to the lot enricher.

    Implements both MarketSnapshotProvider and PriceHistoryProvider on top
    of pluggable providers, adding an in-memory TTL cache and turning
    provider failures into "no data": lookups never raise.
    """

    def __init__(
        self,
        snapshot_provider: Optional[MarketSnapshotProvider] = None,
        price_history_provider: Optional[PriceHistoryProvider] = None,
        cache_ttl_seconds: Optional[int] = None,
    ):
        """Initialize with optional providers for dependency injection.

        Args:
            snapshot_provider: Snapshot provider. If None, a BirdeyeClient
                              is created on first use.
            price_history_provider: Price history provider. If None, the
                                   snapshot provider's BirdeyeClient is reused.
            cache_ttl_seconds: Cache lifetime (defaults to
                              settings.MARKET_DATA_CACHE_TTL_SECONDS).
        """
        self._snapshot_provider = snapshot_provider
        self._price_history_provider = price_history_provider
        self._owned_client = None
        ttl = settings.MARKET_DATA_CACHE_TTL_SECONDS if cache_ttl_seconds is None else cache_ttl_seconds
        self._cache_ttl = timedelta(seconds=ttl)
        self._snapshot_cache: dict[tuple, tuple[MarketSnapshot | None, datetime]] = {}
        self._series_cache: dict[tuple, tuple[list[PricePoint], datetime]] = {}

    @property
    def provider_name(self) -> str:
        return "market_data"

    @property
    def snapshot_provider(self) -> MarketSnapshotProvider:
        """Get the snapshot provider, creating a BirdeyeClient if not provided."""
        if self._snapshot_provider is None:
            from integrations.birdeye_client import BirdeyeClient

            self._owned_client = BirdeyeClient()
            self._snapshot_provider = self._owned_client
        return self._snapshot_provider

    @property
    def price_history_provider(self) -> PriceHistoryProvider:
        """Get the price history provider, defaulting to the snapshot provider."""
        if self._price_history_provider is None:
            self._price_history_provider = self.snapshot_provider
        return self._price_history_provider

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def _is_available(provider) -> bool:
        is_configured = getattr(provider, "is_configured", None)
        return is_configured is None or is_configured()

    def _cached(self, cache: dict, key: tuple):
        entry = cache.get(key)
        if entry is None:
            return False, None
        value, fetched_at = entry
        if self._now() - fetched_at >= self._cache_ttl:
            del cache[key]
            return False, None
        return True, value

    def get_snapshot(self, token: str, timestamp: datetime) -> MarketSnapshot | None:
        """Fetch a market snapshot, or None when unavailable."""
        key = (token, timestamp)
        hit, value = self._cached(self._snapshot_cache, key)
        if hit:
            return value

        provider = self.snapshot_provider
        if not self._is_available(provider):
            logger.debug("Snapshot provider %s not configured, skipping", provider.provider_name)
            return None

        try:
            snapshot = provider.get_snapshot(token, timestamp)
        except LookupTimeout as e:
            logger.warning("Snapshot lookup timed out for %s: %s", token, e)
            return None
        except ProviderError as e:
            logger.warning("Snapshot lookup failed for %s (%s): %s", token, e.provider_name, e)
            return None
        except Exception as e:
            logger.warning("Unexpected snapshot error for %s: %s", token, e, exc_info=True)
            return None

        self._snapshot_cache[key] = (snapshot, self._now())
        return snapshot

    def get_price_series(
        self, token: str, start: datetime, end: datetime
    ) -> list[PricePoint]:
        """Fetch a price series, or an empty list when unavailable."""
        key = (token, start, end)
        hit, value = self._cached(self._series_cache, key)
        if hit:
            return list(value)

        provider = self.price_history_provider
        if not self._is_available(provider):
            logger.debug("Price history provider %s not configured, skipping", provider.provider_name)
            return []

        try:
            series = list(provider.get_price_series(token, start, end))
        except LookupTimeout as e:
            logger.warning("Price history timed out for %s: %s", token, e)
            return []
        except ProviderError as e:
            logger.warning("Price history failed for %s (%s): %s", token, e.provider_name, e)
            return []
        except Exception as e:
            logger.warning("Unexpected price history error for %s: %s", token, e, exc_info=True)
            return []

        self._series_cache[key] = (series, self._now())
        return list(series)

    def clear_cache(self) -> None:
        """Drop all cached lookups."""
        self._snapshot_cache.clear()
        self._series_cache.clear()

    def close(self) -> None:
        """Close the BirdeyeClient this service created, if any.

        Injected providers belong to the caller and are left open.
        """
        client = self._owned_client
        if client is None:
            return
        client.close()
        self._owned_client = None
        if self._snapshot_provider is client:
            self._snapshot_provider = None
        if self._price_history_provider is client:
            self._price_history_provider = None
        self.clear_cache()
