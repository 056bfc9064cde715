"""Birdeye market data provider for Solana tokens."""

import logging
import time as time_module
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from config import settings
from integrations.exceptions import (
    LookupTimeout,
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDataError,
)
from integrations.market_data_protocol import MarketSnapshot, PricePoint

logger = logging.getLogger(__name__)

# Max retries for rate-limited requests
_MAX_RETRIES = 3
_BASE_DELAY_SECONDS = 1.0

# token_overview only describes the current market, so it is used for
# timestamps within this window of "now" and ignored otherwise.
_SNAPSHOT_MAX_SKEW = timedelta(minutes=10)
# Unix timestamps above this are in milliseconds (1e11 s is past the year 5000).
_MILLISECOND_THRESHOLD = 100_000_000_000

# history_price candle size by requested window length
_INTERVALS = (
    (timedelta(hours=6), "1m"),
    (timedelta(days=2), "5m"),
    (timedelta(days=14), "1H"),
)
_LONGEST_INTERVAL = "1D"


def _to_decimal(value: Any) -> Decimal | None:
    """Convert a JSON number to Decimal, returning None for missing/bad values."""
    if value is None:
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def _parse_created_at(overview: dict) -> datetime | None:
    """Extract the token creation time from an overview payload.

    Birdeye has returned this as unix seconds, unix milliseconds or ISO
    strings under several keys depending on the token's origin. Values
    that don't convert are skipped.
    """
    for key in ("createdAt", "created_at", "firstSeenAt", "first_seen_at"):
        raw = overview.get(key)
        if raw is None or isinstance(raw, bool):
            continue
        if isinstance(raw, (int, float)):
            seconds = raw / 1000 if abs(raw) >= _MILLISECOND_THRESHOLD else raw
            try:
                return datetime.fromtimestamp(seconds, tz=timezone.utc)
            except (ValueError, OverflowError, OSError):
                logger.debug("Unusable %s timestamp in overview: %r", key, raw)
                continue
        try:
            parsed = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
        except ValueError:
            continue
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def _interval_for(start: datetime, end: datetime) -> str:
    span = end - start
    for limit, interval in _INTERVALS:
        if span <= limit:
            return interval
    return _LONGEST_INTERVAL


class BirdeyeClient:
    """Market data provider using the Birdeye public API.

    Implements both MarketSnapshotProvider and PriceHistoryProvider.
    Birdeye quotes prices in USD, so price series from this client match
    trades valued in USD.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        """Initialize with optional overrides for settings.

        Args:
            api_key: Birdeye API key (defaults to settings.BIRDEYE_API_KEY).
            base_url: API base URL (defaults to settings.BIRDEYE_BASE_URL).
            timeout_seconds: Per-request timeout (defaults to
                             settings.LOOKUP_TIMEOUT_SECONDS).
        """
        self._api_key = api_key if api_key is not None else settings.BIRDEYE_API_KEY
        self._timeout = (
            timeout_seconds if timeout_seconds is not None else settings.LOOKUP_TIMEOUT_SECONDS
        )
        self._client = httpx.Client(
            base_url=base_url or settings.BIRDEYE_BASE_URL,
            headers={"X-API-KEY": self._api_key, "x-chain": "solana"},
            timeout=self._timeout,
        )

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    @property
    def provider_name(self) -> str:
        return "birdeye"

    def is_configured(self) -> bool:
        """Return True if an API key is available."""
        return bool(self._api_key)

    def _request_with_retry(self, path: str, params: dict) -> dict:
        """GET a Birdeye endpoint, retrying on 429, and return its ``data`` object.

        Raises:
            LookupTimeout: The request exceeded the configured timeout.
            ProviderConnectionError: The connection failed.
            ProviderAuthError: The API key was rejected.
            ProviderAPIError: Any other non-2xx response, or retries exhausted.
            ProviderDataError: The body was not a successful Birdeye envelope.
        """
        if not self.is_configured():
            raise ProviderAuthError("Birdeye API key not configured", provider_name="birdeye")

        for attempt in range(_MAX_RETRIES):
            try:
                response = self._client.get(path, params=params)
                response.raise_for_status()
            except httpx.TimeoutException as exc:
                raise LookupTimeout(
                    f"Birdeye request to {path} timed out after {self._timeout}s",
                    provider_name="birdeye",
                    timeout_seconds=self._timeout,
                ) from exc
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if status == 429 and attempt < _MAX_RETRIES - 1:
                    delay = _BASE_DELAY_SECONDS * (2 ** attempt)
                    logger.warning(
                        "Birdeye: rate limited, retrying in %.1fs (attempt %d/%d)",
                        delay, attempt + 1, _MAX_RETRIES,
                    )
                    time_module.sleep(delay)
                    continue
                if status in (401, 403):
                    raise ProviderAuthError(
                        f"Birdeye authentication failed (HTTP {status})",
                        provider_name="birdeye",
                    ) from exc
                raise ProviderAPIError(
                    f"Birdeye API error (HTTP {status})",
                    provider_name="birdeye",
                    status_code=status,
                ) from exc
            except httpx.TransportError as exc:
                raise ProviderConnectionError(
                    f"Birdeye connection failed: {exc}",
                    provider_name="birdeye",
                ) from exc

            try:
                body = response.json()
            except ValueError as exc:
                raise ProviderDataError(
                    f"Birdeye returned non-JSON body for {path}", provider_name="birdeye"
                ) from exc
            if not isinstance(body, dict) or not body.get("success") or body.get("data") is None:
                message = body.get("message") if isinstance(body, dict) else None
                raise ProviderDataError(
                    f"Birdeye returned success=false for {path}: {message or 'unknown error'}",
                    provider_name="birdeye",
                )
            return body["data"]

        raise ProviderAPIError(
            "Birdeye: max retries exceeded", provider_name="birdeye", status_code=429
        )

    def get_snapshot(self, token: str, timestamp: datetime) -> MarketSnapshot | None:
        """Fetch market cap, liquidity and 24h volume for a token.

        Returns None when ``timestamp`` is too far from now for the
        current overview to describe it.
        """
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        now = datetime.now(timezone.utc)
        if abs(now - timestamp) > _SNAPSHOT_MAX_SKEW:
            logger.debug(
                "Birdeye: no historical overview for %s at %s", token[:8], timestamp.isoformat()
            )
            return None

        overview = self._request_with_retry("/defi/token_overview", {"address": token})
        market_cap = overview.get("marketCap", overview.get("mc"))
        volume = overview.get("v24hUSD", overview.get("volume_24h_usd"))

        return MarketSnapshot(
            token=token,
            observed_at=now,
            market_cap=_to_decimal(market_cap),
            liquidity=_to_decimal(overview.get("liquidity")),
            volume_24h=_to_decimal(volume),
            token_created_at=_parse_created_at(overview),
            source="birdeye",
        )

    def get_price_series(
        self, token: str, start: datetime, end: datetime
    ) -> list[PricePoint]:
        """Fetch historical spot prices between start and end.

        The candle size grows with the window so long holds stay within a
        single request.
        """
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        if end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)
        if end < start:
            return []

        data = self._request_with_retry(
            "/defi/history_price",
            {
                "address": token,
                "address_type": "token",
                "type": _interval_for(start, end),
                "time_from": str(int(start.timestamp())),
                "time_to": str(int(end.timestamp())),
            },
        )

        items = data.get("items") or []
        points: list[PricePoint] = []
        for item in items:
            unix_time = item.get("unixTime")
            price = _to_decimal(item.get("value"))
            if unix_time is None or price is None or price <= 0:
                continue
            points.append(
                PricePoint(
                    timestamp=datetime.fromtimestamp(unix_time, tz=timezone.utc),
                    price=price,
                )
            )

        points.sort(key=lambda p: p.timestamp)
        logger.debug(
            "Birdeye: %d price samples for %s (%s to %s)",
            len(points), token[:8], start.isoformat(), end.isoformat(),
        )
        return points
