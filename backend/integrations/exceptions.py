"""Typed exception hierarchy for market data provider errors.

Lets the enrichment layer tell a timed-out lookup apart from a rejected
API key or a malformed payload. All of them degrade enrichment fields to
null; only the log level and message differ.
"""


class ProviderError(Exception):
    """Base exception for all market data provider errors.

    Carries the provider name so callers can identify which provider failed.
    """

    def __init__(self, message: str, provider_name: str = ""):
        self.provider_name = provider_name
        super().__init__(message)


class ProviderAuthError(ProviderError):
    """API key missing, expired, or rejected (HTTP 401/403)."""

    pass


class ProviderConnectionError(ProviderError):
    """Network failures such as DNS resolution or connection refused.

    Retriable by default.
    """

    def __init__(self, message: str, provider_name: str = "", retriable: bool = True):
        self.retriable = retriable
        super().__init__(message, provider_name)


class LookupTimeout(ProviderConnectionError):
    """A snapshot or price-history lookup exceeded its timeout."""

    def __init__(self, message: str, provider_name: str = "", timeout_seconds: float | None = None):
        self.timeout_seconds = timeout_seconds
        super().__init__(message, provider_name, retriable=True)


class ProviderAPIError(ProviderError):
    """HTTP 4xx/5xx responses from the provider API."""

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, provider_name)

    @property
    def retriable(self) -> bool:
        """429 (rate limit) and 5xx errors are generally retriable."""
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500


class ProviderDataError(ProviderError):
    """Malformed or unparseable response from the provider."""

    pass
