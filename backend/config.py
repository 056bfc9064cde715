"""Application configuration using pydantic-settings."""

from decimal import Decimal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite:///./positions.db"

    # Lot matching. Quantities below DUST_EPSILON are treated as zero by the
    # matcher, the enricher and the position store alike.
    DUST_EPSILON: Decimal = Decimal("0.000001")

    # Market data lookups (Birdeye)
    BIRDEYE_API_KEY: str = ""
    BIRDEYE_BASE_URL: str = "https://public-api.birdeye.so"
    LOOKUP_TIMEOUT_SECONDS: float = 10.0
    MARKET_DATA_CACHE_TTL_SECONDS: int = 300

    # Recompute jobs
    SCOPE_TIMEOUT_SECONDS: float = 120.0
    BATCH_DELAY_SECONDS: float = 1.0

    # App settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    @field_validator("DUST_EPSILON", mode="after")
    @classmethod
    def validate_dust_epsilon(cls, v: Decimal) -> Decimal:
        """Reject negative or non-finite dust thresholds."""
        if not v.is_finite() or v < 0:
            raise ValueError(f"DUST_EPSILON must be a finite non-negative number, got {v!r}")
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize LOG_LEVEL to an uppercase Python logging level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {valid}, got {v!r}")
        return v.upper()


settings = Settings()
