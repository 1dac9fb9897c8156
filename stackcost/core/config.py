"""
Configuration module for loading environment variables.
All tunables for pricing, caching and analysis are read from the environment.
"""
import os
from pathlib import Path


PRICING_SOURCES = ("bulk", "api", "mock")


class Config:
    """Application configuration loaded from environment variables."""

    # Pricing source: "bulk" (AWS offer files), "api" (Price List query API) or "mock"
    PRICING_SOURCE: str = os.getenv("PRICING_SOURCE", "bulk").lower()

    # AWS Price List endpoints
    AWS_PRICING_REGION: str = os.getenv("AWS_PRICING_REGION", "us-east-1")
    PRICING_OFFERS_BASE_URL: str = os.getenv(
        "PRICING_OFFERS_BASE_URL",
        "https://pricing.us-east-1.amazonaws.com/offers/v1.0/aws"
    ).rstrip("/")
    PRICING_OFFERS_DIR: str = os.getenv("PRICING_OFFERS_DIR", "")  # Optional pre-synced offer files
    PRICING_HTTP_TIMEOUT_SECONDS: float = float(os.getenv("PRICING_HTTP_TIMEOUT_SECONDS", "30"))

    # Price cache configuration
    PRICING_CACHE_DIR: str = os.getenv(
        "PRICING_CACHE_DIR",
        str(Path.home() / ".aws-bootstrap" / "pricing-cache")
    )
    PRICING_CACHE_TTL_SECONDS: int = int(os.getenv("PRICING_CACHE_TTL_SECONDS", str(7 * 24 * 3600)))  # 7 days

    # Analysis defaults
    DEFAULT_REGION: str = os.getenv("DEFAULT_REGION", "us-east-1")
    DEFAULT_USAGE_PROFILE: str = os.getenv("DEFAULT_USAGE_PROFILE", "light")
    ANALYSIS_MAX_CONCURRENCY: int = int(os.getenv("ANALYSIS_MAX_CONCURRENCY", "8"))
    HOURS_PER_MONTH: int = 730  # Standard assumption: 24/7 operation

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @classmethod
    def validate(cls) -> None:
        """
        Validates that configuration values are usable.

        Raises:
            ValueError: If any configuration value is missing or invalid.
        """
        if cls.PRICING_SOURCE not in PRICING_SOURCES:
            raise ValueError(
                f"PRICING_SOURCE must be one of {', '.join(PRICING_SOURCES)} (got: {cls.PRICING_SOURCE})"
            )
        if not cls.PRICING_OFFERS_BASE_URL.startswith(("http://", "https://")):
            raise ValueError(
                f"PRICING_OFFERS_BASE_URL must be a valid URL (got: {cls.PRICING_OFFERS_BASE_URL})"
            )
        if cls.PRICING_CACHE_TTL_SECONDS <= 0:
            raise ValueError("PRICING_CACHE_TTL_SECONDS must be positive")
        if cls.PRICING_HTTP_TIMEOUT_SECONDS <= 0:
            raise ValueError("PRICING_HTTP_TIMEOUT_SECONDS must be positive")
        if cls.ANALYSIS_MAX_CONCURRENCY < 1:
            raise ValueError("ANALYSIS_MAX_CONCURRENCY must be at least 1")
        if not cls.DEFAULT_REGION:
            raise ValueError("DEFAULT_REGION is required")


config = Config()
