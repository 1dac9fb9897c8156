"""
Pricing source selection.
"""
from typing import Optional
import logging

from stackcost.core.config import config, PRICING_SOURCES
from stackcost.pricing.pricing_source import PricingSource


logger = logging.getLogger(__name__)


def create_pricing_client(source: Optional[str] = None) -> PricingSource:
    """
    Create the configured pricing source.

    Args:
        source: "bulk", "api" or "mock" (defaults to PRICING_SOURCE)

    Returns:
        PricingSource instance

    Raises:
        ValueError: If the source name is unknown
    """
    source = (source or config.PRICING_SOURCE).lower()

    if source == "bulk":
        from stackcost.pricing.aws_bulk_pricing import create_bulk_pricing_client
        client = create_bulk_pricing_client()
    elif source == "api":
        from stackcost.pricing.aws_pricing_client import AWSPricingClient
        client = AWSPricingClient()
    elif source == "mock":
        from stackcost.pricing.mock_pricing import MockPricingClient
        client = MockPricingClient()
    else:
        raise ValueError(f"Unknown pricing source '{source}' (expected one of {', '.join(PRICING_SOURCES)})")

    logger.info(f"Using {client.name} pricing source")
    return client
