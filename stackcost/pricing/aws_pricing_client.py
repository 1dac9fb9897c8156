"""
AWS Pricing API client.
Uses boto3 to query the official AWS Price List query API.
"""
from typing import Any, Dict, List, Optional
import asyncio
import json
import logging

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from stackcost.core.config import config
from stackcost.domain.pricing_models import PriceQuery, PriceResult
from stackcost.pricing.aws_region_map import get_aws_pricing_location
from stackcost.pricing.offer_matching import find_offer_price
from stackcost.pricing.pricing_source import PricingSource, PricingError, PricingNotFoundError
from stackcost.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError, get_circuit_breaker


logger = logging.getLogger(__name__)


MAX_RESULTS_PER_PAGE = 100
MAX_PAGES = 5

# Region-prefixed in the Price List ("EU-NatGateway-Hours"), matched locally instead
LOCALLY_MATCHED_ATTRIBUTES = frozenset(["usagetype"])


class AWSPricingClient(PricingSource):
    """Pricing source backed by boto3 pricing.get_products."""

    name = "aws_pricing"

    def __init__(self, pricing_client=None, circuit_breaker: Optional[CircuitBreaker] = None):
        """
        Args:
            pricing_client: boto3 'pricing' client (created from config when omitted)
            circuit_breaker: Breaker guarding API calls (defaults to the shared one)
        """
        if pricing_client is None:
            boto_config = Config(
                connect_timeout=10,
                read_timeout=config.PRICING_HTTP_TIMEOUT_SECONDS,
                retries={"max_attempts": 0}  # Circuit breaker handles failures
            )
            pricing_client = boto3.client(
                "pricing",
                region_name=config.AWS_PRICING_REGION,
                config=boto_config
            )
        self.pricing_client = pricing_client
        self.circuit_breaker = circuit_breaker or get_circuit_breaker(self.name)

    def build_filters(self, query: PriceQuery, location: str) -> List[Dict[str, str]]:
        """TERM_MATCH filters for a query."""
        filters = [
            {"Type": "TERM_MATCH", "Field": "productFamily", "Value": query.product_family},
            {"Type": "TERM_MATCH", "Field": "location", "Value": location},
        ]
        for key, value in query.sorted_attributes().items():
            if key not in LOCALLY_MATCHED_ATTRIBUTES:
                filters.append({"Type": "TERM_MATCH", "Field": key, "Value": value})
        return filters

    async def get_price(self, query: PriceQuery) -> PriceResult:
        location = get_aws_pricing_location(query.region)
        if location is None:
            logger.warning(f"AWS region code '{query.region}' not found in region map")
            raise PricingNotFoundError(query, "unknown region")

        try:
            self.circuit_breaker.check()
        except CircuitBreakerOpenError as error:
            raise PricingError(str(error)) from error

        filters = self.build_filters(query, location)
        try:
            price_list = await asyncio.to_thread(self._fetch_price_list, query.service, filters)
            offer = self._to_offer(price_list)
        except ClientError as error:
            self.circuit_breaker.record_failure()
            logger.error(f"AWS pricing API error: {error}")
            raise PricingError(f"Failed to query AWS pricing: {error}") from error
        except (BotoCoreError, ValueError, KeyError, TypeError) as error:
            self.circuit_breaker.record_failure()
            logger.error(f"Error reading AWS pricing response: {error}")
            raise PricingError(f"Failed to parse AWS pricing response: {error}") from error

        # Not found is not a failure
        self.circuit_breaker.record_success()

        match = find_offer_price(offer, query)
        if match is None:
            raise PricingNotFoundError(query)
        return PriceResult(query=query, sku=match.sku, unit_price=match.unit_price, unit=match.unit)

    def _fetch_price_list(self, service_code: str, filters: List[Dict[str, str]]) -> List[str]:
        """Collect PriceList entries across a bounded number of pages."""
        price_list: List[str] = []
        request: Dict[str, Any] = {
            "ServiceCode": service_code,
            "Filters": filters,
            "FormatVersion": "aws_v1",
            "MaxResults": MAX_RESULTS_PER_PAGE,
        }

        for _page in range(MAX_PAGES):
            response = self.pricing_client.get_products(**request)
            price_list.extend(response.get("PriceList", []))
            next_token = response.get("NextToken")
            if not next_token:
                break
            request["NextToken"] = next_token

        return price_list

    @staticmethod
    def _to_offer(price_list: List[Any]) -> Dict[str, Any]:
        """Fold PriceList entries into a single offer document."""
        products: Dict[str, Any] = {}
        on_demand: Dict[str, Any] = {}

        for raw_entry in price_list:
            entry = json.loads(raw_entry) if isinstance(raw_entry, str) else raw_entry
            product = entry["product"]
            sku = product["sku"]
            products[sku] = product
            on_demand[sku] = entry.get("terms", {}).get("OnDemand", {})

        return {"products": products, "terms": {"OnDemand": on_demand}}
