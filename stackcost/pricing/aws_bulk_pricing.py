"""
AWS Bulk Pricing Client.
Prices queries against AWS Price List bulk offer files.

Offer files are fetched per (service, region) from the public offer endpoint:

    {base_url}/{service}/current/{region}/index.json

or read from a local directory of pre-synced files when one is configured:

    offers/
        AmazonEC2/
            us-east-1.json.gz
            eu-west-1.json
        AmazonRDS/
            ...

Parsed offers are kept in memory for the life of the client.
"""
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import asyncio
import gzip
import json
import logging

import httpx

from stackcost.core.config import config
from stackcost.domain.pricing_models import PriceQuery, PriceResult
from stackcost.pricing.offer_matching import find_offer_price
from stackcost.pricing.pricing_source import PricingSource, PricingError, PricingNotFoundError
from stackcost.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError, get_circuit_breaker


logger = logging.getLogger(__name__)


class AWSBulkPricingClient(PricingSource):
    """Pricing source reading AWS bulk offer files over HTTP or from disk."""

    name = "aws_bulk_pricing"

    def __init__(
        self,
        base_url: Optional[str] = None,
        offers_dir: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        """
        Args:
            base_url: Offer endpoint root (defaults to PRICING_OFFERS_BASE_URL)
            offers_dir: Local offer directory; when set, nothing is downloaded
            timeout: Download timeout in seconds (defaults to PRICING_HTTP_TIMEOUT_SECONDS)
            transport: httpx transport override, used by tests
            circuit_breaker: Breaker guarding downloads (defaults to the shared one)

        Raises:
            PricingError: If offers_dir is given but does not exist
        """
        self.base_url = (base_url or config.PRICING_OFFERS_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.PRICING_HTTP_TIMEOUT_SECONDS
        self._transport = transport
        self.circuit_breaker = circuit_breaker or get_circuit_breaker(self.name)

        self.offers_dir = Path(offers_dir) if offers_dir else None
        if self.offers_dir is not None and not self.offers_dir.is_dir():
            raise PricingError(f"Offer directory not found: {self.offers_dir}")

        # (service, region) -> parsed offer document
        self._offer_cache: Dict[Tuple[str, str], Dict[str, Any]] = {}
        # One loader per (service, region) so concurrent lookups share a download
        self._offer_locks: Dict[Tuple[str, str], asyncio.Lock] = {}

    def offer_url(self, service_code: str, region_code: str) -> str:
        return f"{self.base_url}/{service_code}/current/{region_code}/index.json"

    async def get_price(self, query: PriceQuery) -> PriceResult:
        offer = await self._load_offer(query.service, query.region)

        match = find_offer_price(offer, query)
        if match is None:
            raise PricingNotFoundError(query)

        logger.debug(
            f"Bulk price for {query.service}/{query.product_family} in {query.region}: "
            f"{match.unit_price} per {match.unit} (SKU {match.sku})"
        )
        return PriceResult(query=query, sku=match.sku, unit_price=match.unit_price, unit=match.unit)

    def get_offer_publication_date(self, service_code: str, region_code: str) -> Optional[str]:
        """Publication date of an already loaded offer file."""
        offer = self._offer_cache.get((service_code, region_code))
        return offer.get("publicationDate") if offer else None

    async def _load_offer(self, service_code: str, region_code: str) -> Dict[str, Any]:
        key = (service_code, region_code)
        if key in self._offer_cache:
            return self._offer_cache[key]

        lock = self._offer_locks.setdefault(key, asyncio.Lock())
        async with lock:
            if key not in self._offer_cache:
                if self.offers_dir is not None:
                    offer = await asyncio.to_thread(self._read_local_offer, service_code, region_code)
                else:
                    offer = await self._download_offer(service_code, region_code)
                self._offer_cache[key] = offer
        return self._offer_cache[key]

    def _read_local_offer(self, service_code: str, region_code: str) -> Dict[str, Any]:
        """
        Read {offers_dir}/{service}/{region}.json.gz, falling back to .json.

        Raises:
            PricingError: If the file is missing or unreadable
        """
        service_dir = self.offers_dir / service_code
        path = service_dir / f"{region_code}.json.gz"
        if not path.exists():
            path = service_dir / f"{region_code}.json"
            if not path.exists():
                raise PricingError(f"Offer file not found for {service_code}/{region_code} in {self.offers_dir}")

        try:
            if path.suffix == ".gz":
                with gzip.open(path, "rt", encoding="utf-8") as handle:
                    offer = json.load(handle)
            else:
                with open(path, "r", encoding="utf-8") as handle:
                    offer = json.load(handle)
        except (OSError, EOFError, json.JSONDecodeError) as error:
            logger.error(f"Error loading offer file {path}: {error}")
            raise PricingError(f"Failed to read offer file {path}: {error}") from error

        return self._validate_offer(offer, str(path))

    async def _download_offer(self, service_code: str, region_code: str) -> Dict[str, Any]:
        """
        Download and parse a regional offer file.

        Raises:
            PricingError: On open circuit, timeout, HTTP error or malformed body
        """
        try:
            self.circuit_breaker.check()
        except CircuitBreakerOpenError as error:
            raise PricingError(str(error)) from error

        url = self.offer_url(service_code, region_code)
        logger.info(f"Downloading offer file {url}")

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.get(url)
                response.raise_for_status()
                offer = response.json()

        except httpx.HTTPStatusError as error:
            status = error.response.status_code
            if status in (403, 404):
                # Unknown service/region is an answer, not an outage
                self.circuit_breaker.record_success()
                raise PricingError(f"No offer file for {service_code}/{region_code} (status: {status})") from error
            self.circuit_breaker.record_failure()
            raise PricingError(f"Offer download failed for {service_code}/{region_code} (status: {status})") from error

        except httpx.TimeoutException as error:
            self.circuit_breaker.record_failure()
            raise PricingError(f"Offer download timed out after {self.timeout}s: {url}") from error

        except httpx.RequestError as error:
            self.circuit_breaker.record_failure()
            raise PricingError(f"Failed to download offer file {url}: {error}") from error

        except ValueError as error:
            self.circuit_breaker.record_failure()
            raise PricingError(f"Malformed offer file {url}: {error}") from error

        self.circuit_breaker.record_success()
        return self._validate_offer(offer, url)

    @staticmethod
    def _validate_offer(offer: Any, source: str) -> Dict[str, Any]:
        if not isinstance(offer, dict) or not isinstance(offer.get("products"), dict):
            raise PricingError(f"Malformed offer file {source}: missing 'products'")
        return offer


def create_bulk_pricing_client(
    offers_dir: Optional[str] = None,
    base_url: Optional[str] = None
) -> AWSBulkPricingClient:
    """
    Create a bulk pricing client from configuration.

    Args:
        offers_dir: Local offer directory (defaults to PRICING_OFFERS_DIR; empty means download)
        base_url: Offer endpoint root (defaults to PRICING_OFFERS_BASE_URL)
    """
    return AWSBulkPricingClient(
        base_url=base_url,
        offers_dir=offers_dir if offers_dir is not None else (config.PRICING_OFFERS_DIR or None),
    )
