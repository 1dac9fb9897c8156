"""
Pricing source contract shared by every price feed.

A source resolves one PriceQuery to one PriceResult. A query that matches no
product is a PricingNotFoundError, never a zero price.
"""
from abc import ABC, abstractmethod
from typing import Iterable, List
import logging

from stackcost.domain.pricing_models import PriceQuery, PriceResult


logger = logging.getLogger(__name__)


class PricingError(Exception):
    """Raised when a price cannot be resolved (transport, timeout, malformed data)."""
    pass


class PricingNotFoundError(PricingError):
    """Raised when no product matches a price query."""

    def __init__(self, query: PriceQuery, detail: str = ""):
        message = f"no {query.service} product '{query.product_family}' in {query.region}"
        if query.attributes:
            filters = ", ".join(f"{key}={value}" for key, value in query.sorted_attributes().items())
            message = f"{message} matching {filters}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.query = query


class PricingSource(ABC):
    """Base class for price feeds."""

    name = "pricing"

    @abstractmethod
    async def get_price(self, query: PriceQuery) -> PriceResult:
        """
        Resolve a single query.

        Raises:
            PricingNotFoundError: If no product matches
            PricingError: If the source fails
        """

    async def get_prices(self, queries: Iterable[PriceQuery]) -> List[PriceResult]:
        """
        Resolve several queries, skipping the ones that fail.

        Returns:
            Results for the queries that succeeded, in query order

        Raises:
            PricingError: If none of the queries could be resolved
        """
        queries = list(queries)
        results: List[PriceResult] = []
        last_error = None

        for query in queries:
            try:
                results.append(await self.get_price(query))
            except PricingError as error:
                logger.warning(f"{self.name}: skipping {query.service}/{query.product_family}: {error}")
                last_error = error

        if queries and not results:
            raise PricingError(f"no prices resolved for {len(queries)} queries: {last_error}") from last_error
        return results
