"""
Product matching over AWS Price List offer documents.

Offer documents (bulk offer files, Price List API entries, the mock table) all
share one shape:

    {"products": {sku: {"productFamily": ..., "attributes": {...}}},
     "terms": {"OnDemand": {sku: {termCode: {"priceDimensions": {rateCode: {
         "unit": "Hrs", "beginRange": "0", "pricePerUnit": {"USD": "0.0416"}}}}}}}}
"""
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from stackcost.domain.pricing_models import PriceQuery
from stackcost.pricing.aws_region_map import get_aws_pricing_location


# Attributes whose casing differs between templates and offer files
CASE_INSENSITIVE_ATTRIBUTES = frozenset(["databaseengine", "operatingsystem", "cacheengine"])


class OfferMatch(NamedTuple):
    """Cheapest on-demand price found for a query."""
    sku: str
    unit_price: float
    unit: str


def attribute_matches(key: str, expected: str, actual: Optional[str]) -> bool:
    """
    Compare one query attribute with a product attribute.

    `usagetype` values are region-prefixed in offer files ("USE1-NatGateway-Hours"),
    so a query for "NatGateway-Hours" matches any region prefix.
    """
    if actual is None:
        return False
    if key.lower() in CASE_INSENSITIVE_ATTRIBUTES:
        return actual.lower() == expected.lower()
    if key == "usagetype":
        return actual == expected or actual.endswith(f"-{expected}")
    return actual == expected


def region_matches(attributes: Dict[str, str], region: str) -> bool:
    """Products without region attributes are region-agnostic."""
    if "regionCode" in attributes:
        return attributes["regionCode"] == region
    if "location" in attributes:
        return attributes["location"] == get_aws_pricing_location(region)
    return True


def product_matches(product: Dict[str, Any], query: PriceQuery) -> bool:
    if product.get("productFamily") != query.product_family:
        return False

    attributes = product.get("attributes") or {}
    if not region_matches(attributes, query.region):
        return False

    return all(
        attribute_matches(key, value, attributes.get(key))
        for key, value in query.attributes.items()
    )


def _capacity_priority(product: Dict[str, Any]) -> int:
    """Prefer standard "Used" capacity over capacity reservations."""
    capacity = (product.get("attributes") or {}).get("capacitystatus", "").lower()
    if capacity in ("used", ""):
        return 0
    if "unused" in capacity:
        return 1
    if "allocated" in capacity:
        return 2
    return 3


def first_billable_dimension(term_entries: Dict[str, Any]) -> Optional[Tuple[float, str]]:
    """
    First non-zero price dimension of a SKU's on-demand terms, by tier start.

    Free tiers (price 0) are skipped so estimates stay conservative.

    Returns:
        (unit price, unit), or None if the SKU has no billable dimension
    """
    dimensions: List[Tuple[float, float, str]] = []
    for term in term_entries.values():
        for dimension in (term.get("priceDimensions") or {}).values():
            raw_price = (dimension.get("pricePerUnit") or {}).get("USD")
            try:
                price = float(raw_price)
                begin = float(dimension.get("beginRange") or 0)
            except (TypeError, ValueError):
                continue
            dimensions.append((begin, price, dimension.get("unit", "")))

    for _begin, price, unit in sorted(dimensions, key=lambda item: item[0]):
        if price > 0:
            return price, unit
    return None


def find_offer_price(offer: Dict[str, Any], query: PriceQuery) -> Optional[OfferMatch]:
    """
    Find the cheapest on-demand price matching a query.

    Args:
        offer: Offer document (products + terms)
        query: Price query

    Returns:
        OfferMatch, or None if no product with a billable price matches
    """
    products = offer.get("products") or {}
    on_demand = (offer.get("terms") or {}).get("OnDemand") or {}

    candidates = [
        (sku, product) for sku, product in products.items()
        if product_matches(product, query)
    ]
    if not candidates:
        return None

    priced = []
    for sku, product in candidates:
        dimension = first_billable_dimension(on_demand.get(sku) or {})
        if dimension is not None:
            price, unit = dimension
            priced.append((_capacity_priority(product), price, sku, unit))

    if not priced:
        return None

    _priority, price, sku, unit = min(priced)
    return OfferMatch(sku=sku, unit_price=price, unit=unit)
