"""
Domain models for price lookups.
Defines the canonical price query and the priced result returned by pricing sources.
"""
from typing import Dict, Any, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
import hashlib
import json


@dataclass(frozen=True)
class PriceQuery:
    """
    Canonical, hashable request for a unit price.

    Equality, hashing and the cache key ignore attribute order.
    """
    service: str  # AWS service code (e.g., "AmazonEC2")
    product_family: str  # e.g., "Compute Instance", "API Request"
    region: str  # e.g., "us-east-1"
    attributes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes or {})))

    def __hash__(self) -> int:
        return hash((self.service, self.product_family, self.region, frozenset(self.attributes.items())))

    def sorted_attributes(self) -> Dict[str, str]:
        """Attributes ordered by key."""
        return {key: self.attributes[key] for key in sorted(self.attributes)}

    def cache_key(self) -> str:
        """
        Deterministic, filename-safe key for this query.

        Returns:
            SHA-256 hex digest over service, product family, region and sorted attributes
        """
        parts = [self.service, self.product_family, self.region]
        parts.extend(f"{key}={value}" for key, value in self.sorted_attributes().items())
        return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "service": self.service,
            "product_family": self.product_family,
            "region": self.region,
            "attributes": self.sorted_attributes(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PriceQuery":
        """Build a query from its serialized form."""
        return cls(
            service=data["service"],
            product_family=data.get("product_family", ""),
            region=data.get("region", ""),
            attributes=data.get("attributes") or {},
        )


@dataclass(frozen=True)
class PriceResult:
    """Unit price resolved for a query, with provenance for cache debugging."""
    query: PriceQuery
    sku: str
    unit_price: float
    unit: str  # e.g., "Hrs", "GB-Mo", "Requests"
    currency: str = "USD"
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    from_cache: bool = False

    def as_cached(self) -> "PriceResult":
        """Copy of this result flagged as served from cache."""
        return replace(self, from_cache=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "query": self.query.to_dict(),
            "sku": self.sku,
            "unit_price": self.unit_price,
            "unit": self.unit,
            "currency": self.currency,
            "fetched_at": self.fetched_at.isoformat(),
            "from_cache": self.from_cache,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PriceResult":
        """
        Build a result from its serialized form.

        Raises:
            KeyError, ValueError, TypeError: If the data is malformed
        """
        return cls(
            query=PriceQuery.from_dict(data["query"]),
            sku=data["sku"],
            unit_price=float(data["unit_price"]),
            unit=data.get("unit", ""),
            currency=data.get("currency", "USD"),
            fetched_at=datetime.fromisoformat(data["fetched_at"]),
            from_cache=bool(data.get("from_cache", False)),
        )
