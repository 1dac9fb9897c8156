"""
Domain models for template analysis.
Defines usage profiles, parsed resources, usage estimates and the analysis result.
"""
from typing import List, Dict, Any, Mapping, Optional, Union
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
import logging


logger = logging.getLogger(__name__)


class UsageProfile(Enum):
    """Coarse growth stage used to scale estimated usage."""
    MINIMAL = "minimal"    # POC/testing
    LIGHT = "light"        # Small team / development
    MODERATE = "moderate"  # Growing production
    HEAVY = "heavy"        # Full-scale production

    @property
    def multiplier(self) -> float:
        """Utilization multiplier bound to this profile."""
        return USAGE_MULTIPLIERS[self]

    @classmethod
    def parse(cls, value: Union["UsageProfile", str, None]) -> "UsageProfile":
        """
        Resolve a profile from user input.

        Unknown or missing values fail closed to LIGHT.

        Args:
            value: Profile enum member or its name/value

        Returns:
            UsageProfile member
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for profile in cls:
                if profile.value == normalized:
                    return profile
        logger.warning(f"Unknown usage profile {value!r}, falling back to '{cls.LIGHT.value}'")
        return cls.LIGHT


USAGE_MULTIPLIERS: Dict[UsageProfile, float] = {
    UsageProfile.MINIMAL: 0.10,
    UsageProfile.LIGHT: 0.30,
    UsageProfile.MODERATE: 0.60,
    UsageProfile.HEAVY: 1.00,
}


def _freeze(mapping: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class Resource:
    """One infrastructure unit declared in a template."""
    type: str  # e.g., "AWS::EC2::Instance"
    logical_id: str  # e.g., "WebServer"
    properties: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "properties", _freeze(self.properties))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "type": self.type,
            "logical_id": self.logical_id,
            "properties": dict(self.properties),
        }


@dataclass(frozen=True)
class ResourceUsage:
    """
    Estimated monthly usage for one resource.

    Only the fields matching the resource's billing basis are populated;
    the rest keep their zero value.
    """
    resource_type: str
    logical_id: str
    service_name: str  # e.g., "ec2", "rds", "s3"
    instance_type: str = ""
    quantity: float = 0.0
    monthly_hours: float = 0.0
    storage_gb: float = 0.0
    requests_per_month: float = 0.0
    utilization_factor: float = 1.0  # Provenance only, profile is baked into the numbers above
    options: Mapping[str, str] = field(default_factory=dict)  # Pricing variants, e.g. engine

    def __post_init__(self):
        object.__setattr__(self, "options", _freeze(self.options))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "resource_type": self.resource_type,
            "logical_id": self.logical_id,
            "service_name": self.service_name,
            "instance_type": self.instance_type,
            "quantity": self.quantity,
            "monthly_hours": self.monthly_hours,
            "storage_gb": self.storage_gb,
            "requests_per_month": self.requests_per_month,
            "utilization_factor": self.utilization_factor,
            "options": dict(self.options),
        }


@dataclass
class TemplateAnalysis:
    """Result of analyzing a template (or the bootstrap baseline)."""
    usage_profile: UsageProfile
    region: str
    resources: List[Resource] = field(default_factory=list)
    usage_estimates: List[ResourceUsage] = field(default_factory=list)
    estimated_cost: float = 0.0
    by_service: Dict[str, float] = field(default_factory=dict)
    by_resource: Dict[str, float] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    cache_hits: int = 0
    cache_misses: int = 0
    currency: str = "USD"
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def add_cost(self, usage: ResourceUsage, monthly_cost: float) -> None:
        """Add a successfully priced resource to every cost figure."""
        self.estimated_cost += monthly_cost
        self.by_service[usage.service_name] = self.by_service.get(usage.service_name, 0.0) + monthly_cost
        self.by_resource[usage.logical_id] = self.by_resource.get(usage.logical_id, 0.0) + monthly_cost

    def add_error(self, logical_id: str, reason: Any) -> None:
        """Record a resource that could not be priced."""
        self.errors.append(f"Failed to price {logical_id}: {reason}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        sorted_services = sorted(
            self.by_service.items(),
            key=lambda item: item[1],
            reverse=True
        )

        # Each figure is rounded on its own, so rounded parts need not add up to the rounded total
        return {
            "usage_profile": self.usage_profile.value,
            "region": self.region,
            "currency": self.currency,
            "estimated_monthly_cost": round(self.estimated_cost, 2),
            "by_service": {service: round(cost, 2) for service, cost in sorted_services},
            "by_resource": {logical_id: round(cost, 2) for logical_id, cost in self.by_resource.items()},
            "resources": [resource.to_dict() for resource in self.resources],
            "usage_estimates": [usage.to_dict() for usage in self.usage_estimates],
            "errors": list(self.errors),
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "generated_at": self.generated_at.isoformat(),
        }
