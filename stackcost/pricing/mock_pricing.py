"""
Mock pricing source.

Serves reference on-demand prices (us-east-1, rounded) from an in-memory offer
document, so estimates work offline and in tests. Prices are region-agnostic;
request-billed services are priced per million requests.
"""
from typing import Dict, List, Mapping, NamedTuple, Optional
import hashlib
import logging

from stackcost.domain.pricing_models import PriceQuery, PriceResult
from stackcost.pricing.offer_matching import find_offer_price
from stackcost.pricing.pricing_source import PricingSource, PricingNotFoundError


logger = logging.getLogger(__name__)


class MockProduct(NamedTuple):
    """One product row of the mock price table."""
    service: str
    product_family: str
    attributes: Mapping[str, str]
    unit_price: float
    unit: str


def _ec2_instance(instance_type: str, price: float) -> MockProduct:
    return MockProduct("AmazonEC2", "Compute Instance", {
        "instanceType": instance_type,
        "tenancy": "Shared",
        "operatingSystem": "Linux",
        "preInstalledSw": "NA",
        "capacitystatus": "Used",
    }, price, "Hrs")


def _rds_instances(instance_class: str, engine: str, single_az_price: float) -> List[MockProduct]:
    return [
        MockProduct("AmazonRDS", "Database Instance", {
            "instanceType": instance_class,
            "databaseEngine": engine,
            "deploymentOption": deployment,
        }, round(single_az_price * factor, 4), "Hrs")
        for deployment, factor in (("Single-AZ", 1), ("Multi-AZ", 2))
    ]


def _cache_nodes(node_type: str, price: float) -> List[MockProduct]:
    return [
        MockProduct("AmazonElastiCache", "Cache Instance", {
            "instanceType": node_type,
            "cacheEngine": engine,
        }, price, "Hrs")
        for engine in ("Redis", "Memcached", "Valkey")
    ]


def _default_products() -> List[MockProduct]:
    products: List[MockProduct] = [
        _ec2_instance(instance_type, price)
        for instance_type, price in (
            ("t3.nano", 0.0052), ("t3.micro", 0.0104), ("t3.small", 0.0208),
            ("t3.medium", 0.0416), ("t3.large", 0.0832), ("t3.xlarge", 0.1664),
            ("m5.large", 0.096), ("m5.xlarge", 0.192), ("c5.large", 0.085),
        )
    ]

    for engine, prices in (
        ("MySQL", (("db.t3.micro", 0.017), ("db.t3.small", 0.034), ("db.t3.medium", 0.068), ("db.t3.large", 0.136))),
        ("MariaDB", (("db.t3.micro", 0.017), ("db.t3.small", 0.034), ("db.t3.medium", 0.068))),
        ("PostgreSQL", (("db.t3.micro", 0.018), ("db.t3.small", 0.036), ("db.t3.medium", 0.072))),
    ):
        for instance_class, price in prices:
            products.extend(_rds_instances(instance_class, engine, price))

    for node_type, price in (("cache.t3.micro", 0.017), ("cache.t3.small", 0.034), ("cache.t3.medium", 0.068)):
        products.extend(_cache_nodes(node_type, price))

    products.extend([
        MockProduct("AmazonEC2", "NAT Gateway", {"usagetype": "NatGateway-Hours"}, 0.045, "Hrs"),
        MockProduct("AWSELB", "Load Balancer-Application", {"usagetype": "LoadBalancerUsage"}, 0.0225, "Hrs"),
        MockProduct("AWSELB", "Load Balancer-Network", {"usagetype": "LoadBalancerUsage"}, 0.0225, "Hrs"),
        MockProduct("AWSELB", "Load Balancer-Gateway", {"usagetype": "LoadBalancerUsage"}, 0.0125, "Hrs"),
        MockProduct("AmazonS3", "Storage", {"volumeType": "Standard"}, 0.023, "GB-Mo"),
        MockProduct("AWSLambda", "Serverless", {"group": "AWS-Lambda-Requests"}, 0.20, "Million Requests"),
        MockProduct("AmazonSNS", "API Request", {"usagetype": "Requests-Tier1"}, 0.50, "Million Requests"),
        MockProduct("AmazonSQS", "API Request", {"queueType": "Standard"}, 0.40, "Million Requests"),
        MockProduct("AmazonSQS", "API Request", {"queueType": "FIFO (first-in, first-out)"}, 0.50, "Million Requests"),
        MockProduct("AmazonDynamoDB", "Provisioned IOPS", {"group": "DDB-ReadUnits"}, 0.00013, "ReadCapacityUnit-Hrs"),
        MockProduct("AmazonDynamoDB", "Provisioned IOPS", {"group": "DDB-WriteUnits"}, 0.00065, "WriteCapacityUnit-Hrs"),
        MockProduct("AmazonCloudWatch", "Alarm", {"usagetype": "CW:AlarmMonitorUsage"}, 0.10, "Alarms"),
        MockProduct("awskms", "Encryption Key", {"usagetype": "KMS-Keys"}, 1.00, "Keys"),
        MockProduct("AWSSecretsManager", "Secret", {"usagetype": "AWSSecretsManager-Secrets"}, 0.40, "Secrets"),
    ])

    products.extend(
        MockProduct("AmazonEC2", "Storage", {"volumeApiName": volume_type}, price, "GB-Mo")
        for volume_type, price in (("gp3", 0.08), ("gp2", 0.10), ("io1", 0.125), ("st1", 0.045), ("sc1", 0.015))
    )
    return products


def _mock_sku(product: MockProduct) -> str:
    identity = "|".join(
        [product.service, product.product_family]
        + [f"{key}={product.attributes[key]}" for key in sorted(product.attributes)]
    )
    return "MOCK-" + hashlib.sha256(identity.encode("utf-8")).hexdigest()[:16].upper()


class MockPricingClient(PricingSource):
    """Pricing source backed by a fixed product table."""

    name = "mock_pricing"

    def __init__(self, products: Optional[List[MockProduct]] = None, include_defaults: bool = True):
        """
        Args:
            products: Extra products; a product with the same service, family and
                attributes as a default one replaces it
            include_defaults: Start from the reference price table
        """
        # service code -> offer document
        self._offers: Dict[str, Dict] = {}
        self.request_count = 0

        for product in (_default_products() if include_defaults else []):
            self.add_product(product)
        for product in products or []:
            self.add_product(product)

    def add_product(self, product: MockProduct) -> None:
        """Add or replace a product in the table."""
        sku = _mock_sku(product)
        offer = self._offers.setdefault(product.service, {"products": {}, "terms": {"OnDemand": {}}})
        offer["products"][sku] = {
            "sku": sku,
            "productFamily": product.product_family,
            "attributes": dict(product.attributes),
        }
        offer["terms"]["OnDemand"][sku] = {
            f"{sku}.JRTCKXETXF": {
                "priceDimensions": {
                    f"{sku}.JRTCKXETXF.6YS6EN2CT7": {
                        "unit": product.unit,
                        "beginRange": "0",
                        "pricePerUnit": {"USD": str(product.unit_price)},
                    }
                }
            }
        }

    async def get_price(self, query: PriceQuery) -> PriceResult:
        self.request_count += 1

        offer = self._offers.get(query.service)
        match = find_offer_price(offer, query) if offer else None
        if match is None:
            raise PricingNotFoundError(query, "mock price table")

        logger.debug(f"Mock price for {query.service}/{query.product_family}: {match.unit_price} per {match.unit}")
        return PriceResult(query=query, sku=match.sku, unit_price=match.unit_price, unit=match.unit)
