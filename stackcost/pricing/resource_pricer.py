"""
Resource pricer.

Turns a usage estimate into a monthly cost in three steps: map the resource to
one or more price queries, resolve each query (cache first, then the pricing
source), and apply the cost formula of the resource type's billing basis.
"""
from typing import Callable, Dict, Iterable, List, Optional, Tuple
import asyncio
import logging

from stackcost.domain.pricing_models import PriceQuery, PriceResult
from stackcost.domain.resource_types import (
    BillingBasis, get_resource_type_info,
    EC2_INSTANCE, EC2_VOLUME, EC2_NAT_GATEWAY, RDS_DB_INSTANCE, ELASTICACHE_CLUSTER,
    LOAD_BALANCER, S3_BUCKET, LAMBDA_FUNCTION, SNS_TOPIC, SQS_QUEUE, DYNAMODB_TABLE,
    CLOUDWATCH_ALARM, KMS_KEY, SECRETS_MANAGER_SECRET,
)
from stackcost.domain.template_models import ResourceUsage
from stackcost.pricing.price_cache import PriceCache
from stackcost.pricing.pricing_source import PricingSource, PricingError


logger = logging.getLogger(__name__)


class ResourcePricingError(PricingError):
    """Raised when a resource cannot be priced. Carries the resource's logical ID."""

    def __init__(self, logical_id: str, reason: str):
        super().__init__(reason)
        self.logical_id = logical_id
        self.reason = reason


class UnsupportedResourceTypeError(ResourcePricingError):
    """Raised for resource types with no price query mapping."""

    def __init__(self, logical_id: str, resource_type: str):
        super().__init__(logical_id, f"no price queries for resource type '{resource_type}'")
        self.resource_type = resource_type


# Template engine names -> Price List databaseEngine values
RDS_ENGINE_MAP: Dict[str, str] = {
    "mysql": "MySQL",
    "mariadb": "MariaDB",
    "postgres": "PostgreSQL",
    "postgresql": "PostgreSQL",
    "aurora": "Aurora MySQL",
    "aurora-mysql": "Aurora MySQL",
    "aurora-postgresql": "Aurora PostgreSQL",
}

CACHE_ENGINE_MAP: Dict[str, str] = {
    "redis": "Redis",
    "memcached": "Memcached",
    "valkey": "Valkey",
}

LOAD_BALANCER_FAMILIES: Dict[str, str] = {
    "application": "Load Balancer-Application",
    "network": "Load Balancer-Network",
    "gateway": "Load Balancer-Gateway",
}

SQS_QUEUE_TYPES: Dict[str, str] = {
    "standard": "Standard",
    "fifo": "FIFO (first-in, first-out)",
}

PER_MILLION = 1_000_000.0
PER_REQUEST_UNITS = frozenset(["request", "requests", "invocation", "invocations", "api calls"])


def normalize_rds_engine(engine: str) -> str:
    """e.g., "postgres" -> "PostgreSQL", "sqlserver-ex" -> "SQL Server"."""
    engine = (engine or "mysql").lower()
    if engine in RDS_ENGINE_MAP:
        return RDS_ENGINE_MAP[engine]
    if engine.startswith("oracle"):
        return "Oracle"
    if engine.startswith("sqlserver"):
        return "SQL Server"
    return engine


def request_granularity(unit: str) -> float:
    """
    Number of requests one unit price covers.

    Per-million units ("Million Requests", "1M requests") -> 1,000,000,
    per-request units ("Requests") -> 1, anything else is treated as per-million.
    """
    normalized = (unit or "").strip().lower()
    if "million" in normalized or normalized.startswith("1m"):
        return PER_MILLION
    if normalized in PER_REQUEST_UNITS:
        return 1.0
    return PER_MILLION


def calculate_cost(usage: ResourceUsage, result: PriceResult) -> float:
    """
    Monthly cost of a usage estimate at a unit price.

    Raises:
        UnsupportedResourceTypeError: If the resource type has no billing basis
    """
    info = get_resource_type_info(usage.resource_type)
    if info is None:
        raise UnsupportedResourceTypeError(usage.logical_id, usage.resource_type)

    basis = info.billing_basis
    if basis == BillingBasis.HOURLY:
        return result.unit_price * usage.monthly_hours * usage.quantity
    if basis == BillingBasis.STORAGE:
        return result.unit_price * usage.storage_gb
    if basis == BillingBasis.REQUESTS:
        return result.unit_price * usage.requests_per_month / request_granularity(result.unit)
    if basis == BillingBasis.PROVISIONED_CAPACITY:
        return result.unit_price * usage.quantity * usage.monthly_hours
    return result.unit_price * usage.quantity


class ResourcePricer:
    """Prices usage estimates through a cache and a pricing source."""

    def __init__(self, pricing_client: PricingSource, cache: Optional[PriceCache] = None):
        """
        Args:
            pricing_client: Source of unit prices
            cache: Optional price cache consulted before the source
        """
        self.pricing_client = pricing_client
        self.cache = cache

        self._query_builders: Dict[str, Callable[[ResourceUsage, str], List[PriceQuery]]] = {
            EC2_INSTANCE: self._ec2_instance_queries,
            EC2_VOLUME: self._ebs_volume_queries,
            EC2_NAT_GATEWAY: self._nat_gateway_queries,
            RDS_DB_INSTANCE: self._rds_instance_queries,
            ELASTICACHE_CLUSTER: self._cache_cluster_queries,
            LOAD_BALANCER: self._load_balancer_queries,
            S3_BUCKET: self._s3_bucket_queries,
            LAMBDA_FUNCTION: self._lambda_function_queries,
            SNS_TOPIC: self._sns_topic_queries,
            SQS_QUEUE: self._sqs_queue_queries,
            DYNAMODB_TABLE: self._dynamodb_table_queries,
            CLOUDWATCH_ALARM: self._cloudwatch_alarm_queries,
            KMS_KEY: self._kms_key_queries,
            SECRETS_MANAGER_SECRET: self._secret_queries,
        }

    def build_price_queries(self, usage: ResourceUsage, region: str) -> List[PriceQuery]:
        """
        Map a usage estimate to its price queries.

        Raises:
            UnsupportedResourceTypeError: If the resource type has no mapping
        """
        builder = self._query_builders.get(usage.resource_type)
        if builder is None:
            raise UnsupportedResourceTypeError(usage.logical_id, usage.resource_type)
        return builder(usage, region)

    async def get_price(self, usage: ResourceUsage, region: str) -> float:
        """
        Monthly cost of a usage estimate in a region.

        Raises:
            ResourcePricingError: If any query cannot be resolved
        """
        cost, _results = await self.price_usage(usage, region)
        return cost

    async def price_usage(self, usage: ResourceUsage, region: str) -> Tuple[float, List[PriceResult]]:
        """
        Monthly cost plus the price results it was computed from.

        Raises:
            ResourcePricingError: If any query cannot be resolved
        """
        queries = self.build_price_queries(usage, region)

        results: List[PriceResult] = []
        cost = 0.0
        for query in queries:
            result = await self._resolve(usage, query)
            results.append(result)
            cost += calculate_cost(usage, result)

        return cost, results

    async def get_prices(self, usages: Iterable[ResourceUsage], region: str) -> Dict[str, float]:
        """
        Price several usage estimates, skipping the ones that fail.

        Returns:
            Monthly cost by logical ID for the estimates that were priced
        """
        prices: Dict[str, float] = {}
        for usage in usages:
            try:
                prices[usage.logical_id] = await self.get_price(usage, region)
            except PricingError as error:
                logger.warning(f"Skipping {usage.logical_id}: {error}")
        return prices

    def calculate_cost(self, usage: ResourceUsage, result: PriceResult) -> float:
        return calculate_cost(usage, result)

    async def _resolve(self, usage: ResourceUsage, query: PriceQuery) -> PriceResult:
        if self.cache is not None:
            cached = await asyncio.to_thread(self.cache.get, query)
            if cached is not None:
                return cached

        try:
            result = await self.pricing_client.get_price(query)
        except ResourcePricingError:
            raise
        except PricingError as error:
            logger.warning(f"Pricing failed for {usage.logical_id} ({usage.resource_type}): {error}")
            raise ResourcePricingError(usage.logical_id, str(error)) from error

        if self.cache is not None:
            await asyncio.to_thread(self.cache.set, query, result)
        return result

    # Query builders, one per resource type

    def _ec2_instance_queries(self, usage: ResourceUsage, region: str) -> List[PriceQuery]:
        return [PriceQuery("AmazonEC2", "Compute Instance", region, {
            "instanceType": usage.instance_type,
            "tenancy": "Shared",
            "operatingSystem": "Linux",
            "preInstalledSw": "NA",
            "capacitystatus": "Used",
        })]

    def _ebs_volume_queries(self, usage: ResourceUsage, region: str) -> List[PriceQuery]:
        return [PriceQuery("AmazonEC2", "Storage", region, {
            "volumeApiName": usage.options.get("volume_type", "gp3"),
        })]

    def _nat_gateway_queries(self, usage: ResourceUsage, region: str) -> List[PriceQuery]:
        return [PriceQuery("AmazonEC2", "NAT Gateway", region, {"usagetype": "NatGateway-Hours"})]

    def _rds_instance_queries(self, usage: ResourceUsage, region: str) -> List[PriceQuery]:
        return [PriceQuery("AmazonRDS", "Database Instance", region, {
            "instanceType": usage.instance_type,
            "databaseEngine": normalize_rds_engine(usage.options.get("engine", "mysql")),
            "deploymentOption": usage.options.get("deployment_option", "Single-AZ"),
        })]

    def _cache_cluster_queries(self, usage: ResourceUsage, region: str) -> List[PriceQuery]:
        engine = usage.options.get("cache_engine", "redis")
        return [PriceQuery("AmazonElastiCache", "Cache Instance", region, {
            "instanceType": usage.instance_type,
            "cacheEngine": CACHE_ENGINE_MAP.get(engine, engine),
        })]

    def _load_balancer_queries(self, usage: ResourceUsage, region: str) -> List[PriceQuery]:
        lb_type = usage.options.get("load_balancer_type", "application")
        family = LOAD_BALANCER_FAMILIES.get(lb_type, LOAD_BALANCER_FAMILIES["application"])
        return [PriceQuery("AWSELB", family, region, {"usagetype": "LoadBalancerUsage"})]

    def _s3_bucket_queries(self, usage: ResourceUsage, region: str) -> List[PriceQuery]:
        return [PriceQuery("AmazonS3", "Storage", region, {"volumeType": "Standard"})]

    def _lambda_function_queries(self, usage: ResourceUsage, region: str) -> List[PriceQuery]:
        return [PriceQuery("AWSLambda", "Serverless", region, {"group": "AWS-Lambda-Requests"})]

    def _sns_topic_queries(self, usage: ResourceUsage, region: str) -> List[PriceQuery]:
        return [PriceQuery("AmazonSNS", "API Request", region, {"usagetype": "Requests-Tier1"})]

    def _sqs_queue_queries(self, usage: ResourceUsage, region: str) -> List[PriceQuery]:
        queue_type = SQS_QUEUE_TYPES.get(usage.options.get("queue_type", "standard"), "Standard")
        return [PriceQuery("AmazonSQS", "API Request", region, {"queueType": queue_type})]

    def _dynamodb_table_queries(self, usage: ResourceUsage, region: str) -> List[PriceQuery]:
        # Read and write capacity are billed separately
        return [
            PriceQuery("AmazonDynamoDB", "Provisioned IOPS", region, {"group": "DDB-ReadUnits"}),
            PriceQuery("AmazonDynamoDB", "Provisioned IOPS", region, {"group": "DDB-WriteUnits"}),
        ]

    def _cloudwatch_alarm_queries(self, usage: ResourceUsage, region: str) -> List[PriceQuery]:
        return [PriceQuery("AmazonCloudWatch", "Alarm", region, {"usagetype": "CW:AlarmMonitorUsage"})]

    def _kms_key_queries(self, usage: ResourceUsage, region: str) -> List[PriceQuery]:
        return [PriceQuery("awskms", "Encryption Key", region, {"usagetype": "KMS-Keys"})]

    def _secret_queries(self, usage: ResourceUsage, region: str) -> List[PriceQuery]:
        return [PriceQuery("AWSSecretsManager", "Secret", region, {"usagetype": "AWSSecretsManager-Secrets"})]
