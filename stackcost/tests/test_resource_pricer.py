"""
Tests for price query mapping, cost formulas and cache use in the resource pricer.
"""
import threading

import pytest
from unittest.mock import AsyncMock, Mock

from stackcost.domain.pricing_models import PriceQuery, PriceResult
from stackcost.domain.resource_types import RESOURCE_TYPES
from stackcost.domain.template_models import Resource, ResourceUsage, UsageProfile
from stackcost.pricing.mock_pricing import MockPricingClient, MockProduct
from stackcost.pricing.price_cache import MemoryPriceCache
from stackcost.pricing.pricing_source import PricingError, PricingNotFoundError
from stackcost.pricing.resource_pricer import (
    ResourcePricer, ResourcePricingError, UnsupportedResourceTypeError,
    calculate_cost, normalize_rds_engine, request_granularity,
)
from stackcost.services.usage_estimator import UsageEstimator


REGION = "us-east-1"


def _usage(resource_type, profile=UsageProfile.LIGHT, **properties):
    return UsageEstimator().estimate_usage(Resource(resource_type, "Res", properties), profile)


def _result(unit_price, unit):
    return PriceResult(query=PriceQuery("svc", "family", REGION), sku="SKU", unit_price=unit_price, unit=unit)


@pytest.mark.parametrize("unit,expected", [
    ("Million Requests", 1_000_000.0),
    ("1M requests", 1_000_000.0),
    ("Requests", 1.0),
    ("Invocations", 1.0),
    ("Lambda-GB-Second", 1_000_000.0),
    ("", 1_000_000.0),
])
def test_request_granularity(unit, expected):
    assert request_granularity(unit) == expected


def test_request_cost_is_unit_aware():
    usage = _usage("AWS::Lambda::Function", UsageProfile.MODERATE)  # 1M invocations

    assert calculate_cost(usage, _result(0.20, "Million Requests")) == pytest.approx(0.20)
    assert calculate_cost(usage, _result(0.0000002, "Requests")) == pytest.approx(0.20)


def test_cost_formulas_by_billing_basis():
    assert calculate_cost(_usage("AWS::EC2::Instance"), _result(0.0416, "Hrs")) == pytest.approx(0.0416 * 219)
    assert calculate_cost(_usage("AWS::S3::Bucket"), _result(0.023, "GB-Mo")) == pytest.approx(0.23)
    assert calculate_cost(
        _usage("AWS::DynamoDB::Table"), _result(0.00013, "ReadCapacityUnit-Hrs")
    ) == pytest.approx(0.00013 * 10 * 730)
    assert calculate_cost(_usage("AWS::KMS::Key"), _result(1.0, "Keys")) == pytest.approx(1.0)


def test_zero_unpopulated_fields_never_affect_cost():
    usage = ResourceUsage(
        resource_type="AWS::S3::Bucket", logical_id="B", service_name="s3",
        storage_gb=10.0, utilization_factor=0.5,
    )
    assert calculate_cost(usage, _result(0.023, "GB-Mo")) == pytest.approx(0.23)


def test_engine_normalization():
    assert normalize_rds_engine("postgres") == "PostgreSQL"
    assert normalize_rds_engine("aurora-postgresql") == "Aurora PostgreSQL"
    assert normalize_rds_engine("sqlserver-ex") == "SQL Server"
    assert normalize_rds_engine("oracle-se2") == "Oracle"


def test_builds_ec2_query(pricer):
    queries = pricer.build_price_queries(_usage("AWS::EC2::Instance", InstanceType="m5.large"), REGION)

    assert len(queries) == 1
    assert queries[0].service == "AmazonEC2"
    assert queries[0].product_family == "Compute Instance"
    assert queries[0].attributes["instanceType"] == "m5.large"
    assert queries[0].attributes["capacitystatus"] == "Used"


def test_dynamodb_prices_read_and_write_capacity(pricer):
    queries = pricer.build_price_queries(_usage("AWS::DynamoDB::Table"), REGION)
    assert [query.attributes["group"] for query in queries] == ["DDB-ReadUnits", "DDB-WriteUnits"]


def test_unsupported_type_has_no_queries(pricer):
    usage = _usage("Custom::Widget")
    with pytest.raises(UnsupportedResourceTypeError, match="no price queries"):
        pricer.build_price_queries(usage, REGION)


@pytest.mark.asyncio
@pytest.mark.parametrize("resource_type", sorted(RESOURCE_TYPES))
async def test_mock_table_prices_every_catalogued_type(pricer, resource_type):
    cost = await pricer.get_price(_usage(resource_type), REGION)
    assert cost > 0


@pytest.mark.asyncio
async def test_reference_prices(pricer):
    assert await pricer.get_price(_usage("AWS::EC2::Instance"), REGION) == pytest.approx(0.0416 * 219)
    assert await pricer.get_price(_usage("AWS::RDS::DBInstance"), REGION) == pytest.approx(0.034 * 730)
    assert await pricer.get_price(
        _usage("AWS::RDS::DBInstance", MultiAZ=True), REGION
    ) == pytest.approx(0.068 * 730)
    assert await pricer.get_price(_usage("AWS::SQS::Queue"), REGION) == pytest.approx(0.04)
    assert await pricer.get_price(_usage("AWS::DynamoDB::Table"), REGION) == pytest.approx((0.00013 + 0.00065) * 10 * 730)


@pytest.mark.asyncio
async def test_second_lookup_is_served_from_cache(pricer, mock_pricing_client):
    usage = _usage("AWS::EC2::Instance")

    first_cost, first_results = await pricer.price_usage(usage, REGION)
    second_cost, second_results = await pricer.price_usage(usage, REGION)

    assert first_cost == second_cost
    assert [result.from_cache for result in first_results] == [False]
    assert [result.from_cache for result in second_results] == [True]
    assert mock_pricing_client.request_count == 1


@pytest.mark.asyncio
async def test_works_without_cache(mock_pricing_client):
    pricer = ResourcePricer(mock_pricing_client)
    await pricer.get_price(_usage("AWS::S3::Bucket"), REGION)
    await pricer.get_price(_usage("AWS::S3::Bucket"), REGION)

    assert mock_pricing_client.request_count == 2


@pytest.mark.asyncio
async def test_missing_product_is_an_error_not_zero(pricer):
    usage = _usage("AWS::EC2::Instance", InstanceType="x99.huge")

    with pytest.raises(ResourcePricingError) as excinfo:
        await pricer.get_price(usage, REGION)

    assert excinfo.value.logical_id == "Res"
    assert isinstance(excinfo.value.__cause__, PricingNotFoundError)


@pytest.mark.asyncio
async def test_source_failures_are_wrapped_with_logical_id(memory_cache):
    source = Mock()
    source.get_price = AsyncMock(side_effect=PricingError("offer download timed out"))
    pricer = ResourcePricer(source, cache=memory_cache)

    with pytest.raises(ResourcePricingError, match="timed out") as excinfo:
        await pricer.get_price(_usage("AWS::S3::Bucket"), REGION)
    assert excinfo.value.logical_id == "Res"
    assert memory_cache.get_stats().entries == 0


@pytest.mark.asyncio
async def test_get_prices_skips_failures(pricer):
    good = _usage("AWS::S3::Bucket")
    bad = ResourceUsage(resource_type="Custom::Widget", logical_id="Widget", service_name="widget", quantity=1)

    prices = await pricer.get_prices([good, bad], REGION)

    assert list(prices) == ["Res"]


@pytest.mark.asyncio
async def test_mock_products_can_be_overridden():
    source = MockPricingClient(products=[
        MockProduct("AmazonS3", "Storage", {"volumeType": "Standard"}, 0.05, "GB-Mo"),
    ])
    pricer = ResourcePricer(source)

    assert await pricer.get_price(_usage("AWS::S3::Bucket"), REGION) == pytest.approx(0.5)


class _ThreadRecordingCache(MemoryPriceCache):
    """Memory cache that remembers which thread each call ran on."""

    def __init__(self):
        super().__init__()
        self.threads = []

    def get(self, query):
        self.threads.append(threading.current_thread())
        return super().get(query)

    def set(self, query, result):
        self.threads.append(threading.current_thread())
        super().set(query, result)


@pytest.mark.asyncio
async def test_cache_io_runs_off_the_event_loop(mock_pricing_client):
    cache = _ThreadRecordingCache()
    pricer = ResourcePricer(mock_pricing_client, cache=cache)

    await pricer.get_price(_usage("AWS::EC2::Instance"), REGION)
    await pricer.get_price(_usage("AWS::EC2::Instance"), REGION)

    # get + set on the first lookup, get on the second
    assert len(cache.threads) == 3
    assert threading.main_thread() not in cache.threads
