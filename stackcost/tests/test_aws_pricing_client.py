"""
Tests for the Price List query API client (boto3 mocked).
"""
import json

import pytest
from unittest.mock import Mock
from botocore.exceptions import ClientError, EndpointConnectionError

from stackcost.domain.pricing_models import PriceQuery
from stackcost.pricing.aws_pricing_client import AWSPricingClient
from stackcost.pricing.pricing_source import PricingError, PricingNotFoundError
from stackcost.resilience.circuit_breaker import CircuitBreaker, CircuitState


def _price_list_entry(sku, price, usagetype="", unit="Hrs", product_family="NAT Gateway"):
    return json.dumps({
        "product": {
            "sku": sku,
            "productFamily": product_family,
            "attributes": {
                "regionCode": "eu-west-1",
                "location": "EU (Ireland)",
                "usagetype": usagetype,
            },
        },
        "terms": {"OnDemand": {f"{sku}.T": {"priceDimensions": {f"{sku}.T.R": {
            "unit": unit,
            "beginRange": "0",
            "pricePerUnit": {"USD": price},
        }}}}},
    })


NAT_QUERY = PriceQuery("AmazonEC2", "NAT Gateway", "eu-west-1", {"usagetype": "NatGateway-Hours"})


@pytest.fixture
def boto_client():
    mock = Mock()
    mock.get_products = Mock(return_value={"PriceList": [
        _price_list_entry("SKU-BYTES", "0.048", usagetype="EU-NatGateway-Bytes", unit="GB"),
        _price_list_entry("SKU-HOURS", "0.048", usagetype="EU-NatGateway-Hours"),
    ]})
    return mock


@pytest.mark.asyncio
async def test_matches_region_prefixed_usagetype_locally(boto_client):
    client = AWSPricingClient(pricing_client=boto_client, circuit_breaker=CircuitBreaker("test_api"))

    result = await client.get_price(NAT_QUERY)

    assert result.sku == "SKU-HOURS"
    assert result.unit_price == pytest.approx(0.048)
    assert result.unit == "Hrs"


@pytest.mark.asyncio
async def test_sends_term_match_filters(boto_client):
    client = AWSPricingClient(pricing_client=boto_client, circuit_breaker=CircuitBreaker("test_api"))
    query = PriceQuery("AmazonRDS", "Database Instance", "eu-west-1", {
        "instanceType": "db.t3.small",
        "databaseEngine": "MySQL",
    })

    with pytest.raises(PricingNotFoundError):
        await client.get_price(query)

    kwargs = boto_client.get_products.call_args.kwargs
    assert kwargs["ServiceCode"] == "AmazonRDS"
    assert {"Type": "TERM_MATCH", "Field": "location", "Value": "EU (Ireland)"} in kwargs["Filters"]
    assert {"Type": "TERM_MATCH", "Field": "databaseEngine", "Value": "MySQL"} in kwargs["Filters"]
    assert not any(item["Field"] == "usagetype" for item in client.build_filters(NAT_QUERY, "EU (Ireland)"))


@pytest.mark.asyncio
async def test_follows_next_token(boto_client):
    boto_client.get_products.side_effect = [
        {"PriceList": [_price_list_entry("SKU-BYTES", "0.048", usagetype="EU-NatGateway-Bytes")], "NextToken": "page2"},
        {"PriceList": [_price_list_entry("SKU-HOURS", "0.048", usagetype="EU-NatGateway-Hours")]},
    ]
    client = AWSPricingClient(pricing_client=boto_client, circuit_breaker=CircuitBreaker("test_api"))

    result = await client.get_price(NAT_QUERY)

    assert result.sku == "SKU-HOURS"
    assert boto_client.get_products.call_args_list[1].kwargs["NextToken"] == "page2"


@pytest.mark.asyncio
async def test_unknown_region_is_not_found(boto_client):
    client = AWSPricingClient(pricing_client=boto_client, circuit_breaker=CircuitBreaker("test_api"))
    query = PriceQuery("AmazonEC2", "NAT Gateway", "mars-north-1", {})

    with pytest.raises(PricingNotFoundError):
        await client.get_price(query)
    boto_client.get_products.assert_not_called()


@pytest.mark.asyncio
async def test_api_failures_open_the_circuit(boto_client):
    boto_client.get_products.side_effect = ClientError(
        {"Error": {"Code": "ThrottlingException", "Message": "Rate exceeded"}}, "GetProducts"
    )
    breaker = CircuitBreaker("test_api", failure_threshold=2)
    client = AWSPricingClient(pricing_client=boto_client, circuit_breaker=breaker)

    for _ in range(2):
        with pytest.raises(PricingError, match="Failed to query AWS pricing"):
            await client.get_price(NAT_QUERY)

    assert breaker.current_state() == CircuitState.OPEN
    with pytest.raises(PricingError, match="circuit breaker open"):
        await client.get_price(NAT_QUERY)
    assert boto_client.get_products.call_count == 2


@pytest.mark.asyncio
async def test_connection_errors_become_pricing_errors(boto_client):
    boto_client.get_products.side_effect = EndpointConnectionError(endpoint_url="https://api.pricing.us-east-1.amazonaws.com")
    client = AWSPricingClient(pricing_client=boto_client, circuit_breaker=CircuitBreaker("test_api"))

    with pytest.raises(PricingError):
        await client.get_price(NAT_QUERY)
