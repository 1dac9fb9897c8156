"""
Shared pytest fixtures for stackcost tests.
"""

import sys
import os
import tempfile
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

# Offline pricing and a throwaway cache directory for the whole session
os.environ.setdefault('PRICING_SOURCE', 'mock')
os.environ.setdefault('PRICING_CACHE_DIR', tempfile.mkdtemp(prefix='stackcost-test-cache-'))

import pytest

from stackcost.pricing.mock_pricing import MockPricingClient
from stackcost.pricing.price_cache import FilePriceCache, MemoryPriceCache
from stackcost.pricing.resource_pricer import ResourcePricer
from stackcost.resilience.circuit_breaker import reset_circuit_breakers
from stackcost.services.template_analyzer import TemplateAnalyzer
from stackcost.services.template_parser import TemplateParser
from stackcost.services.usage_estimator import UsageEstimator


@pytest.fixture(autouse=True)
def _reset_breakers():
    """Shared circuit breakers must not leak state between tests."""
    reset_circuit_breakers()
    yield
    reset_circuit_breakers()


@pytest.fixture
def mock_pricing_client():
    """Pricing source serving the reference price table."""
    return MockPricingClient()


@pytest.fixture
def memory_cache():
    return MemoryPriceCache()


@pytest.fixture
def file_cache(tmp_path):
    """File cache in a per-test directory."""
    return FilePriceCache(cache_dir=str(tmp_path / "pricing-cache"), ttl_seconds=3600)


@pytest.fixture
def pricer(mock_pricing_client, memory_cache):
    return ResourcePricer(mock_pricing_client, cache=memory_cache)


@pytest.fixture
def analyzer(pricer):
    """Analyzer wired to the mock pricing source and an in-memory cache."""
    return TemplateAnalyzer(TemplateParser(), UsageEstimator(), pricer, max_concurrency=4)


@pytest.fixture
def web_and_db_template():
    """One elastic-compute resource and one always-on database."""
    return """
AWSTemplateFormatVersion: '2010-09-09'
Resources:
  WebServer:
    Type: AWS::EC2::Instance
    Properties:
      InstanceType: t3.medium
      ImageId: !Ref LatestAmiId
  Database:
    Type: AWS::RDS::DBInstance
    Properties:
      DBInstanceClass: db.t3.small
      Engine: mysql
      MasterUserPassword: !Sub '{{resolve:secretsmanager:${DbSecret}}}'
"""


@pytest.fixture
def sample_offer():
    """Minimal regional offer file in AWS bulk format."""
    def dimension(price, unit="Hrs", begin="0"):
        return {
            "unit": unit,
            "beginRange": begin,
            "pricePerUnit": {"USD": price},
        }

    return {
        "formatVersion": "v1.0",
        "publicationDate": "2026-09-01T00:00:00Z",
        "products": {
            "SKU-USED": {
                "sku": "SKU-USED",
                "productFamily": "Compute Instance",
                "attributes": {
                    "regionCode": "us-east-1",
                    "location": "US East (N. Virginia)",
                    "instanceType": "t3.medium",
                    "tenancy": "Shared",
                    "operatingSystem": "Linux",
                    "preInstalledSw": "NA",
                    "capacitystatus": "Used",
                },
            },
            "SKU-RESERVED": {
                "sku": "SKU-RESERVED",
                "productFamily": "Compute Instance",
                "attributes": {
                    "regionCode": "us-east-1",
                    "location": "US East (N. Virginia)",
                    "instanceType": "t3.medium",
                    "tenancy": "Shared",
                    "operatingSystem": "Linux",
                    "preInstalledSw": "NA",
                    "capacitystatus": "UnusedCapacityReservation",
                },
            },
            "SKU-NAT": {
                "sku": "SKU-NAT",
                "productFamily": "NAT Gateway",
                "attributes": {
                    "regionCode": "us-east-1",
                    "usagetype": "USE1-NatGateway-Hours",
                },
            },
            "SKU-LAMBDA": {
                "sku": "SKU-LAMBDA",
                "productFamily": "Serverless",
                "attributes": {
                    "location": "US East (N. Virginia)",
                    "group": "AWS-Lambda-Requests",
                },
            },
        },
        "terms": {
            "OnDemand": {
                "SKU-USED": {"SKU-USED.T1": {"priceDimensions": {"R1": dimension("0.0416000000")}}},
                "SKU-RESERVED": {"SKU-RESERVED.T1": {"priceDimensions": {"R1": dimension("0.0100000000")}}},
                "SKU-NAT": {"SKU-NAT.T1": {"priceDimensions": {"R1": dimension("0.0450000000")}}},
                "SKU-LAMBDA": {"SKU-LAMBDA.T1": {"priceDimensions": {
                    "FREE": dimension("0.0000000000", unit="Requests", begin="0"),
                    "PAID": dimension("0.0000002000", unit="Requests", begin="1000000"),
                }}},
            }
        },
    }
