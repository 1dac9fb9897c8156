"""
Tests for the estimate and price cache API endpoints.
"""
import pytest
from unittest.mock import Mock
from fastapi.testclient import TestClient

from stackcost.api.estimate import get_price_cache, get_template_analyzer
from stackcost.main import app
from stackcost.middleware.request_size_limiter import MAX_TEMPLATE_SIZE
from stackcost.pricing.price_cache import PriceCacheError


@pytest.fixture
def client(analyzer, file_cache):
    """Test client wired to the mock pricing source and a per-test cache."""
    analyzer.pricer.cache = file_cache
    app.dependency_overrides[get_template_analyzer] = lambda: analyzer
    app.dependency_overrides[get_price_cache] = lambda: file_cache
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_estimate_returns_analysis(client, web_and_db_template):
    response = client.post("/api/estimate", json={
        "template": web_and_db_template,
        "usage_profile": "light",
        "region": "us-east-1",
    })

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["status"] == "ok"
    analysis = data["analysis"]
    assert set(analysis["by_resource"]) == {"WebServer", "Database"}
    assert analysis["errors"] == []
    assert analysis["estimated_monthly_cost"] == pytest.approx(9.11 + 24.82, abs=0.01)


def test_estimate_uses_defaults(client):
    response = client.post("/api/estimate", json={"template": '{"Resources": {"B": {"Type": "AWS::S3::Bucket"}}}'})

    assert response.status_code == 200
    analysis = response.json()["analysis"]
    assert analysis["usage_profile"] == "light"
    assert analysis["region"] == "us-east-1"


def test_estimate_rejects_unparseable_template(client):
    response = client.post("/api/estimate", json={"template": "Resources: {}"})

    assert response.status_code == 400
    assert "Invalid template" in response.json()["detail"]


def test_estimate_requires_template(client):
    response = client.post("/api/estimate", json={"usage_profile": "light"})
    assert response.status_code == 422


def test_estimate_rejects_oversized_template(client):
    template = "Resources:\n  B:\n    Type: AWS::S3::Bucket\n" + "#" * (MAX_TEMPLATE_SIZE + 1)
    response = client.post("/api/estimate", json={"template": template})

    assert response.status_code == 413
    assert response.json()["error"] == "request_too_large"


def test_estimate_rejects_oversized_body(client):
    response = client.post(
        "/api/estimate",
        content=b"{" + b" " * 1_048_577 + b"}",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 413


def test_bootstrap_estimate(client):
    response = client.post("/api/estimate/bootstrap", json={"num_accounts": 3})

    assert response.status_code == 200
    analysis = response.json()["analysis"]
    assert set(analysis["by_resource"]) == {"BillingAlarm", "NotificationTopic"}
    assert analysis["by_resource"]["BillingAlarm"] == pytest.approx(0.60)


def test_bootstrap_rejects_zero_accounts(client):
    response = client.post("/api/estimate/bootstrap", json={"num_accounts": 0})
    assert response.status_code == 422


def test_cache_stats_and_clear(client, web_and_db_template):
    client.post("/api/estimate", json={"template": web_and_db_template})

    stats = client.get("/api/pricing/cache").json()["cache"]
    assert stats["entries"] == 2

    cleared = client.delete("/api/pricing/cache").json()["cache"]
    assert cleared["entries"] == 0


def test_cache_clear_failure_is_500(client):
    broken_cache = Mock()
    broken_cache.clear = Mock(side_effect=PriceCacheError("read-only"))
    app.dependency_overrides[get_price_cache] = lambda: broken_cache

    response = client.delete("/api/pricing/cache")
    assert response.status_code == 500


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"
