"""
Tests for POST/GET /recommend.

Tests cover:
- Happy path: ranked products in camelCase JSON
- Failure path: invalid input -> 400 with the validation message
- Failure path: upstream down -> 500 with a generic message
- GET convenience form and its required query parameter
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from storefront.main import app
from storefront.routes.dependencies import get_catalog_client, get_key_pool
from storefront.services.api_key_pool import ApiKeyPool
from storefront.utils.exceptions import FailureKind, InternalError, UpstreamCallError

SERVICE = "storefront.services.recommendation_service"

INTENT_REPLY = json.dumps({
    "category": "audio",
    "requirements": ["wireless earbuds"],
    "budget": {"min": None, "max": 2000},
    "preferences": [],
    "confidence": 0.9,
    "productRequestData": None,
})

CATALOG_ROWS = [
    {
        "id": "p1",
        "name": "Airdopes wireless earbuds",
        "description": "Bluetooth 5.3",
        "price": 1000,
        "category_id": "audio",
        "tags": ["bluetooth"],
        "featured": True,
        "average_rating": 4.4,
        "is_available": True,
        "image_url": "https://cdn.example.com/p1.png",
    },
    {
        "id": "p2",
        "name": "Wired earbuds",
        "description": "",
        "price": 400,
        "category_id": "audio",
        "tags": [],
        "featured": False,
        "average_rating": 3.9,
        "is_available": True,
    },
]


@pytest.fixture
def client():
    """Create test client for FastAPI app."""
    return TestClient(app)


@pytest.fixture
def key_pool():
    return ApiKeyPool(["route-test-key-0001", "route-test-key-0002"])


@pytest.fixture
def override_dependencies(key_pool):
    """Override the key pool and catalog client dependencies."""
    app.dependency_overrides[get_key_pool] = lambda: key_pool
    app.dependency_overrides[get_catalog_client] = lambda: MagicMock()

    yield

    # Clean up after test
    app.dependency_overrides.clear()


@pytest.fixture
def mock_catalog():
    with patch(f"{SERVICE}.find_products", new_callable=AsyncMock) as find_products, \
         patch(f"{SERVICE}.get_categories", new_callable=AsyncMock) as get_categories, \
         patch(f"{SERVICE}.create_product_request", new_callable=AsyncMock) as create_request:
        find_products.return_value = CATALOG_ROWS
        get_categories.return_value = []
        create_request.return_value = {"id": "req-1"}
        yield find_products


@pytest.fixture
def mock_gemini_success():
    with patch("storefront.services.llm_client.complete", new_callable=AsyncMock) as complete:
        complete.return_value = INTENT_REPLY
        yield complete


@pytest.fixture
def mock_gemini_down():
    with patch("storefront.services.llm_client.complete", new_callable=AsyncMock) as complete:
        complete.side_effect = UpstreamCallError("Gemini API error (503)", kind=FailureKind.UNKNOWN, upstream_status=503)
        yield complete


# =============================================================================
# POST /recommend
# =============================================================================

def test_recommend_happy_path(client, override_dependencies, mock_catalog, mock_gemini_success):
    response = client.post("/recommend", json={
        "query": "wireless earbuds under 2000",
        "context": {"budget": 2000},
        "maxResults": 5,
    })

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert [p["id"] for p in data["recommendations"]] == ["p1", "p2"]
    first = data["recommendations"][0]
    assert first["categoryId"] == "audio"
    assert first["averageRating"] == 4.4
    assert first["image_url"] == "https://cdn.example.com/p1.png"
    assert data["summary"].startswith("Here are 2 products")
    assert "processingTimeMs" in data
    assert "error" not in data


def test_recommend_query_too_long_returns_400(client, override_dependencies, mock_catalog, mock_gemini_success):
    response = client.post("/recommend", json={"query": "x" * 1001})

    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert data["error"] == "Query must be at most 1000 characters"
    assert data["errorCode"] == "INVALID_INPUT"
    mock_gemini_success.assert_not_awaited()


def test_recommend_negative_budget_returns_400(client, override_dependencies, mock_catalog, mock_gemini_success):
    response = client.post("/recommend", json={"query": "earbuds", "context": {"budget": -100}})

    assert response.status_code == 400
    assert response.json()["error"] == "Budget must be a positive number"


def test_recommend_missing_query_returns_400(client, override_dependencies):
    response = client.post("/recommend", json={"context": {"budget": 100}})

    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert data["error"] == "validation_error"


def test_recommend_upstream_down_returns_500(client, override_dependencies, mock_catalog, mock_gemini_down):
    response = client.post("/recommend", json={"query": "wireless earbuds"})

    assert response.status_code == 500
    data = response.json()
    assert data["success"] is False
    assert data["errorCode"] == "UPSTREAM_UNAVAILABLE"
    assert "503" not in data["error"]
    assert mock_gemini_down.await_count == 2
    mock_catalog.assert_not_awaited()


def test_recommend_without_keys_returns_500(client, mock_catalog, mock_gemini_success):
    app.dependency_overrides[get_key_pool] = lambda: None
    app.dependency_overrides[get_catalog_client] = lambda: MagicMock()
    try:
        response = client.post("/recommend", json={"query": "wireless earbuds"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json()["errorCode"] == "UPSTREAM_UNAVAILABLE"
    mock_gemini_success.assert_not_awaited()


# =============================================================================
# GET /recommend
# =============================================================================

def test_recommend_get_happy_path(client, override_dependencies, mock_catalog, mock_gemini_success):
    response = client.get("/recommend", params={"q": "wireless earbuds", "budget": 2000, "category": "audio"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert len(data["recommendations"]) == 2

    product_filter = mock_catalog.await_args.args[1]
    assert product_filter.category_id == "audio"
    assert product_filter.max_price == 2000


def test_recommend_get_accepts_query_alias(client, override_dependencies, mock_catalog, mock_gemini_success):
    response = client.get("/recommend", params={"query": "wireless earbuds"})

    assert response.status_code == 200


def test_recommend_get_non_numeric_budget_returns_400(client, override_dependencies):
    response = client.get("/recommend", params={"q": "earbuds", "budget": "cheap"})

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_recommend_get_requires_q(client, override_dependencies):
    response = client.get("/recommend")

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Query parameter 'q' is required"}


def test_recommend_without_catalog_returns_500(client, key_pool):
    def unavailable_catalog():
        raise InternalError()

    app.dependency_overrides[get_key_pool] = lambda: key_pool
    app.dependency_overrides[get_catalog_client] = unavailable_catalog
    try:
        response = client.post("/recommend", json={"query": "wireless earbuds"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "An unexpected error occurred. Please try again."}
