"""
Unit tests for the Products HTTP service.
"""

import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_products.app.main import ProductsService
from shared.config import get_config


class TestProductsService:
    """Test cases for ProductsService."""

    @pytest.fixture
    def config(self):
        """In-memory storage with the memory cacher."""
        return get_config("products", 3000, test_mode=True, mongo_uri=None, cacher="memory")

    @pytest.fixture
    def products_service(self, config):
        """Create ProductsService instance."""
        return ProductsService(config=config)

    @pytest.fixture
    def client(self, products_service):
        """Create test client; entering it runs startup (and seeding)."""
        with TestClient(products_service.app) as client:
            yield client

    def test_service_initialization(self, products_service):
        """Test service initialization."""
        assert products_service.service_name == "products"
        assert products_service.port == 3000
        assert products_service.products is not None
        assert products_service.cacher is not None

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "products"
        assert data["storage"] == "memory"
        assert data["cache"] == "MemoryCacher"

    def test_health_endpoint(self, client):
        """Test health endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"] == {"storage": "ok", "cache": "ok"}

    @patch('service_products.app.main.ProductsService._check_dependencies', new_callable=AsyncMock)
    def test_health_degraded(self, mock_check_deps, client):
        """Test health endpoint with a failing dependency."""
        mock_check_deps.return_value = {"storage": "error"}

        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_list_seeded_products(self, client):
        """Test the store is seeded at startup."""
        response = client.get("/products", params={"sort": "name"})
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert data["page"] == 1
        assert all(set(row) == {"_id", "name", "quantity", "price"} for row in data["rows"])

        assert client.get("/products/count").json() == {"count": 3}

    def test_widget_scenario(self, client):
        """Test create, increase and decrease over HTTP."""
        response = client.post("/products", json={"name": "Widget", "quantity": 99, "price": 10})
        assert response.status_code == 201
        product = response.json()
        assert product["quantity"] == 0

        response = client.put(f"/products/{product['_id']}/quantity/increase", json={"value": 5})
        assert response.status_code == 200
        assert response.json()["quantity"] == 5

        response = client.put(f"/products/{product['_id']}/quantity/decrease", json={"value": 20})
        assert response.status_code == 200
        assert response.json()["quantity"] == -15

        response = client.get(f"/products/{product['_id']}")
        assert response.json()["quantity"] == -15

    def test_quantity_value_from_query(self, client):
        """Test the value can be given as a query parameter."""
        product = client.post("/products", json={"name": "Widget", "price": 10}).json()

        response = client.put(f"/products/{product['_id']}/quantity/increase", params={"value": 3})
        assert response.status_code == 200
        assert response.json()["quantity"] == 3

    def test_quantity_validation_error(self, client):
        """Test non-positive values are rejected with 422."""
        product = client.post("/products", json={"name": "Widget", "price": 10}).json()

        response = client.put(f"/products/{product['_id']}/quantity/increase", json={"value": 0})
        assert response.status_code == 422
        data = response.json()
        assert data["code"] == "VALIDATION_ERROR"
        assert data["details"]["errors"][0]["field"] == "value"

    def test_quantity_not_found(self, client):
        """Test unknown ids are rejected with 404."""
        response = client.put("/products/unknown/quantity/decrease", json={"value": 1})
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_create_validation_error(self, client):
        """Test entity validation on create."""
        response = client.post("/products", json={"name": "X", "price": 0})
        assert response.status_code == 422
        fields = {e["field"] for e in response.json()["details"]["errors"]}
        assert fields == {"name", "price"}

    def test_update_and_remove(self, client):
        """Test update and remove routes."""
        product = client.post("/products", json={"name": "Widget", "price": 10}).json()

        response = client.put(f"/products/{product['_id']}", json={"price": 11.5})
        assert response.status_code == 200
        assert response.json()["price"] == 11.5

        response = client.delete(f"/products/{product['_id']}")
        assert response.status_code == 200
        assert client.get(f"/products/{product['_id']}").status_code == 404

    def test_request_id_header(self, client):
        """Test request ids are propagated."""
        response = client.get("/products/count", headers={"X-Request-ID": "req-1"})
        assert response.headers["X-Request-ID"] == "req-1"

    def test_metrics_endpoint(self, client):
        """Test Prometheus metrics exposition."""
        client.get("/products")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "resource_actions_total" in response.text
