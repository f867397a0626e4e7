"""
Integration tests for the products flow on the file-backed store.
"""

import pytest
from fastapi.testclient import TestClient

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_products.app.main import ProductsService
from shared.adapters import FileAdapter
from shared.config import get_config


class TestProductsFlow:
    """End-to-end flow through HTTP, cache and durable storage."""

    @pytest.fixture
    def config(self, tmp_path):
        """File-backed storage in a temporary data directory, memory cacher."""
        return get_config(
            "products",
            3000,
            mongo_uri=None,
            test_mode=False,
            data_dir=str(tmp_path / "data"),
            cacher="memory",
        )

    def test_file_store_is_selected(self, config):
        """Test the default backend is the file store."""
        service = ProductsService(config=config)
        assert isinstance(service.products.store, FileAdapter)

    def test_restart_does_not_reseed(self, config, tmp_path):
        """Test a second startup against the same data keeps the records."""
        with TestClient(ProductsService(config=config).app) as client:
            assert client.get("/products/count").json() == {"count": 3}
            client.post("/products", json={"name": "Widget", "price": 10})

        assert (tmp_path / "data" / "products.db").exists()

        with TestClient(ProductsService(config=config).app) as client:
            assert client.get("/products/count").json() == {"count": 4}

    def test_cached_reads_see_quantity_changes(self, config):
        """Test cached listings are invalidated by quantity changes."""
        service = ProductsService(config=config)

        with TestClient(service.app) as client:
            rows = client.get("/products", params={"sort": "name"}).json()["rows"]
            target = rows[0]
            assert len(service.cacher) == 1

            response = client.put(f"/products/{target['_id']}/quantity/increase", json={"value": 5})
            assert response.json()["quantity"] == target["quantity"] + 5

            # the invalidation is delivered on the service's event loop
            client.portal.call(service.bus.drain)
            assert len(service.cacher) == 0

            rows = client.get("/products", params={"sort": "name"}).json()["rows"]
            assert rows[0]["quantity"] == target["quantity"] + 5

    def test_widget_scenario_survives_restart(self, config):
        """Test create/increase/decrease results are durable."""
        with TestClient(ProductsService(config=config).app) as client:
            product = client.post("/products", json={"name": "Widget", "quantity": 99, "price": 10}).json()
            assert product["quantity"] == 0
            client.put(f"/products/{product['_id']}/quantity/increase", json={"value": 5})
            result = client.put(f"/products/{product['_id']}/quantity/decrease", json={"value": 20}).json()
            assert result["quantity"] == -15

        with TestClient(ProductsService(config=config).app) as client:
            assert client.get(f"/products/{product['_id']}").json()["quantity"] == -15
