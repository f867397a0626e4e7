"""
Unit tests for the Products resource actions.
"""

import pytest
import pytest_asyncio

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_products.app.products import (
    FIELDS, SEED_PRODUCTS, ProductsResource, create_products_resource
)
from shared.adapters import MemoryAdapter
from shared.cache import MemoryCacher
from shared.config import BaseConfig
from shared.errors import NotFoundError, ValidationError
from shared.events import CacheCleanEvent, EventBus


class RecordingBus(EventBus):
    """Event bus that remembers every broadcast event."""

    def __init__(self):
        super().__init__()
        self.events = []

    def broadcast(self, event):
        self.events.append(event)
        return super().broadcast(event)


class TestProductsResource:
    """Test cases for ProductsResource."""

    @pytest.fixture
    def config(self):
        """Test-mode configuration."""
        return BaseConfig(mongo_uri=None, test_mode=True)

    @pytest.fixture
    def bus(self):
        """Recording event bus."""
        return RecordingBus()

    @pytest_asyncio.fixture
    async def products(self, config, bus):
        """Started products resource on an in-memory store, no seed data."""
        resource = create_products_resource(config, bus)
        await resource.store.connect()
        resource.mixin.bind()
        yield resource
        await bus.drain()
        await resource.stop()

    @pytest_asyncio.fixture
    async def widget(self, products, bus):
        """A freshly created product."""
        product = await products.create({"name": "Widget", "quantity": 99, "price": 10})
        bus.events.clear()
        return product

    @pytest.mark.asyncio
    async def test_resource_composition(self, products):
        """Test the resource is bound to an in-memory store."""
        assert isinstance(products, ProductsResource)
        assert isinstance(products.store, MemoryAdapter)
        assert products.fields == FIELDS
        assert products.mixin.resource_name == "products"

    @pytest.mark.asyncio
    async def test_create_forces_zero_quantity(self, products):
        """Test created products always start with quantity 0."""
        product = await products.create({"name": "Widget", "quantity": 99, "price": 10})

        assert product["quantity"] == 0
        stored = await products.store.find_by_id(product["_id"])
        assert stored["quantity"] == 0

    @pytest.mark.asyncio
    async def test_create_strips_unlisted_fields(self, products):
        """Test fields outside the allow-list never reach the response."""
        await products.store.insert({"_id": "p1", "name": "Gadget", "quantity": 1, "price": 5, "secret": "x"})

        product = await products.get("p1")

        assert set(product) == set(FIELDS)
        assert "secret" not in product

    @pytest.mark.asyncio
    async def test_create_validation_error(self, products, bus):
        """Test invalid entities are rejected before storage."""
        with pytest.raises(ValidationError) as exc_info:
            await products.create({"name": "ab", "price": -1})

        assert set(exc_info.value.fields) == {"name", "price"}
        assert await products.store.count() == 0
        assert bus.events == []

    @pytest.mark.asyncio
    async def test_create_broadcasts_invalidation(self, products, bus):
        """Test create emits one cache-clean event for products."""
        await products.create({"name": "Widget", "price": 10})

        assert bus.events == [CacheCleanEvent("products")]

    @pytest.mark.asyncio
    async def test_increase_quantity(self, products, widget, bus):
        """Test increase adds the value and broadcasts exactly once."""
        result = await products.increase_quantity(widget["_id"], 5)

        assert result["quantity"] == 5
        assert set(result) == set(FIELDS)
        assert bus.events == [CacheCleanEvent("products")]

    @pytest.mark.asyncio
    async def test_decrease_quantity_goes_negative(self, products, widget):
        """Test decrease is not clamped at zero."""
        await products.increase_quantity(widget["_id"], 5)

        result = await products.decrease_quantity(widget["_id"], 20)

        assert result["quantity"] == -15

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [0, -3, 2.5, "5", True, None])
    async def test_quantity_invalid_value(self, products, widget, bus, value):
        """Test non-positive or non-integer values fail before any mutation."""
        with pytest.raises(ValidationError) as exc_info:
            await products.increase_quantity(widget["_id"], value)

        assert "value" in exc_info.value.fields
        stored = await products.store.find_by_id(widget["_id"])
        assert stored["quantity"] == 0
        assert bus.events == []

    @pytest.mark.asyncio
    async def test_quantity_not_found(self, products, bus):
        """Test quantity actions on a missing id fail with NotFoundError."""
        with pytest.raises(NotFoundError):
            await products.increase_quantity("missing", 1)

        with pytest.raises(NotFoundError):
            await products.decrease_quantity("missing", 1)

        assert bus.events == []

    @pytest.mark.asyncio
    async def test_update_and_remove(self, products, widget, bus):
        """Test update and remove notify once each."""
        updated = await products.update(widget["_id"], {"price": 12, "_id": "ignored"})
        assert updated["price"] == 12
        assert updated["_id"] == widget["_id"]

        removed = await products.remove(widget["_id"])
        assert removed["_id"] == widget["_id"]
        assert await products.store.count() == 0
        assert bus.events == [CacheCleanEvent("products"), CacheCleanEvent("products")]

        with pytest.raises(NotFoundError):
            await products.remove(widget["_id"])

    @pytest.mark.asyncio
    async def test_insert_keeps_quantity(self, products, bus):
        """Test insert validates but does not run the create hook."""
        docs = await products.insert([
            {"name": "Alpha", "quantity": 3, "price": 1.5},
            {"name": "Bravo", "quantity": 4, "price": 2},
        ])

        assert [d["quantity"] for d in docs] == [3, 4]
        assert bus.events == [CacheCleanEvent("products")]

    @pytest.mark.asyncio
    async def test_list_pagination(self, products):
        """Test list returns paginated, sorted rows."""
        await products.insert([
            {"name": name, "quantity": i, "price": 1}
            for i, name in enumerate(["Alpha", "Bravo", "Charlie"])
        ])

        page = await products.list(page=2, page_size=2, sort=["name"])

        assert page["total"] == 3
        assert page["totalPages"] == 2
        assert [row["name"] for row in page["rows"]] == ["Charlie"]

    @pytest.mark.asyncio
    async def test_get_not_found(self, products):
        """Test get on a missing id."""
        with pytest.raises(NotFoundError) as exc_info:
            await products.get("nope")

        assert exc_info.value.details["id"] == "nope"


class TestProductsSeeding:
    """Test cases for startup seeding."""

    @pytest.mark.asyncio
    async def test_seed_empty_store(self):
        """Test an empty store is seeded with the sample products."""
        resource = create_products_resource(BaseConfig(test_mode=True), EventBus())

        await resource.start()

        assert await resource.store.count() == len(SEED_PRODUCTS) == 3
        names = {p["name"] for p in await resource.find()}
        assert names == {p["name"] for p in SEED_PRODUCTS}
        await resource.stop()

    @pytest.mark.asyncio
    async def test_non_empty_store_not_reseeded(self):
        """Test startup leaves a non-empty store unchanged."""
        store = MemoryAdapter("products")
        await store.insert({"name": "Existing", "quantity": 1, "price": 1})
        resource = create_products_resource(BaseConfig(test_mode=True), EventBus(), store=store)

        await resource.start()

        assert await resource.store.count() == 1
        await resource.stop()


class TestProductsCaching:
    """Test cases for cached reads and invalidation."""

    @pytest.mark.asyncio
    async def test_read_after_write_is_fresh(self):
        """Test the cache is evicted after a quantity change."""
        bus = EventBus()
        cacher = MemoryCacher()
        resource = create_products_resource(BaseConfig(test_mode=True), bus, cacher=cacher)
        await resource.start()

        product = (await resource.find(sort=["name"]))[0]
        await resource.get(product["_id"])
        assert len(cacher) == 2

        await resource.increase_quantity(product["_id"], 7)
        await bus.drain()

        assert len(cacher) == 0
        fresh = await resource.get(product["_id"])
        assert fresh["quantity"] == product["quantity"] + 7
        await resource.stop()
