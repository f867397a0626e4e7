"""
Products resource: policy and actions of the `products` service.
"""

import copy
from typing import Any, Dict, Optional

from shared.cache import Cacher
from shared.config import BaseConfig
from shared.errors import NotFoundError
from shared.events import EventBus
from shared.metrics import MetricsCollector
from shared.resource_mixin import ResourceMixin
from shared.resource_service import ResourceService, validate_params

from .models import ProductEntity, QuantityChangeParams

RESOURCE_NAME = "products"

# Available fields in the responses
FIELDS = ["_id", "name", "quantity", "price"]

SEED_PRODUCTS = [
    {"name": "Samsung Galaxy S10 Plus", "quantity": 10, "price": 704},
    {"name": "iPhone 11 Pro", "quantity": 25, "price": 999},
    {"name": "Huawei P30 Pro", "quantity": 15, "price": 679},
]


def reset_quantity(params: Dict[str, Any]) -> None:
    """New products always start with an empty stock."""
    params["quantity"] = 0


class ProductsResource(ResourceService):
    """The `products` service: CRUD plus stock quantity actions."""

    def __init__(self, mixin: ResourceMixin, cache_ttl: Optional[int] = None):
        super().__init__(
            mixin,
            fields=FIELDS,
            entity_validator=ProductEntity,
            before_hooks={"create": [reset_quantity]},
            cache_ttl=cache_ttl,
        )

    async def increase_quantity(self, entity_id: Any, value: Any, context: Optional[Dict[str, Any]] = None):
        """Increase the quantity of the product item."""
        with self._timed("increaseQuantity"):
            return await self._change_quantity(entity_id, value, 1, context)

    async def decrease_quantity(self, entity_id: Any, value: Any, context: Optional[Dict[str, Any]] = None):
        """Decrease the quantity of the product item. The result may go below zero."""
        with self._timed("decreaseQuantity"):
            return await self._change_quantity(entity_id, value, -1, context)

    async def _change_quantity(self, entity_id: Any, value: Any, sign: int, context: Optional[Dict[str, Any]]):
        params = validate_params(QuantityChangeParams, {"id": entity_id, "value": value})

        doc = await self.store.update_by_id(params.id, {"$inc": {"quantity": sign * params.value}})
        if doc is None:
            raise NotFoundError(RESOURCE_NAME, params.id)

        json_doc = self.transform(doc)
        self.entity_changed("updated", json_doc, context)
        return json_doc

    async def seed_db(self, store) -> None:
        """Load sample data into the empty collection."""
        await store.insert_many(copy.deepcopy(SEED_PRODUCTS))


def create_products_resource(
    config: BaseConfig,
    bus: EventBus,
    cacher: Optional[Cacher] = None,
    store=None,
    metrics: Optional[MetricsCollector] = None,
) -> ProductsResource:
    """Compose the products resource from its mixin."""
    mixin = ResourceMixin(
        RESOURCE_NAME,
        config,
        bus,
        cacher=cacher,
        store=store,
        metrics=metrics,
    )
    return ProductsResource(mixin, cache_ttl=config.cache_ttl_seconds)
