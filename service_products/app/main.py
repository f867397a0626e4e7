"""
Products service.
"""

from typing import Any, Dict, Optional

from fastapi import Body, Query

from shared.base_service import BaseService
from shared.cache import create_cacher
from shared.config import ServiceConfig
from shared.events import EventBus

from .products import create_products_resource


class ProductsService(BaseService):
    """Products service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None, bus: Optional[EventBus] = None):
        super().__init__("products", 3000, config)

        self.bus = bus or EventBus()
        self.cacher = create_cacher(self.config.cacher, self.config.cache_ttl_seconds)
        self.products = create_products_resource(
            self.config,
            self.bus,
            cacher=self.cacher,
            metrics=self.metrics,
        )

        self._setup_products_routes()

    def _setup_products_routes(self):
        """Set up products-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "products",
                "message": "Resource service - products",
                "version": "1.0.0",
                "storage": self.products.store.backend.value,
                "cache": type(self.cacher).__name__ if self.cacher else None,
            }

        @self.app.get("/products")
        async def list_products(
            page: int = Query(1, ge=1, description="Page number"),
            page_size: int = Query(10, ge=1, le=100, alias="pageSize", description="Items per page"),
            sort: Optional[str] = Query(None, description="Comma separated fields, '-' prefix for descending"),
        ):
            """List products with pagination."""
            sort_fields = [s.strip() for s in sort.split(",") if s.strip()] if sort else None
            return await self.products.list(page=page, page_size=page_size, sort=sort_fields)

        @self.app.get("/products/count")
        async def count_products():
            """Count products."""
            return {"count": await self.products.count()}

        @self.app.get("/products/{product_id}")
        async def get_product(product_id: str):
            """Get a product by id."""
            return await self.products.get(product_id)

        @self.app.post("/products", status_code=201)
        async def create_product(payload: Dict[str, Any] = Body(...)):
            """Create a product. Its quantity always starts at zero."""
            return await self.products.create(payload, {"caller": "http"})

        @self.app.put("/products/{product_id}")
        async def update_product(product_id: str, payload: Dict[str, Any] = Body(...)):
            """Update product fields."""
            return await self.products.update(product_id, payload, {"caller": "http"})

        @self.app.delete("/products/{product_id}")
        async def remove_product(product_id: str):
            """Remove a product."""
            return await self.products.remove(product_id, {"caller": "http"})

        @self.app.put("/products/{product_id}/quantity/increase")
        async def increase_quantity(
            product_id: str,
            payload: Dict[str, Any] = Body(default={}),
            value: Optional[int] = Query(None),
        ):
            """Increase the quantity of the product item."""
            amount = payload.get("value", value)
            return await self.products.increase_quantity(product_id, amount, {"caller": "http"})

        @self.app.put("/products/{product_id}/quantity/decrease")
        async def decrease_quantity(
            product_id: str,
            payload: Dict[str, Any] = Body(default={}),
            value: Optional[int] = Query(None),
        ):
            """Decrease the quantity of the product item."""
            amount = payload.get("value", value)
            return await self.products.decrease_quantity(product_id, amount, {"caller": "http"})

    async def _check_dependencies(self):
        """Check products service dependencies."""
        dependencies = {}

        try:
            healthy = await self.products.store.health_check()
            dependencies["storage"] = "ok" if healthy else "error"
        except Exception:
            dependencies["storage"] = "error"

        if self.cacher:
            try:
                dependencies["cache"] = "ok" if await self.cacher.health_check() else "error"
            except Exception:
                dependencies["cache"] = "error"

        return dependencies

    async def start(self):
        """Start products service components."""
        if self.cacher:
            await self.cacher.start()
        await self.products.start()

        self.logger.info(
            "Products service started",
            storage=self.products.store.describe(),
            records=await self.products.store.count()
        )

    async def stop(self):
        """Stop products service components."""
        await self.bus.drain()
        await self.products.stop()
        if self.cacher:
            await self.cacher.stop()

        self.logger.info("Products service stopped")


def create_app():
    """Create products service application."""
    service = ProductsService()
    return service.app


if __name__ == "__main__":
    service = ProductsService()
    service.run()
