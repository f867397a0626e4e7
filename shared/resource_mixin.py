"""
Resource mixin: the behavior every storage-backed resource service shares.

For one resource name it provides:

- storage adapter selection (MongoDB URI, then test mode, then file store)
- a subscription to ``CacheCleanEvent`` for the resource, which evicts the
  service's entries from the shared cacher
- ``notify_changed``, which mutating actions call after each write
- the startup hook that seeds an empty store exactly once

Seeding is count-then-insert without any lock. Several instances starting
against the same empty shared store can each seed it.
"""

from typing import Any, Awaitable, Callable, Dict, Optional

from shared.adapters import ResourceStore, create_adapter
from shared.cache import Cacher
from shared.config import BaseConfig
from shared.events import CacheCleanEvent, EventBus, Subscription
from shared.logging import get_logger
from shared.metrics import MetricsCollector

SeedRoutine = Callable[[ResourceStore], Awaitable[None]]


class ResourceMixin:
    """Storage wiring and cache-invalidation protocol for one resource."""

    def __init__(
        self,
        resource_name: str,
        config: BaseConfig,
        bus: EventBus,
        cacher: Optional[Cacher] = None,
        store: Optional[ResourceStore] = None,
        service_name: Optional[str] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.resource_name = resource_name
        self.service_name = service_name or resource_name
        self.config = config
        self.bus = bus
        self.cacher = cacher
        self.metrics = metrics
        self.logger = get_logger(f"{self.service_name}.mixin")
        self.store = store if store is not None else self.select_adapter(config)
        self._subscription: Optional[Subscription] = None

    @property
    def cache_clean_event(self) -> CacheCleanEvent:
        return CacheCleanEvent(self.resource_name)

    @property
    def cache_key_pattern(self) -> str:
        return f"{self.service_name}.*"

    def select_adapter(self, config: BaseConfig) -> ResourceStore:
        """Bind the storage backend chosen by ``config``."""
        return create_adapter(config, self.resource_name)

    def bind(self) -> None:
        """Subscribe to cache-clean events for this resource."""
        if self._subscription is None:
            self._subscription = self.bus.subscribe(
                CacheCleanEvent,
                self.on_invalidation_event,
                resource=self.resource_name
            )

    def unbind(self) -> None:
        if self._subscription is not None:
            self.bus.unsubscribe(self._subscription)
            self._subscription = None

    async def on_invalidation_event(self, event: CacheCleanEvent) -> None:
        """Evict every cache entry scoped to this service."""
        if self.cacher is None:
            return

        removed = await self.cacher.clean(self.cache_key_pattern)
        if self.metrics:
            self.metrics.record_cache_clean(self.resource_name)
        self.logger.debug(
            "Cache entries evicted",
            event_name=event.name,
            pattern=self.cache_key_pattern,
            count=removed
        )

    def notify_changed(self, change_type: str, payload: Any, context: Optional[Dict[str, Any]] = None) -> None:
        """Broadcast the invalidation event for this resource."""
        self.bus.broadcast(self.cache_clean_event)
        self.logger.debug(
            "Entity changed",
            resource=self.resource_name,
            change=change_type,
            caller=(context or {}).get("caller")
        )

    async def start(self, seed: Optional[SeedRoutine] = None) -> None:
        """Connect the store, subscribe to invalidation, then run the startup hook."""
        await self.store.connect()
        self.bind()
        await self.on_service_started(seed)

    async def stop(self) -> None:
        self.unbind()
        await self.store.disconnect()

    async def on_service_started(self, seed: Optional[SeedRoutine] = None) -> None:
        """Seed the store once if a seed routine is given and the store is empty."""
        if seed is None:
            return

        count = await self.store.count()
        if count == 0:
            self.logger.info(f"The '{self.resource_name}' collection is empty. Seeding the collection...")
            await seed(self.store)
            self.logger.info("Seeding is done", records=await self.store.count())
