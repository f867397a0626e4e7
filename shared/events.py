"""
In-process event bus for resource services.

Events are typed; subscribers register for an event class and optionally a
single resource. ``broadcast`` never waits for delivery: every matching
handler runs in its own task, and failures are logged instead of reaching
the broadcaster. ``drain`` waits for everything currently in flight.
"""

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, List, Optional, Set, Tuple, Type

from shared.logging import get_logger


@dataclass(frozen=True)
class Event:
    """Base class for bus events."""

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class CacheCleanEvent(Event):
    """Cached data for ``resource`` is stale."""

    resource: str

    @property
    def name(self) -> str:
        return f"cache.clean.{self.resource}"


Handler = Callable[[Event], Awaitable[None]]


@dataclass
class Subscription:
    event_type: Type[Event]
    handler: Handler
    resource: Optional[str] = None

    def matches(self, event: Event) -> bool:
        if not isinstance(event, self.event_type):
            return False
        if self.resource is None:
            return True
        return getattr(event, "resource", None) == self.resource


class EventBus:
    """Fire-and-forget publish/subscribe within one process."""

    def __init__(self, history_size: int = 100):
        self.logger = get_logger("events.bus")
        self._subscriptions: List[Subscription] = []
        self._pending: Set[asyncio.Task] = set()
        self.history: Deque[str] = deque(maxlen=history_size)

    def subscribe(
        self,
        event_type: Type[Event],
        handler: Handler,
        resource: Optional[str] = None
    ) -> Subscription:
        """Register ``handler`` for ``event_type`` events."""
        subscription = Subscription(event_type, handler, resource)
        self._subscriptions.append(subscription)
        self.logger.debug(
            "Subscribed handler",
            event_type=event_type.__name__,
            resource=resource
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove a subscription. Returns False if it was not registered."""
        try:
            self._subscriptions.remove(subscription)
            return True
        except ValueError:
            return False

    def broadcast(self, event: Event) -> int:
        """Schedule delivery of ``event`` to every matching subscriber.

        Returns the number of handlers scheduled.
        """
        self.history.append(event.name)
        delivered = 0
        for subscription in list(self._subscriptions):
            if not subscription.matches(event):
                continue
            task = asyncio.create_task(self._deliver(subscription, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            delivered += 1

        self.logger.debug("Event broadcast", event_name=event.name, handlers=delivered)
        return delivered

    async def _deliver(self, subscription: Subscription, event: Event) -> None:
        try:
            await subscription.handler(event)
        except Exception as e:
            self.logger.error("Event handler failed", event_name=event.name, error=str(e))

    async def drain(self) -> None:
        """Wait until all in-flight deliveries have finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def pending(self) -> int:
        return len(self._pending)

    def subscriptions(self) -> List[Tuple[str, Optional[str]]]:
        return [(s.event_type.__name__, s.resource) for s in self._subscriptions]
