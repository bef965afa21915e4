"""
In-process publish/subscribe event bus.

Subscribers register a coroutine handler for an event type together with
the worker pool their deliveries run on. publish() is synchronous: it
enqueues one delivery per matching subscription and returns immediately,
so the publisher never waits for handlers.

Example:
    >>> bus = EventBus()
    >>> bus.subscribe(AlertCreatedEvent, dispatcher.handle, notification_pool, "dispatcher")
    >>> bus.publish(AlertCreatedEvent.from_alert(alert))
    1
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, Type

import structlog

from factory_monitor.events.pool import WorkerPool

logger = structlog.get_logger(__name__)

EventHandler = Callable[[Any], Awaitable[None]]


@dataclass
class Subscription:
    """
    A handler registered for an event type.

    Attributes:
        event_type: Events that are instances of this type are delivered.
        handler: Async callback receiving the event.
        pool: Worker pool the deliveries run on.
        name: Subscriber name used in logs and for unsubscribing.
        created_at: When the subscription was registered.
    """

    event_type: Type[Any]
    handler: EventHandler
    pool: WorkerPool
    name: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def matches(self, event: Any) -> bool:
        """Check if the event should be delivered to this subscription."""
        return isinstance(event, self.event_type)


class EventBus:
    """
    Routes events to subscribers on their own worker pools.

    Each subscription is delivered independently: a full queue on one
    subscriber's pool rejects only that delivery.
    """

    def __init__(self) -> None:
        self._subscriptions: List[Subscription] = []
        self.published = 0
        self.deliveries_rejected = 0

    def subscribe(
        self,
        event_type: Type[Any],
        handler: EventHandler,
        pool: WorkerPool,
        name: Optional[str] = None,
    ) -> Subscription:
        """
        Register a handler for an event type.

        Args:
            event_type: Event class to receive (subclasses included).
            handler: Async callback.
            pool: Worker pool to run deliveries on.
            name: Subscriber name; defaults to the handler's qualified name.

        Returns:
            Subscription: The registration, usable with unsubscribe().
        """
        subscription = Subscription(
            event_type=event_type,
            handler=handler,
            pool=pool,
            name=name or getattr(handler, "__qualname__", repr(handler)),
        )
        self._subscriptions.append(subscription)

        logger.info(
            "event_subscribed",
            event_type=event_type.__name__,
            subscriber=subscription.name,
            pool=pool.name,
        )
        return subscription

    def unsubscribe(self, subscription: Subscription | str) -> bool:
        """
        Remove a subscription, by object or by subscriber name.

        Returns:
            bool: True if anything was removed.
        """
        before = len(self._subscriptions)
        if isinstance(subscription, str):
            name = subscription
            self._subscriptions = [s for s in self._subscriptions if s.name != name]
        else:
            name = subscription.name
            self._subscriptions = [s for s in self._subscriptions if s is not subscription]
        removed = len(self._subscriptions) < before
        if removed:
            logger.info("event_unsubscribed", subscriber=name)
        return removed

    def subscriptions(self, event_type: Optional[Type[Any]] = None) -> List[Subscription]:
        """Registered subscriptions, optionally filtered by event type."""
        if event_type is None:
            return list(self._subscriptions)
        return [s for s in self._subscriptions if s.event_type is event_type]

    def publish(self, event: Any) -> int:
        """
        Enqueue the event for every matching subscriber and return.

        Args:
            event: The event instance.

        Returns:
            int: Number of deliveries accepted by the subscribers' pools.
        """
        self.published += 1
        accepted = 0

        for subscription in list(self._subscriptions):
            if not subscription.matches(event):
                continue
            if subscription.pool.submit(
                subscription.handler, event, label=subscription.name
            ):
                accepted += 1
            else:
                self.deliveries_rejected += 1
                logger.warning(
                    "event_delivery_rejected",
                    event_type=type(event).__name__,
                    subscriber=subscription.name,
                    pool=subscription.pool.name,
                )

        logger.debug(
            "event_published",
            event_type=type(event).__name__,
            deliveries=accepted,
        )
        return accepted
