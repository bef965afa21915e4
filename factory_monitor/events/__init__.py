"""
Event bus and worker pools.

Components:
    pool: Bounded asyncio worker pool with reject-on-full submission
    bus: Synchronous publish/subscribe onto per-subscriber pools
"""

from factory_monitor.events.bus import EventBus, EventHandler, Subscription
from factory_monitor.events.pool import WorkerPool

__all__: list[str] = [
    "EventBus",
    "EventHandler",
    "Subscription",
    "WorkerPool",
]
