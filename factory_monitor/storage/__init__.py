"""
Storage backends for the monitoring backend.

Components:
    memory: In-memory stores for sensors, facilities, readings, alerts and users
    redis_client: Async Redis client for persistence and pub/sub
    redis_stores: Redis-backed alert and reading stores
"""

from factory_monitor.storage.memory import (
    InMemoryAlertStore,
    InMemoryFacilityStore,
    InMemoryReadingStore,
    InMemorySensorStore,
    InMemoryUserDirectory,
    load_seed,
)
from factory_monitor.storage.redis_client import (
    RedisClient,
    RedisClientError,
    RedisConnectionException,
    RedisOperationError,
)
from factory_monitor.storage.redis_stores import RedisAlertStore, RedisReadingStore

__all__: list[str] = [
    # In-memory
    "InMemoryAlertStore",
    "InMemoryFacilityStore",
    "InMemoryReadingStore",
    "InMemorySensorStore",
    "InMemoryUserDirectory",
    "load_seed",
    # Redis
    "RedisAlertStore",
    "RedisClient",
    "RedisClientError",
    "RedisConnectionException",
    "RedisOperationError",
    "RedisReadingStore",
]
