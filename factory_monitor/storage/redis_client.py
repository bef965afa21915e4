"""
Shared Redis connection for the Redis storage backend.

One RedisClient is opened by the service when STORAGE_BACKEND=redis and
handed to RedisAlertStore, RedisReadingStore and RedisMessagingChannel.
Responses are decoded to str, so stores read and write JSON text directly.

Example:
    >>> client = RedisClient(RedisConnectionConfig(url="redis://localhost:6379"))
    >>> await client.connect()
    >>> await client.publish("factory:/topic/alerts", {"id": 1})
    >>> await client.disconnect()
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

import structlog
from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from factory_monitor.config.models import RedisConnectionConfig
from factory_monitor.exceptions import StorageError

logger = structlog.get_logger(__name__)


class RedisClientError(StorageError):
    """Base exception for Redis client errors."""


class RedisConnectionException(RedisClientError):
    """Redis is unreachable or the client was never connected."""


class RedisOperationError(RedisClientError):
    """A Redis command failed."""


class RedisClient:
    """
    Owns the connection pool and exposes the redis.asyncio client.

    Attributes:
        config: Connection settings.

    A pre-built client (e.g. fakeredis) may be injected; it counts as
    connected immediately and must have been created with
    decode_responses=True.
    """

    def __init__(
        self,
        config: Optional[RedisConnectionConfig] = None,
        client: Optional[Redis] = None,  # type: ignore[type-arg]
    ) -> None:
        self.config = config or RedisConnectionConfig()
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = client  # type: ignore[type-arg]
        self._connected = client is not None

    @property
    def is_connected(self) -> bool:
        return self._connected and self._client is not None

    async def connect(self) -> None:
        """
        Open the pool and verify it with PING.

        Raises:
            RedisConnectionException: If Redis cannot be reached.
        """
        if self.is_connected:
            return

        self._pool = ConnectionPool.from_url(
            self.config.url,
            db=self.config.db,
            max_connections=self.config.max_connections,
            socket_timeout=self.config.socket_timeout,
            socket_connect_timeout=self.config.socket_timeout,
            decode_responses=True,
        )
        self._client = Redis(connection_pool=self._pool)

        try:
            await self._client.ping()
        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            logger.error("redis_connection_failed", url=self.config.url, error=str(e))
            await self.disconnect()
            raise RedisConnectionException(
                f"Cannot reach Redis at {self.config.url}: {e}"
            ) from e

        self._connected = True
        logger.info(
            "redis_connected",
            url=self.config.url,
            db=self.config.db,
            max_connections=self.config.max_connections,
        )

    async def disconnect(self) -> None:
        """Close the client and its pool. Safe to call more than once."""
        client, pool = self._client, self._pool
        self._client = None
        self._pool = None
        self._connected = False

        if client is not None:
            try:
                await client.aclose()
            except RedisError as e:
                logger.warning("redis_close_error", error=str(e))
        if pool is not None:
            await pool.aclose()

        logger.info("redis_disconnected")

    @property
    def redis(self) -> Redis:  # type: ignore[type-arg]
        """
        The underlying client.

        Raises:
            RedisConnectionException: If not connected.
        """
        if not self.is_connected:
            raise RedisConnectionException("Redis client is not connected")
        assert self._client is not None
        return self._client

    async def publish(self, channel: str, payload: Dict[str, Any]) -> int:
        """
        Publish a payload as JSON on a pub/sub channel.

        Returns:
            int: Number of subscribers that received it.

        Raises:
            RedisConnectionException: If not connected.
            RedisOperationError: If PUBLISH fails.
        """
        redis = self.redis
        try:
            receivers = await redis.publish(channel, json.dumps(payload, default=str))
        except RedisError as e:
            logger.error("redis_publish_failed", channel=channel, error=str(e))
            raise RedisOperationError(f"PUBLISH to {channel} failed: {e}") from e

        logger.debug("redis_published", channel=channel, receivers=receivers)
        return int(receivers)
