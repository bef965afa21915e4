"""
Real-time messaging channels.

Alerts are pushed to named destinations (``/topic/alerts``,
``/topic/facility/3/alerts``, ...) and to per-user queues. The Redis channel
publishes JSON on pub/sub channels derived from the destination; the console
channel writes structured log lines and is used when Redis is not
configured.

Channel naming (Redis):
    Destination:  {prefix}:{destination}
    Per-user:     {prefix}:/user/{user_id}{destination}

Example:
    >>> channel = RedisMessagingChannel(redis_client, prefix="factory")
    >>> await channel.send("/topic/alerts", alert.to_payload())
    >>> await channel.send_to_user(3, "/queue/personal-alerts", alert.to_payload())
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

import structlog

from factory_monitor.exceptions import NotificationChannelError
from factory_monitor.storage.redis_client import RedisClient, RedisClientError

logger = structlog.get_logger(__name__)


class MessagingChannel(ABC):
    """Abstract destination-based messaging channel."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Channel name used in logs and dispatch reports."""
        ...

    @abstractmethod
    async def send(self, destination: str, payload: Dict[str, Any]) -> None:
        """
        Push a payload to a destination.

        Raises:
            NotificationChannelError: If delivery fails.
        """
        ...

    @abstractmethod
    async def send_to_user(
        self, user_id: int, destination: str, payload: Dict[str, Any]
    ) -> None:
        """
        Push a payload to one user's private destination.

        Raises:
            NotificationChannelError: If delivery fails.
        """
        ...

    def is_available(self) -> bool:
        """Check if the channel can currently deliver."""
        return True


class RedisMessagingChannel(MessagingChannel):
    """
    Messaging over Redis pub/sub.

    Attributes:
        client: Connected RedisClient.
        prefix: Channel name prefix.
    """

    def __init__(self, client: RedisClient, prefix: str = "factory") -> None:
        self.client = client
        self.prefix = prefix
        self.messages_sent = 0

    @property
    def name(self) -> str:
        return "redis"

    def channel_for(self, destination: str) -> str:
        """Pub/sub channel name for a destination."""
        return f"{self.prefix}:{destination}"

    def user_channel_for(self, user_id: int, destination: str) -> str:
        """Pub/sub channel name for a user's private destination."""
        return f"{self.prefix}:/user/{user_id}{destination}"

    def is_available(self) -> bool:
        return self.client.is_connected

    async def _publish(self, channel: str, payload: Dict[str, Any]) -> None:
        try:
            receivers = await self.client.publish(channel, payload)
        except RedisClientError as e:
            raise NotificationChannelError(self.name, str(e)) from e
        self.messages_sent += 1
        logger.debug("message_sent", channel=channel, receivers=receivers)

    async def send(self, destination: str, payload: Dict[str, Any]) -> None:
        await self._publish(self.channel_for(destination), payload)

    async def send_to_user(
        self, user_id: int, destination: str, payload: Dict[str, Any]
    ) -> None:
        await self._publish(self.user_channel_for(user_id, destination), payload)


class ConsoleMessagingChannel(MessagingChannel):
    """Writes every message as a structured log line."""

    def __init__(self) -> None:
        self.messages_sent = 0

    @property
    def name(self) -> str:
        return "console"

    async def send(self, destination: str, payload: Dict[str, Any]) -> None:
        self.messages_sent += 1
        logger.info(
            "console_message",
            destination=destination,
            alert_id=payload.get("id"),
            payload=payload,
        )

    async def send_to_user(
        self, user_id: int, destination: str, payload: Dict[str, Any]
    ) -> None:
        self.messages_sent += 1
        logger.info(
            "console_personal_message",
            user_id=user_id,
            destination=destination,
            alert_id=payload.get("id"),
        )
