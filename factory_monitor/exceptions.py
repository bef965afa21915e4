"""
Exception taxonomy for the monitoring backend.

Every failure the core can report derives from FactoryMonitorError so callers
can choose how broadly to catch. Storage backends define their own
StorageError subclasses next to the client that raises them.

Exceptions:
    NotFoundError: A sensor, facility, alert or user id did not resolve.
    InvalidConfigurationError: Sensor configuration rejected at update time.
    CollectionFailure: A reading could not be acquired for a sensor.
    NotificationChannelError: A single notification channel failed.
    QueueSaturatedError: A worker pool queue was full.
    StorageError: Base class for persistence failures.
"""

from typing import Any, Optional


class FactoryMonitorError(Exception):
    """Base exception for the monitoring backend."""

    pass


class NotFoundError(FactoryMonitorError):
    """
    Raised when an entity id cannot be resolved.

    Attributes:
        entity: Entity kind (e.g., "sensor", "facility", "alert").
        entity_id: The id that was looked up.
    """

    def __init__(self, entity: str, entity_id: Any) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class InvalidConfigurationError(FactoryMonitorError):
    """Raised when a sensor configuration violates its invariants."""

    pass


class CollectionFailure(FactoryMonitorError):
    """
    Raised when a reading cannot be collected for a sensor.

    Attributes:
        sensor_id: The sensor whose collection failed.
        cause: Underlying exception, if any.
    """

    def __init__(
        self,
        sensor_id: int,
        message: str,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.sensor_id = sensor_id
        self.cause = cause
        super().__init__(f"collection failed for sensor {sensor_id}: {message}")


class NotificationChannelError(FactoryMonitorError):
    """
    Raised when a notification channel fails to deliver.

    Attributes:
        channel: Channel name (e.g., "email", "sms", "messaging").
    """

    def __init__(self, channel: str, message: str) -> None:
        self.channel = channel
        super().__init__(f"{channel}: {message}")


class QueueSaturatedError(FactoryMonitorError):
    """Raised by strict submissions when a worker pool queue is full."""

    def __init__(self, pool_name: str, capacity: int) -> None:
        self.pool_name = pool_name
        self.capacity = capacity
        super().__init__(f"worker pool '{pool_name}' queue is full (capacity={capacity})")


class StorageError(FactoryMonitorError):
    """Base exception for persistence failures."""

    pass
