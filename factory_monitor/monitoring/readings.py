"""
Reading log.

ReadingLog is the write path for collected readings and the query surface
over the reading time series (period and recency queries, anomaly listing,
basic statistics).

Example:
    >>> log = ReadingLog(reading_store, sensor_service)
    >>> await log.log_reading(7, 81.5)
    >>> stats = await log.get_statistics(7, start, end)
    >>> stats.count
    1
"""

from datetime import datetime, timezone
from typing import Callable, List, Optional

import structlog
from pydantic import BaseModel, Field

from factory_monitor.exceptions import InvalidConfigurationError
from factory_monitor.interfaces.stores import ReadingStore
from factory_monitor.models.sensors import Reading
from factory_monitor.monitoring.sensors import SensorService

logger = structlog.get_logger(__name__)


class ReadingStatistics(BaseModel):
    """Count, average, min and max of a reading window (zeros when empty)."""

    model_config = {"frozen": True, "extra": "forbid"}

    count: int = Field(default=0, ge=0)
    average: float = Field(default=0.0)
    min: float = Field(default=0.0)
    max: float = Field(default=0.0)


class ReadingLog:
    """
    Append and query sensor readings.

    Attributes:
        store: Backing reading store.
        sensors: Sensor service used to resolve sensors and thresholds.
    """

    def __init__(
        self,
        store: ReadingStore,
        sensors: SensorService,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.sensors = sensors
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def log_reading(
        self,
        sensor_id: int,
        value: float,
        collected_at: Optional[datetime] = None,
    ) -> Reading:
        """
        Append a reading for an existing sensor.

        Raises:
            NotFoundError: If the sensor does not exist.
        """
        await self.sensors.get_sensor(sensor_id)
        return await self.store.append(sensor_id, value, collected_at or self._clock())

    async def find_by_period(
        self,
        sensor_id: int,
        start: datetime,
        end: datetime,
    ) -> List[Reading]:
        """Readings collected within [start, end], oldest first."""
        return await self.store.find_by_period(sensor_id, start, end)

    async def find_recent(self, sensor_id: int, limit: int = 10) -> List[Reading]:
        """The newest readings of a sensor, newest first."""
        return await self.store.find_recent(sensor_id, limit)

    async def detect_anomalies(
        self,
        sensor_id: int,
        start: datetime,
        end: datetime,
    ) -> List[Reading]:
        """
        Readings in the window that fall outside the sensor's current range.

        Raises:
            NotFoundError: If the sensor does not exist.
            InvalidConfigurationError: If the sensor has no thresholds.
        """
        sensor = await self.sensors.get_sensor(sensor_id)
        if not sensor.has_thresholds:
            raise InvalidConfigurationError(
                f"sensor {sensor_id} has no thresholds configured"
            )
        readings = await self.store.find_by_period(sensor_id, start, end)
        return [r for r in readings if not sensor.is_value_within_threshold(r.value)]

    async def get_statistics(
        self,
        sensor_id: int,
        start: datetime,
        end: datetime,
    ) -> ReadingStatistics:
        readings = await self.store.find_by_period(sensor_id, start, end)
        if not readings:
            return ReadingStatistics()

        values = [r.value for r in readings]
        return ReadingStatistics(
            count=len(values),
            average=sum(values) / len(values),
            min=min(values),
            max=max(values),
        )

    async def latest_for_all_sensors(self) -> List[Reading]:
        """The newest reading of every sensor, ordered by sensor id."""
        latest = await self.store.latest_per_sensor()
        return [latest[k] for k in sorted(latest)]
