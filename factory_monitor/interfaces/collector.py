"""
Abstract base class for reading collectors.

A collector acquires one fresh measurement for a sensor. In production this
talks to a hardware or OPC adapter; the simulated collector stands in for
local runs and tests.

Example:
    >>> class OpcCollector(ReadingCollector):
    ...     @property
    ...     def name(self) -> str:
    ...         return "opc"
    ...
    ...     async def collect(self, sensor: Sensor) -> float:
    ...         return await self._client.read_node(sensor.id)
"""

from abc import ABC, abstractmethod

from factory_monitor.models.sensors import Sensor


class ReadingCollector(ABC):
    """
    Acquires measurements for sensors.

    Implementations may be slow or fail. The scheduler bounds each call
    with a timeout and isolates failures per sensor, so collect() is free
    to raise.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Return the collector identifier used in logs.

        Returns:
            str: Lowercase collector name (e.g., "simulated").
        """
        pass

    @abstractmethod
    async def collect(self, sensor: Sensor) -> float:
        """
        Acquire one measurement for a sensor.

        Args:
            sensor: The sensor to read.

        Returns:
            float: The measured value.

        Raises:
            CollectionFailure: If the measurement cannot be acquired.
        """
        pass

    async def close(self) -> None:
        """Release any resources held by the collector."""
        return None
