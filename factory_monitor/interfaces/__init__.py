"""
Abstract interfaces for the monitoring backend.

This module defines the abstract base classes that storage backends and
reading collectors implement. The core only depends on these contracts.

Example:
    >>> from factory_monitor.interfaces import AlertStore, ReadingCollector
    >>> class PlcCollector(ReadingCollector):
    ...     async def collect(self, sensor: Sensor) -> float:
    ...         return await self._plc.read(sensor.id)

Modules:
    stores: Store ABCs for sensors, facilities, readings, alerts and users
    collector: ReadingCollector ABC for measurement acquisition
"""

from factory_monitor.interfaces.collector import ReadingCollector
from factory_monitor.interfaces.stores import (
    AlertStore,
    FacilityStore,
    ReadingStore,
    SensorStore,
    UserDirectory,
)

__all__: list[str] = [
    "AlertStore",
    "FacilityStore",
    "ReadingCollector",
    "ReadingStore",
    "SensorStore",
    "UserDirectory",
]
