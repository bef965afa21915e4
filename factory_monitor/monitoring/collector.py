"""
Reading collector implementations.

Collectors:
    SimulatedReadingCollector: Plausible values per sensor type with rare
        injected excursions; stands in for a hardware adapter.
    StaticReadingCollector: Fixed values per sensor id, for replay and tests.

Example:
    >>> collector = SimulatedReadingCollector(CollectorConfig(seed=42))
    >>> value = await collector.collect(sensor)
"""

import random
from typing import Dict, Mapping, Optional

import structlog

from factory_monitor.config.models import CollectorConfig, SimulationProfile
from factory_monitor.exceptions import CollectionFailure
from factory_monitor.interfaces.collector import ReadingCollector
from factory_monitor.models.sensors import Sensor

logger = structlog.get_logger(__name__)


class SimulatedReadingCollector(ReadingCollector):
    """
    Generates readings from per-type simulation profiles.

    Each draw is uniform over [base, base + spread); with the profile's
    excursion probability the excursion offset is added, which is what
    pushes simulated sensors out of range now and then.

    Attributes:
        config: Collector configuration holding the profiles and the seed.
    """

    def __init__(self, config: Optional[CollectorConfig] = None) -> None:
        self.config = config or CollectorConfig()
        self._rng = random.Random(self.config.seed)

    @property
    def name(self) -> str:
        return "simulated"

    def profile_for(self, sensor: Sensor) -> SimulationProfile:
        """The simulation profile applied to a sensor's type."""
        return self.config.profiles.get(sensor.type, self.config.default_profile)

    async def collect(self, sensor: Sensor) -> float:
        profile = self.profile_for(sensor)
        value = profile.base + self._rng.random() * profile.spread
        if profile.excursion and self._rng.random() < profile.excursion_probability:
            value += profile.excursion
            logger.debug(
                "simulated_excursion",
                sensor_id=sensor.id,
                type=sensor.type.value,
                value=value,
            )
        return value


class StaticReadingCollector(ReadingCollector):
    """
    Returns a fixed value per sensor id.

    A sensor without a configured value fails with CollectionFailure, which
    is how tests model a broken sensor.
    """

    def __init__(self, values: Optional[Mapping[int, float]] = None) -> None:
        self._values: Dict[int, float] = dict(values or {})

    @property
    def name(self) -> str:
        return "static"

    def set_value(self, sensor_id: int, value: float) -> None:
        self._values[sensor_id] = value

    def remove_value(self, sensor_id: int) -> None:
        self._values.pop(sensor_id, None)

    async def collect(self, sensor: Sensor) -> float:
        try:
            return self._values[sensor.id]
        except KeyError:
            raise CollectionFailure(sensor.id, "no value configured") from None


def create_collector(config: CollectorConfig) -> ReadingCollector:
    """
    Build the collector selected by configuration.

    Example:
        >>> collector = create_collector(config.monitoring.collector)
        >>> collector.name
        'simulated'
    """
    if config.kind == "static":
        return StaticReadingCollector(config.static_values)
    return SimulatedReadingCollector(config)
