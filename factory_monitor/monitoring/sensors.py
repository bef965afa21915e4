"""
Sensor domain service.

SensorService is the lookup side the monitoring loop depends on (active
sensor ids, sensor and facility resolution, threshold checks) plus the
admin-side configuration operations. Invalid threshold pairs are rejected
here, synchronously, so they never reach the monitoring loop.

Example:
    >>> service = SensorService(sensor_store, facility_store)
    >>> await service.configure_thresholds(7, 60.0, 80.0)
    >>> await service.get_active_sensor_ids()
    [7]
"""

from typing import List, Optional

import structlog
from pydantic import ValidationError

from factory_monitor.exceptions import InvalidConfigurationError, NotFoundError
from factory_monitor.interfaces.stores import FacilityStore, SensorStore
from factory_monitor.models.sensors import Facility, Sensor, SensorType

logger = structlog.get_logger(__name__)


class SensorService:
    """
    Sensor lookups and configuration.

    Attributes:
        sensors: Sensor store.
        facilities: Facility store.
    """

    def __init__(self, sensors: SensorStore, facilities: FacilityStore) -> None:
        self.sensors = sensors
        self.facilities = facilities

    # =========================================================================
    # LOOKUPS USED BY THE MONITORING LOOP
    # =========================================================================

    async def get_active_sensor_ids(self) -> List[int]:
        """
        Ids of the sensors to monitor.

        A sensor is active when its facility is RUNNING and both of its
        thresholds are configured.

        Returns:
            List[int]: Active sensor ids in ascending order.
        """
        running = {f.id for f in await self.facilities.list_all() if f.is_running}
        return [
            s.id
            for s in await self.sensors.list_all()
            if s.facility_id in running and s.has_thresholds
        ]

    async def get_sensor(self, sensor_id: int) -> Sensor:
        """
        Resolve a sensor.

        Raises:
            NotFoundError: If the sensor does not exist.
        """
        sensor = await self.sensors.get(sensor_id)
        if sensor is None:
            raise NotFoundError("sensor", sensor_id)
        return sensor

    async def get_facility(self, facility_id: int) -> Facility:
        """
        Resolve a facility.

        Raises:
            NotFoundError: If the facility does not exist.
        """
        facility = await self.facilities.get(facility_id)
        if facility is None:
            raise NotFoundError("facility", facility_id)
        return facility

    async def sensor_has_thresholds(self, sensor_id: int) -> bool:
        """Check if both thresholds are configured for a sensor."""
        return (await self.get_sensor(sensor_id)).has_thresholds

    async def is_value_within_threshold(self, sensor_id: int, value: float) -> bool:
        """Check a value against a sensor's range (True without thresholds)."""
        return (await self.get_sensor(sensor_id)).is_value_within_threshold(value)

    async def get_sensors_by_facility(self, facility_id: int) -> List[Sensor]:
        """Sensors attached to a facility."""
        return await self.sensors.list_by_facility(facility_id)

    async def get_all_sensors(self) -> List[Sensor]:
        """All sensors ordered by id."""
        return await self.sensors.list_all()

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    async def create_sensor(
        self,
        facility_id: int,
        name: str,
        sensor_type: SensorType,
        unit: Optional[str] = None,
        threshold_min: Optional[float] = None,
        threshold_max: Optional[float] = None,
    ) -> Sensor:
        """
        Register a new sensor on an existing facility.

        Raises:
            NotFoundError: If the facility does not exist.
            InvalidConfigurationError: If a required field or the threshold
                pair is invalid.
        """
        await self.get_facility(facility_id)
        if not name or not name.strip():
            raise InvalidConfigurationError("sensor name is required")

        sensor_id = await self.sensors.allocate_id()
        try:
            sensor = Sensor(
                id=sensor_id,
                facility_id=facility_id,
                name=name.strip(),
                type=sensor_type,
                unit=unit,
                threshold_min=threshold_min,
                threshold_max=threshold_max,
            )
        except ValidationError as e:
            raise InvalidConfigurationError(f"invalid sensor: {e}") from e
        await self.sensors.save(sensor)

        logger.info(
            "sensor_created",
            sensor_id=sensor.id,
            facility_id=facility_id,
            type=sensor.type.value,
            has_thresholds=sensor.has_thresholds,
        )
        return sensor

    async def update_sensor(
        self,
        sensor_id: int,
        name: Optional[str] = None,
        sensor_type: Optional[SensorType] = None,
        unit: Optional[str] = None,
    ) -> Sensor:
        """
        Update the descriptive fields of a sensor; None keeps the current value.

        Raises:
            NotFoundError: If the sensor does not exist.
            InvalidConfigurationError: If the name is blank.
        """
        sensor = await self.get_sensor(sensor_id)
        if name is not None and not name.strip():
            raise InvalidConfigurationError("sensor name must not be blank")

        fields = sensor.model_dump()
        fields.update(
            name=name.strip() if name is not None else sensor.name,
            type=sensor_type or sensor.type,
            unit=unit if unit is not None else sensor.unit,
        )
        try:
            updated = Sensor.model_validate(fields)
        except ValidationError as e:
            raise InvalidConfigurationError(f"invalid sensor: {e}") from e
        await self.sensors.save(updated)
        logger.info("sensor_updated", sensor_id=sensor_id)
        return updated

    async def configure_thresholds(
        self,
        sensor_id: int,
        threshold_min: float,
        threshold_max: float,
    ) -> Sensor:
        """
        Set or replace a sensor's threshold pair.

        Existing alerts keep the thresholds they were created with.

        Raises:
            NotFoundError: If the sensor does not exist.
            InvalidConfigurationError: If min >= max, min < 0, or only one
                bound is given.
        """
        sensor = await self.get_sensor(sensor_id)
        updated = sensor.with_thresholds(threshold_min, threshold_max)
        await self.sensors.save(updated)

        logger.info(
            "sensor_thresholds_configured",
            sensor_id=sensor_id,
            threshold_min=threshold_min,
            threshold_max=threshold_max,
        )
        return updated

    async def clear_thresholds(self, sensor_id: int) -> Sensor:
        """Remove a sensor's thresholds, which takes it out of monitoring."""
        sensor = await self.get_sensor(sensor_id)
        updated = sensor.with_thresholds(None, None)
        await self.sensors.save(updated)
        logger.info("sensor_thresholds_cleared", sensor_id=sensor_id)
        return updated

    async def delete_sensor(self, sensor_id: int) -> None:
        """
        Delete a sensor.

        Raises:
            NotFoundError: If the sensor does not exist.
        """
        if not await self.sensors.delete(sensor_id):
            raise NotFoundError("sensor", sensor_id)
        logger.info("sensor_deleted", sensor_id=sensor_id)
