"""
Abstract base classes for the monitoring backend's stores.

The core treats persistence as an opaque key-value store per entity type.
These interfaces define the contract every backend (in-memory, Redis)
implements, so the scheduler and alert service never depend on a concrete
engine.

Stores:
    SensorStore: Sensor configuration records
    FacilityStore: Facility records
    ReadingStore: Append-only reading time series
    AlertStore: Alert records and their query shapes
    UserDirectory: Notification recipients by role

Example:
    >>> class MySensorStore(SensorStore):
    ...     async def get(self, sensor_id: int) -> Optional[Sensor]:
    ...         ...
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from factory_monitor.models.alerts import Alert
from factory_monitor.models.sensors import Facility, Reading, Sensor
from factory_monitor.models.users import UserRole


class SensorStore(ABC):
    """Sensor configuration records."""

    @abstractmethod
    async def allocate_id(self) -> int:
        """Reserve a new sensor id."""
        pass

    @abstractmethod
    async def get(self, sensor_id: int) -> Optional[Sensor]:
        """Return the sensor, or None if it does not exist."""
        pass

    @abstractmethod
    async def list_all(self) -> List[Sensor]:
        """Return all sensors ordered by id."""
        pass

    @abstractmethod
    async def save(self, sensor: Sensor) -> Sensor:
        """Insert or replace a sensor."""
        pass

    @abstractmethod
    async def delete(self, sensor_id: int) -> bool:
        """Delete a sensor; returns False if it did not exist."""
        pass

    async def list_by_facility(self, facility_id: int) -> List[Sensor]:
        """Return the sensors attached to a facility."""
        return [s for s in await self.list_all() if s.facility_id == facility_id]


class FacilityStore(ABC):
    """Facility records."""

    @abstractmethod
    async def get(self, facility_id: int) -> Optional[Facility]:
        """Return the facility, or None if it does not exist."""
        pass

    @abstractmethod
    async def list_all(self) -> List[Facility]:
        """Return all facilities ordered by id."""
        pass

    @abstractmethod
    async def save(self, facility: Facility) -> Facility:
        """Insert or replace a facility."""
        pass


class ReadingStore(ABC):
    """
    Append-only time series of readings.

    Implementations must never mutate a reading once appended.
    """

    @abstractmethod
    async def append(
        self,
        sensor_id: int,
        value: float,
        collected_at: datetime,
    ) -> Reading:
        """
        Append a reading.

        Args:
            sensor_id: Sensor that produced the value.
            value: Measured value.
            collected_at: Collection timestamp.

        Returns:
            Reading: The stored reading with its assigned id.
        """
        pass

    @abstractmethod
    async def find_by_period(
        self,
        sensor_id: int,
        start: datetime,
        end: datetime,
    ) -> List[Reading]:
        """Readings with start <= collected_at <= end, oldest first."""
        pass

    @abstractmethod
    async def find_recent(self, sensor_id: int, limit: int = 10) -> List[Reading]:
        """The newest readings for a sensor, newest first."""
        pass

    @abstractmethod
    async def latest_per_sensor(self) -> Dict[int, Reading]:
        """The newest reading of every sensor that has one."""
        pass


class AlertStore(ABC):
    """
    Alert records.

    Every list-returning method orders alerts newest first (by created_at,
    then by id).
    """

    @abstractmethod
    async def allocate_id(self) -> int:
        """Reserve a new, never reused alert id."""
        pass

    @abstractmethod
    async def save(self, alert: Alert) -> Alert:
        """Persist an alert."""
        pass

    @abstractmethod
    async def get(self, alert_id: int) -> Optional[Alert]:
        """Return the alert, or None if it does not exist."""
        pass

    @abstractmethod
    async def list_all(self) -> List[Alert]:
        """All alerts, newest first."""
        pass

    @abstractmethod
    async def list_by_sensor(self, sensor_id: int) -> List[Alert]:
        """Alerts for one sensor, newest first."""
        pass

    @abstractmethod
    async def list_by_period(self, start: datetime, end: datetime) -> List[Alert]:
        """Alerts with start <= created_at <= end, newest first."""
        pass

    @abstractmethod
    async def list_top(self, limit: int) -> List[Alert]:
        """The newest `limit` alerts."""
        pass

    @abstractmethod
    async def delete(self, alert_id: int) -> bool:
        """Delete one alert; returns False if it did not exist."""
        pass

    @abstractmethod
    async def delete_by_sensor(self, sensor_id: int) -> int:
        """Delete all alerts for a sensor; returns the number removed."""
        pass

    @abstractmethod
    async def delete_created_before(self, cutoff: datetime) -> int:
        """Delete alerts with created_at strictly before cutoff."""
        pass


class UserDirectory(ABC):
    """Notification recipients looked up by role."""

    @abstractmethod
    async def get_active_user_ids_by_role(self, role: UserRole) -> List[int]:
        """Ids of active users with the role."""
        pass

    @abstractmethod
    async def get_active_emails_by_role(self, role: UserRole) -> List[str]:
        """Valid email addresses of active users with the role."""
        pass

    @abstractmethod
    async def get_emergency_phone_numbers(self) -> List[str]:
        """Valid phone numbers of active managers."""
        pass
