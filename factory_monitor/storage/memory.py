"""
In-memory store implementations.

These back local runs and tests. Each store keeps a plain dict keyed by id;
the service runs on a single event loop and no store method awaits while
mutating, so no locking is needed.

Example:
    >>> sensors = InMemorySensorStore()
    >>> await sensors.save(sensor)
    >>> alerts = InMemoryAlertStore()
    >>> alert_id = await alerts.allocate_id()
"""

import itertools
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import structlog

from factory_monitor.config.models import SeedConfig
from factory_monitor.interfaces.stores import (
    AlertStore,
    FacilityStore,
    ReadingStore,
    SensorStore,
    UserDirectory,
)
from factory_monitor.models.alerts import Alert
from factory_monitor.models.sensors import Facility, Reading, Sensor
from factory_monitor.models.users import User, UserRole

logger = structlog.get_logger(__name__)


def _newest_first(alerts: Iterable[Alert]) -> List[Alert]:
    return sorted(alerts, key=lambda a: (a.created_at, a.id), reverse=True)


class InMemorySensorStore(SensorStore):
    """Sensor records held in a dict."""

    def __init__(self, sensors: Optional[Iterable[Sensor]] = None) -> None:
        self._sensors: Dict[int, Sensor] = {s.id: s for s in sensors or []}
        start = max(self._sensors, default=0) + 1
        self._ids = itertools.count(start)

    async def allocate_id(self) -> int:
        sensor_id = next(self._ids)
        while sensor_id in self._sensors:
            sensor_id = next(self._ids)
        return sensor_id

    async def get(self, sensor_id: int) -> Optional[Sensor]:
        return self._sensors.get(sensor_id)

    async def list_all(self) -> List[Sensor]:
        return [self._sensors[k] for k in sorted(self._sensors)]

    async def save(self, sensor: Sensor) -> Sensor:
        self._sensors[sensor.id] = sensor
        return sensor

    async def delete(self, sensor_id: int) -> bool:
        return self._sensors.pop(sensor_id, None) is not None


class InMemoryFacilityStore(FacilityStore):
    """Facility records held in a dict."""

    def __init__(self, facilities: Optional[Iterable[Facility]] = None) -> None:
        self._facilities: Dict[int, Facility] = {f.id: f for f in facilities or []}

    async def get(self, facility_id: int) -> Optional[Facility]:
        return self._facilities.get(facility_id)

    async def list_all(self) -> List[Facility]:
        return [self._facilities[k] for k in sorted(self._facilities)]

    async def save(self, facility: Facility) -> Facility:
        self._facilities[facility.id] = facility
        return facility


class InMemoryReadingStore(ReadingStore):
    """
    Append-only readings kept per sensor in collection order.

    Attributes:
        max_per_sensor: Optional cap; the oldest readings are dropped first.
    """

    def __init__(self, max_per_sensor: Optional[int] = None) -> None:
        self.max_per_sensor = max_per_sensor
        self._readings: Dict[int, List[Reading]] = {}
        self._ids = itertools.count(1)

    async def append(
        self,
        sensor_id: int,
        value: float,
        collected_at: datetime,
    ) -> Reading:
        reading = Reading(
            id=next(self._ids),
            sensor_id=sensor_id,
            value=value,
            collected_at=collected_at,
        )
        series = self._readings.setdefault(sensor_id, [])
        series.append(reading)
        if self.max_per_sensor is not None and len(series) > self.max_per_sensor:
            del series[: len(series) - self.max_per_sensor]
        return reading

    async def find_by_period(
        self,
        sensor_id: int,
        start: datetime,
        end: datetime,
    ) -> List[Reading]:
        return [
            r
            for r in self._readings.get(sensor_id, [])
            if start <= r.collected_at <= end
        ]

    async def find_recent(self, sensor_id: int, limit: int = 10) -> List[Reading]:
        series = self._readings.get(sensor_id, [])
        return list(reversed(series[-limit:])) if limit > 0 else []

    async def latest_per_sensor(self) -> Dict[int, Reading]:
        return {sid: series[-1] for sid, series in self._readings.items() if series}

    def count(self, sensor_id: Optional[int] = None) -> int:
        """Number of stored readings, overall or for one sensor."""
        if sensor_id is not None:
            return len(self._readings.get(sensor_id, []))
        return sum(len(series) for series in self._readings.values())


class InMemoryAlertStore(AlertStore):
    """Alert records held in a dict; ids are never reused."""

    def __init__(self) -> None:
        self._alerts: Dict[int, Alert] = {}
        self._ids = itertools.count(1)

    async def allocate_id(self) -> int:
        return next(self._ids)

    async def save(self, alert: Alert) -> Alert:
        self._alerts[alert.id] = alert
        return alert

    async def get(self, alert_id: int) -> Optional[Alert]:
        return self._alerts.get(alert_id)

    async def list_all(self) -> List[Alert]:
        return _newest_first(self._alerts.values())

    async def list_by_sensor(self, sensor_id: int) -> List[Alert]:
        return _newest_first(a for a in self._alerts.values() if a.sensor_id == sensor_id)

    async def list_by_period(self, start: datetime, end: datetime) -> List[Alert]:
        return _newest_first(
            a for a in self._alerts.values() if start <= a.created_at <= end
        )

    async def list_top(self, limit: int) -> List[Alert]:
        return (await self.list_all())[: max(limit, 0)]

    async def delete(self, alert_id: int) -> bool:
        return self._alerts.pop(alert_id, None) is not None

    async def delete_by_sensor(self, sensor_id: int) -> int:
        doomed = [k for k, a in self._alerts.items() if a.sensor_id == sensor_id]
        for alert_id in doomed:
            del self._alerts[alert_id]
        return len(doomed)

    async def delete_created_before(self, cutoff: datetime) -> int:
        doomed = [k for k, a in self._alerts.items() if a.created_at < cutoff]
        for alert_id in doomed:
            del self._alerts[alert_id]
        return len(doomed)


class InMemoryUserDirectory(UserDirectory):
    """
    User directory over a fixed list of users.

    Example:
        >>> directory = InMemoryUserDirectory([admin, manager, operator])
        >>> await directory.get_active_user_ids_by_role(UserRole.OPERATOR)
        [3]
    """

    def __init__(self, users: Optional[Iterable[User]] = None) -> None:
        self._users: Dict[int, User] = {u.id: u for u in users or []}

    def add(self, user: User) -> None:
        """Add or replace a user."""
        self._users[user.id] = user

    def _active(self, role: UserRole) -> List[User]:
        return [
            self._users[k]
            for k in sorted(self._users)
            if self._users[k].is_active and self._users[k].role == role
        ]

    async def get_active_user_ids_by_role(self, role: UserRole) -> List[int]:
        return [u.id for u in self._active(role)]

    async def get_active_emails_by_role(self, role: UserRole) -> List[str]:
        return [u.email for u in self._active(role) if u.has_valid_email]  # type: ignore[misc]

    async def get_emergency_phone_numbers(self) -> List[str]:
        return [u.phone for u in self._active(UserRole.MANAGER) if u.has_valid_phone]  # type: ignore[misc]


async def load_seed(
    seed: SeedConfig,
    sensors: SensorStore,
    facilities: FacilityStore,
    users: Optional[InMemoryUserDirectory] = None,
) -> None:
    """
    Load seed facilities, sensors and users into the given stores.

    Args:
        seed: Validated seed data.
        sensors: Sensor store to populate.
        facilities: Facility store to populate.
        users: Optional user directory to populate.
    """
    for facility in seed.facilities:
        await facilities.save(facility)
    for sensor in seed.sensors:
        await sensors.save(sensor)
    if users is not None:
        for user in seed.users:
            users.add(user)

    logger.info(
        "seed_loaded",
        facilities=len(seed.facilities),
        sensors=len(seed.sensors),
        users=len(seed.users) if users is not None else 0,
    )
