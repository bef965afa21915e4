"""Shared fixtures built on the in-memory stores."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import pytest
import pytest_asyncio

from factory_monitor.detection.alert_service import AlertService
from factory_monitor.events import EventBus, WorkerPool
from factory_monitor.models.alerts import Alert
from factory_monitor.models.sensors import Facility, FacilityStatus, Sensor, SensorType
from factory_monitor.models.users import User, UserRole
from factory_monitor.monitoring import ReadingLog, SensorService
from factory_monitor.storage import (
    InMemoryAlertStore,
    InMemoryFacilityStore,
    InMemoryReadingStore,
    InMemorySensorStore,
    InMemoryUserDirectory,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock injected wherever services read the time."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def facilities() -> list[Facility]:
    return [
        Facility(id=1, name="Press #1", location="Hall A", status=FacilityStatus.RUNNING),
        Facility(id=2, name="Furnace #2", location="Hall B", status=FacilityStatus.RUNNING),
        Facility(id=3, name="Packaging line", status=FacilityStatus.MAINTENANCE),
    ]


@pytest.fixture
def sensors() -> list[Sensor]:
    return [
        Sensor(
            id=7,
            facility_id=1,
            name="Oil temperature",
            type=SensorType.TEMPERATURE,
            unit="°C",
            threshold_min=60.0,
            threshold_max=80.0,
        ),
        Sensor(
            id=8,
            facility_id=1,
            name="Hydraulic pressure",
            type=SensorType.PRESSURE,
            unit="bar",
            threshold_min=2.0,
            threshold_max=9.0,
        ),
        Sensor(id=9, facility_id=2, name="Heater current", type=SensorType.CURRENT, unit="A"),
        Sensor(
            id=10,
            facility_id=3,
            name="Sealer temperature",
            type=SensorType.TEMPERATURE,
            unit="°C",
            threshold_min=60.0,
            threshold_max=90.0,
        ),
        Sensor(
            id=11,
            facility_id=2,
            name="Ambient humidity",
            type=SensorType.HUMIDITY,
            unit="%",
            threshold_min=35.0,
            threshold_max=75.0,
        ),
    ]


@pytest.fixture
def users() -> list[User]:
    return [
        User(id=1, username="admin", role=UserRole.ADMIN, email="admin@plant.local", phone="010-0000-0000"),
        User(id=2, username="manager", role=UserRole.MANAGER, email="manager@plant.local", phone="010-1234-5678"),
        User(id=3, username="operator.a", role=UserRole.OPERATOR, email="op.a@plant.local"),
        User(id=4, username="operator.b", role=UserRole.OPERATOR, is_active=False),
        User(id=5, username="night.manager", role=UserRole.MANAGER, email="", phone="call me"),
    ]


@pytest.fixture
def user_directory(users: list[User]) -> InMemoryUserDirectory:
    return InMemoryUserDirectory(users)


@pytest.fixture
def sensor_service(sensors: list[Sensor], facilities: list[Facility]) -> SensorService:
    return SensorService(InMemorySensorStore(sensors), InMemoryFacilityStore(facilities))


@pytest.fixture
def reading_store() -> InMemoryReadingStore:
    return InMemoryReadingStore()


@pytest.fixture
def reading_log(
    reading_store: InMemoryReadingStore,
    sensor_service: SensorService,
    clock: FakeClock,
) -> ReadingLog:
    return ReadingLog(reading_store, sensor_service, clock=clock)


@pytest.fixture
def alert_store() -> InMemoryAlertStore:
    return InMemoryAlertStore()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest_asyncio.fixture
async def notification_pool():
    pool = WorkerPool("notification", core_size=2, max_size=5, queue_capacity=100)
    yield pool
    await pool.shutdown(grace_seconds=1.0)


@pytest.fixture
def alert_service(
    alert_store: InMemoryAlertStore,
    sensor_service: SensorService,
    bus: EventBus,
    clock: FakeClock,
) -> AlertService:
    return AlertService(alert_store, sensor_service, bus, clock=clock)


@pytest.fixture
def make_alert() -> Callable[..., Alert]:
    """Build an alert on the oil temperature sensor (range 60-80)."""

    def _make(
        alert_id: int = 1,
        value: float = 95.0,
        created_at: Optional[datetime] = None,
        **overrides: Any,
    ) -> Alert:
        fields: dict[str, Any] = {
            "id": alert_id,
            "sensor_id": 7,
            "value": value,
            "message": "Oil temperature out of range",
            "created_at": created_at or NOW,
            "sensor_name": "Oil temperature",
            "sensor_type": SensorType.TEMPERATURE,
            "sensor_unit": "°C",
            "facility_id": 1,
            "facility_name": "Press #1",
            "threshold_min": 60.0,
            "threshold_max": 80.0,
        }
        fields.update(overrides)
        return Alert(**fields)

    return _make
