"""Tests for the in-memory stores."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from factory_monitor.config.models import SeedConfig
from factory_monitor.models.users import UserRole
from factory_monitor.storage import (
    InMemoryAlertStore,
    InMemoryFacilityStore,
    InMemoryReadingStore,
    InMemorySensorStore,
    InMemoryUserDirectory,
    load_seed,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_alerts_listed_newest_first_with_id_tiebreak(make_alert) -> None:
    store = InMemoryAlertStore()
    await store.save(make_alert(alert_id=1, created_at=NOW - timedelta(minutes=5)))
    await store.save(make_alert(alert_id=2, created_at=NOW))
    await store.save(make_alert(alert_id=3, created_at=NOW))

    assert [a.id for a in await store.list_all()] == [3, 2, 1]
    assert [a.id for a in await store.list_top(2)] == [3, 2]
    assert await store.list_top(0) == []


@pytest.mark.asyncio
async def test_delete_created_before_is_strict(make_alert) -> None:
    store = InMemoryAlertStore()
    await store.save(make_alert(alert_id=1, created_at=NOW - timedelta(days=1)))
    await store.save(make_alert(alert_id=2, created_at=NOW))

    deleted = await store.delete_created_before(NOW)

    assert deleted == 1
    assert [a.id for a in await store.list_all()] == [2]


@pytest.mark.asyncio
async def test_alert_ids_are_never_reused(make_alert) -> None:
    store = InMemoryAlertStore()
    first = await store.allocate_id()
    await store.save(make_alert(alert_id=first))
    assert await store.delete(first) is True

    assert await store.allocate_id() == first + 1
    assert await store.delete(first) is False


@pytest.mark.asyncio
async def test_list_by_sensor_and_period(make_alert) -> None:
    store = InMemoryAlertStore()
    await store.save(make_alert(alert_id=1, created_at=NOW - timedelta(hours=2)))
    await store.save(make_alert(alert_id=2, created_at=NOW, sensor_id=8))
    await store.save(make_alert(alert_id=3, created_at=NOW - timedelta(minutes=10)))

    assert [a.id for a in await store.list_by_sensor(7)] == [3, 1]
    in_window = await store.list_by_period(NOW - timedelta(hours=1), NOW)
    assert [a.id for a in in_window] == [2, 3]
    assert await store.delete_by_sensor(7) == 2


@pytest.mark.asyncio
async def test_user_directory_filters_inactive_and_invalid_contacts(user_directory) -> None:
    assert await user_directory.get_active_user_ids_by_role(UserRole.OPERATOR) == [3]
    assert await user_directory.get_active_user_ids_by_role(UserRole.MANAGER) == [2, 5]
    assert await user_directory.get_active_emails_by_role(UserRole.MANAGER) == [
        "manager@plant.local"
    ]
    assert await user_directory.get_emergency_phone_numbers() == ["010-1234-5678"]


@pytest.mark.asyncio
async def test_reading_store_caps_per_sensor() -> None:
    store = InMemoryReadingStore(max_per_sensor=3)
    for minute in range(5):
        await store.append(7, float(minute), NOW + timedelta(minutes=minute))

    recent = await store.find_recent(7, limit=10)

    assert store.count(7) == 3
    assert [r.value for r in recent] == [4.0, 3.0, 2.0]
    assert (await store.latest_per_sensor())[7].value == 4.0


@pytest.mark.asyncio
async def test_reading_period_bounds_are_inclusive() -> None:
    store = InMemoryReadingStore()
    await store.append(7, 70.0, NOW)
    await store.append(7, 71.0, NOW + timedelta(minutes=1))
    await store.append(7, 72.0, NOW + timedelta(minutes=2))

    found = await store.find_by_period(7, NOW, NOW + timedelta(minutes=1))

    assert [r.value for r in found] == [70.0, 71.0]
    assert await store.find_by_period(8, NOW, NOW) == []


@pytest.mark.asyncio
async def test_load_seed_populates_stores(facilities, sensors, users) -> None:
    seed = SeedConfig(facilities=facilities, sensors=sensors, users=users)
    sensor_store = InMemorySensorStore()
    facility_store = InMemoryFacilityStore()
    directory = InMemoryUserDirectory()

    await load_seed(seed, sensor_store, facility_store, directory)

    assert [s.id for s in await sensor_store.list_all()] == [7, 8, 9, 10, 11]
    assert (await facility_store.get(3)).name == "Packaging line"
    assert await directory.get_active_user_ids_by_role(UserRole.ADMIN) == [1]
    # allocation continues past seeded ids
    assert await InMemorySensorStore(sensors).allocate_id() == 12
