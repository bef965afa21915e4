"""Tests for alert creation, queries and retention."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from factory_monitor.detection.alert_service import AlertService
from factory_monitor.exceptions import NotFoundError, StorageError
from factory_monitor.models.alerts import AlertCreatedEvent, AlertSeverity, SeverityPolicy
from factory_monitor.storage import InMemoryAlertStore


class FailingAlertStore(InMemoryAlertStore):
    async def save(self, alert):
        raise StorageError("disk full")


@pytest.mark.asyncio
async def test_value_within_range_creates_nothing(alert_service, alert_store) -> None:
    assert await alert_service.check_and_create_alert(7, 75.0) is None
    assert await alert_store.list_all() == []


@pytest.mark.asyncio
async def test_sensor_without_thresholds_never_alerts(alert_service, alert_store) -> None:
    assert await alert_service.check_and_create_alert(9, 1_000_000.0) is None
    assert await alert_store.list_all() == []


@pytest.mark.asyncio
async def test_breach_creates_alert_with_snapshot(alert_service, clock) -> None:
    alert = await alert_service.check_and_create_alert(7, 95.0)

    assert alert is not None
    assert alert.severity == AlertSeverity.HIGH
    assert alert.created_at == clock.now
    assert alert.facility_name == "Press #1"
    assert alert.sensor_name == "Oil temperature"
    assert (alert.threshold_min, alert.threshold_max) == (60.0, 80.0)
    assert alert.message == "Sensor 'Oil temperature' out of range: 95.00 (threshold: 60.00 - 80.00)"


@pytest.mark.asyncio
async def test_repeated_breaches_are_not_deduplicated(alert_service) -> None:
    first = await alert_service.check_and_create_alert(7, 95.0)
    second = await alert_service.check_and_create_alert(7, 95.0)

    assert first is not None and second is not None
    assert first.id != second.id
    assert len(await alert_service.find_by_sensor(7)) == 2


@pytest.mark.asyncio
async def test_unknown_sensor_raises_not_found(alert_service) -> None:
    with pytest.raises(NotFoundError):
        await alert_service.check_and_create_alert(999, 1.0)
    with pytest.raises(NotFoundError):
        await alert_service.create_manual_alert(999, 1.0, "manual")


@pytest.mark.asyncio
async def test_storage_failure_propagates_and_publishes_nothing(sensor_service, bus, clock) -> None:
    service = AlertService(FailingAlertStore(), sensor_service, bus, clock=clock)

    with pytest.raises(StorageError):
        await service.check_and_create_alert(7, 95.0)
    assert bus.published == 0


@pytest.mark.asyncio
async def test_one_event_per_alert_and_creation_does_not_wait(
    alert_service, bus, notification_pool
) -> None:
    received: list[AlertCreatedEvent] = []
    release = asyncio.Event()

    async def slow_handler(event: AlertCreatedEvent) -> None:
        await release.wait()
        received.append(event)

    bus.subscribe(AlertCreatedEvent, slow_handler, notification_pool, "slow")

    alert = await alert_service.create_manual_alert(7, 85.0, "Operator reported overheating")

    # creation returned while the handler is still blocked
    assert received == []
    assert bus.published == 1

    release.set()
    await asyncio.wait_for(_until(lambda: len(received) == 1), timeout=1.0)
    assert received[0].alert.id == alert.id
    assert received[0].severity == AlertSeverity.MEDIUM
    assert received[0].facility_id == 1


@pytest.mark.asyncio
async def test_within_range_publishes_nothing(alert_service, bus) -> None:
    await alert_service.check_and_create_alert(7, 70.0)
    assert bus.published == 0


@pytest.mark.asyncio
async def test_existing_alert_keeps_creation_thresholds(alert_service, sensor_service) -> None:
    alert = await alert_service.check_and_create_alert(7, 85.0)
    await sensor_service.configure_thresholds(7, 0.0, 200.0)

    stored = await alert_service.get_alert(alert.id)
    assert stored.severity == AlertSeverity.MEDIUM
    assert (stored.threshold_min, stored.threshold_max) == (60.0, 80.0)


@pytest.mark.asyncio
async def test_queries(alert_service, clock) -> None:
    high = await alert_service.check_and_create_alert(7, 95.0)
    clock.advance(minutes=1)
    medium = await alert_service.check_and_create_alert(11, 80.0)
    clock.advance(minutes=1)
    newest = await alert_service.check_and_create_alert(8, 9.5)

    assert [a.id for a in await alert_service.find_all()] == [newest.id, medium.id, high.id]
    assert [a.id for a in await alert_service.find_by_severity(AlertSeverity.HIGH)] == [high.id]
    assert [a.id for a in await alert_service.find_by_facility(2)] == [medium.id]
    assert [a.id for a in await alert_service.find_top(2)] == [newest.id, medium.id]
    assert await alert_service.find_by_id(999) is None

    window = await alert_service.find_by_period(clock.now - timedelta(minutes=1), clock.now)
    assert [a.id for a in window] == [newest.id, medium.id]

    summaries = await alert_service.get_alert_summaries(limit=1)
    assert summaries == [newest.summary]


@pytest.mark.asyncio
async def test_summaries_use_configured_policy(alert_store, sensor_service, bus, clock) -> None:
    service = AlertService(
        alert_store,
        sensor_service,
        bus,
        policy=SeverityPolicy(high_severity_ratio=0.1),
        clock=clock,
    )
    alert = await service.check_and_create_alert(7, 85.0)

    summaries = await service.get_alert_summaries(limit=1)

    assert alert is not None
    assert summaries == ["[HIGH] Oil temperature alert on Press #1 (value: 85.00)"]
    assert [a.id for a in await service.find_by_severity(AlertSeverity.HIGH)] == [alert.id]


@pytest.mark.asyncio
async def test_recent_only_uses_thirty_minute_window(alert_service, clock) -> None:
    old = await alert_service.check_and_create_alert(7, 95.0)
    clock.advance(minutes=31)
    fresh = await alert_service.check_and_create_alert(7, 95.0)

    recent = await alert_service.find_recent_only()
    assert [a.id for a in recent] == [fresh.id]
    assert old.id not in [a.id for a in recent]


@pytest.mark.asyncio
async def test_delete_by_id(alert_service) -> None:
    alert = await alert_service.check_and_create_alert(7, 95.0)

    await alert_service.delete_by_id(alert.id)

    assert await alert_service.find_by_id(alert.id) is None
    with pytest.raises(NotFoundError):
        await alert_service.delete_by_id(alert.id)
    with pytest.raises(NotFoundError):
        await alert_service.get_alert(alert.id)


@pytest.mark.asyncio
async def test_delete_by_sensor(alert_service) -> None:
    await alert_service.check_and_create_alert(7, 95.0)
    await alert_service.check_and_create_alert(7, 96.0)
    await alert_service.check_and_create_alert(8, 10.0)

    assert await alert_service.delete_by_sensor(7) == 2
    assert [a.sensor_id for a in await alert_service.find_all()] == [8]


@pytest.mark.asyncio
async def test_delete_older_than_keeps_alert_exactly_at_cutoff(alert_service, clock) -> None:
    start = clock.now
    at_cutoff = await alert_service.check_and_create_alert(7, 95.0)
    clock.now = start - timedelta(seconds=1)
    past_cutoff = await alert_service.check_and_create_alert(7, 95.0)

    clock.now = start + timedelta(days=30)
    removed = await alert_service.delete_older_than(30)

    assert removed == 1
    assert await alert_service.find_by_id(at_cutoff.id) is not None
    assert await alert_service.find_by_id(past_cutoff.id) is None


@pytest.mark.asyncio
async def test_delete_older_than_rejects_negative_days(alert_service) -> None:
    with pytest.raises(ValueError):
        await alert_service.delete_older_than(-1)


@pytest.mark.asyncio
async def test_purge_expired_uses_retention(sensor_service, bus, clock, alert_store) -> None:
    service = AlertService(alert_store, sensor_service, bus, retention_days=7, clock=clock)
    await service.check_and_create_alert(7, 95.0)
    clock.advance(days=8)
    await service.check_and_create_alert(7, 95.0)

    assert await service.purge_expired() == 1
    assert len(await service.find_all()) == 1


async def _until(predicate) -> None:
    while not predicate():
        await asyncio.sleep(0.01)
