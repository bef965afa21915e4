"""Tests for the Redis-backed stores, run against fakeredis."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import fakeredis.aioredis
import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError

from factory_monitor.storage import (
    RedisAlertStore,
    RedisClient,
    RedisClientError,
    RedisOperationError,
    RedisReadingStore,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def client():
    fake = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield RedisClient(client=fake)
    await fake.flushall()
    await fake.aclose()


@pytest.mark.asyncio
async def test_alert_round_trip_keeps_snapshot(client, make_alert) -> None:
    store = RedisAlertStore(client, key_prefix="test:")
    alert_id = await store.allocate_id()
    await store.save(make_alert(alert_id=alert_id, value=101.5))

    loaded = await store.get(alert_id)

    assert loaded is not None
    assert loaded.value == 101.5
    assert loaded.facility_name == "Press #1"
    assert loaded.created_at == NOW
    assert await store.get(999) is None


@pytest.mark.asyncio
async def test_alert_ordering_and_top(client, make_alert) -> None:
    store = RedisAlertStore(client)
    await store.save(make_alert(alert_id=1, created_at=NOW - timedelta(minutes=5)))
    await store.save(make_alert(alert_id=2, created_at=NOW))
    await store.save(make_alert(alert_id=3, created_at=NOW))

    assert [a.id for a in await store.list_all()] == [3, 2, 1]
    assert [a.id for a in await store.list_top(2)] == [3, 2]
    assert [a.id for a in await store.list_by_sensor(7)] == [3, 2, 1]


@pytest.mark.asyncio
async def test_top_breaks_timestamp_ties_by_id(client, make_alert) -> None:
    store = RedisAlertStore(client)
    # Redis orders the tied members "10" < "2" < "9" by bytes
    for alert_id in (2, 9, 10):
        await store.save(make_alert(alert_id=alert_id, created_at=NOW))
    await store.save(make_alert(alert_id=1, created_at=NOW - timedelta(minutes=1)))

    assert [a.id for a in await store.list_top(1)] == [10]
    assert [a.id for a in await store.list_top(2)] == [10, 9]
    assert [a.id for a in await store.list_top(4)] == [10, 9, 2, 1]
    assert [a.id for a in await store.list_top(10)] == [10, 9, 2, 1]


@pytest.mark.asyncio
async def test_alert_deletes_update_indexes(client, make_alert) -> None:
    store = RedisAlertStore(client)
    await store.save(make_alert(alert_id=1, created_at=NOW - timedelta(days=2)))
    await store.save(make_alert(alert_id=2, created_at=NOW))
    await store.save(make_alert(alert_id=3, created_at=NOW, sensor_id=8))

    assert await store.delete_created_before(NOW) == 1
    assert await store.delete(3) is True
    assert await store.delete(3) is False

    assert [a.id for a in await store.list_all()] == [2]
    assert await store.list_by_sensor(8) == []
    assert await store.delete_by_sensor(7) == 1
    assert await store.list_all() == []


@pytest.mark.asyncio
async def test_alert_ids_increase_monotonically(client) -> None:
    store = RedisAlertStore(client)

    ids = [await store.allocate_id() for _ in range(3)]

    assert ids == [1, 2, 3]


@pytest.mark.asyncio
async def test_readings_recent_period_and_latest(client) -> None:
    store = RedisReadingStore(client, max_per_sensor=3)
    for minute in range(5):
        await store.append(7, 70.0 + minute, NOW + timedelta(minutes=minute))
    await store.append(8, 4.2, NOW)

    recent = await store.find_recent(7, limit=2)
    window = await store.find_by_period(7, NOW, NOW + timedelta(minutes=10))
    latest = await store.latest_per_sensor()

    assert [r.value for r in recent] == [74.0, 73.0]
    assert [r.value for r in window] == [72.0, 73.0, 74.0]
    assert latest[7].value == 74.0
    assert latest[8].value == 4.2


@pytest.mark.asyncio
async def test_disconnected_client_raises_client_error(make_alert) -> None:
    store = RedisAlertStore(RedisClient())

    with pytest.raises(RedisClientError):
        await store.save(make_alert())


@pytest.mark.asyncio
async def test_recent_readings_break_timestamp_ties_by_id(client) -> None:
    store = RedisReadingStore(client)
    for step in range(10):
        await store.append(7, 70.0 + step, NOW)

    recent = await store.find_recent(7, limit=2)

    assert [r.id for r in recent] == [10, 9]
    assert [r.value for r in recent] == [79.0, 78.0]


async def _connection_reset(*args, **kwargs):
    raise RedisConnectionError("Connection reset by peer")


@pytest.mark.asyncio
async def test_failed_reads_raise_operation_error(
    client, make_alert, monkeypatch: pytest.MonkeyPatch
) -> None:
    alerts = RedisAlertStore(client)
    readings = RedisReadingStore(client)
    await alerts.save(make_alert())
    await readings.append(7, 70.0, NOW)
    for command in ("zrangebyscore", "zrevrange", "zrevrangebyscore", "hgetall"):
        monkeypatch.setattr(client.redis, command, _connection_reset)

    reads = [
        lambda: alerts.list_all(),
        lambda: alerts.list_by_sensor(7),
        lambda: alerts.list_by_period(NOW - timedelta(hours=1), NOW),
        lambda: alerts.list_top(5),
        lambda: alerts.delete_created_before(NOW),
        lambda: alerts.delete_by_sensor(7),
        lambda: readings.find_by_period(7, NOW, NOW),
        lambda: readings.find_recent(7),
        lambda: readings.latest_per_sensor(),
    ]
    for read in reads:
        with pytest.raises(RedisOperationError, match="Connection reset by peer"):
            await read()
