"""
Redis-backed alert and reading stores.

Alerts and readings are the high-volume entities, so they are the ones that
get a shared backend; sensors, facilities and users stay in the in-memory
stores seeded from configuration.

Alerts are stored as JSON strings with two sorted-set indexes scored by the
creation timestamp. Readings are stored per sensor in a sorted set scored by
the collection timestamp, plus a hash holding the latest reading of every
sensor. Ids come from INCR counters so they are never reused.

Example:
    >>> client = RedisClient(config)
    >>> await client.connect()
    >>> alerts = RedisAlertStore(client)
    >>> await alerts.save(alert)
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from factory_monitor.interfaces.stores import AlertStore, ReadingStore
from factory_monitor.models.alerts import Alert
from factory_monitor.models.sensors import Reading
from factory_monitor.storage.redis_client import RedisClient, RedisOperationError

logger = structlog.get_logger(__name__)


def _score(ts: datetime) -> float:
    return ts.timestamp()


def _newest_first(alerts: Iterable[Alert]) -> List[Alert]:
    return sorted(alerts, key=lambda a: (a.created_at, a.id), reverse=True)


async def _top_members(redis: Redis, key: str, limit: int) -> List[str]:  # type: ignore[type-arg]
    """
    Members holding the `limit` highest scores of a sorted set.

    Every member tied with the lowest of those scores is included, so the
    result can be longer than `limit`. Redis orders equal scores by member
    bytes, which does not match the caller's ordering.
    """
    head = await redis.zrevrange(key, 0, limit - 1, withscores=True)
    if len(head) < limit:
        return [member for member, _ in head]
    _, lowest = head[-1]
    return await redis.zrevrangebyscore(key, "+inf", lowest)


class RedisAlertStore(AlertStore):
    """
    Alert store on Redis.

    Key Patterns:
        - `{prefix}alert:{id}`: alert JSON
        - `{prefix}alerts:by_time`: sorted set of ids scored by created_at
        - `{prefix}alerts:by_sensor:{sensor_id}`: same, per sensor
        - `{prefix}alerts:next_id`: id counter
    """

    def __init__(self, client: RedisClient, key_prefix: str = "") -> None:
        self._client = client
        self._prefix = key_prefix

    def _alert_key(self, alert_id: int) -> str:
        return f"{self._prefix}alert:{alert_id}"

    def _by_sensor_key(self, sensor_id: int) -> str:
        return f"{self._prefix}alerts:by_sensor:{sensor_id}"

    @property
    def _by_time_key(self) -> str:
        return f"{self._prefix}alerts:by_time"

    @property
    def _next_id_key(self) -> str:
        return f"{self._prefix}alerts:next_id"

    async def allocate_id(self) -> int:
        redis = self._client.redis
        try:
            return int(await redis.incr(self._next_id_key))
        except RedisError as e:
            logger.error("alert_id_allocation_failed", error=str(e))
            raise RedisOperationError(f"Failed to allocate alert id: {e}") from e

    async def save(self, alert: Alert) -> Alert:
        redis = self._client.redis
        score = _score(alert.created_at)
        try:
            async with redis.pipeline(transaction=True) as pipe:
                pipe.set(self._alert_key(alert.id), alert.model_dump_json())
                pipe.zadd(self._by_time_key, {str(alert.id): score})
                pipe.zadd(self._by_sensor_key(alert.sensor_id), {str(alert.id): score})
                await pipe.execute()

            logger.debug("alert_stored", alert_id=alert.id, sensor_id=alert.sensor_id)
            return alert

        except RedisError as e:
            logger.error("alert_store_failed", alert_id=alert.id, error=str(e))
            raise RedisOperationError(f"Failed to store alert {alert.id}: {e}") from e

    async def _load(self, ids: List[str]) -> List[Alert]:
        if not ids:
            return []
        redis = self._client.redis
        try:
            raw = await redis.mget([self._alert_key(int(i)) for i in ids])
        except RedisError as e:
            logger.error("alert_load_failed", count=len(ids), error=str(e))
            raise RedisOperationError(f"Failed to load alerts: {e}") from e
        return [Alert.model_validate_json(item) for item in raw if item is not None]

    async def get(self, alert_id: int) -> Optional[Alert]:
        redis = self._client.redis
        try:
            raw = await redis.get(self._alert_key(alert_id))
        except RedisError as e:
            logger.error("alert_get_failed", alert_id=alert_id, error=str(e))
            raise RedisOperationError(f"Failed to get alert {alert_id}: {e}") from e
        return Alert.model_validate_json(raw) if raw is not None else None

    async def _index_ids(
        self,
        key: str,
        min_score: float | str = "-inf",
        max_score: float | str = "+inf",
    ) -> List[str]:
        redis = self._client.redis
        try:
            return await redis.zrangebyscore(key, min_score, max_score)
        except RedisError as e:
            logger.error("alert_index_read_failed", key=key, error=str(e))
            raise RedisOperationError(f"Failed to read alert index {key}: {e}") from e

    async def list_all(self) -> List[Alert]:
        return _newest_first(await self._load(await self._index_ids(self._by_time_key)))

    async def list_by_sensor(self, sensor_id: int) -> List[Alert]:
        ids = await self._index_ids(self._by_sensor_key(sensor_id))
        return _newest_first(await self._load(ids))

    async def list_by_period(self, start: datetime, end: datetime) -> List[Alert]:
        ids = await self._index_ids(self._by_time_key, _score(start), _score(end))
        alerts = await self._load(ids)
        return _newest_first(a for a in alerts if start <= a.created_at <= end)

    async def list_top(self, limit: int) -> List[Alert]:
        if limit <= 0:
            return []
        redis = self._client.redis
        try:
            ids = await _top_members(redis, self._by_time_key, limit)
        except RedisError as e:
            logger.error("alert_top_read_failed", limit=limit, error=str(e))
            raise RedisOperationError(f"Failed to read latest alerts: {e}") from e
        return _newest_first(await self._load(ids))[:limit]

    async def _remove(self, alerts: List[Alert]) -> int:
        if not alerts:
            return 0
        redis = self._client.redis
        try:
            async with redis.pipeline(transaction=True) as pipe:
                for alert in alerts:
                    member = str(alert.id)
                    pipe.delete(self._alert_key(alert.id))
                    pipe.zrem(self._by_time_key, member)
                    pipe.zrem(self._by_sensor_key(alert.sensor_id), member)
                await pipe.execute()
        except RedisError as e:
            logger.error("alert_delete_failed", count=len(alerts), error=str(e))
            raise RedisOperationError(f"Failed to delete alerts: {e}") from e
        return len(alerts)

    async def delete(self, alert_id: int) -> bool:
        alert = await self.get(alert_id)
        if alert is None:
            return False
        await self._remove([alert])
        return True

    async def delete_by_sensor(self, sensor_id: int) -> int:
        return await self._remove(await self.list_by_sensor(sensor_id))

    async def delete_created_before(self, cutoff: datetime) -> int:
        ids = await self._index_ids(self._by_time_key, "-inf", _score(cutoff))
        candidates = await self._load(ids)
        return await self._remove([a for a in candidates if a.created_at < cutoff])


class RedisReadingStore(ReadingStore):
    """
    Reading store on Redis.

    Key Patterns:
        - `{prefix}readings:{sensor_id}`: sorted set of reading JSON scored
          by collected_at
        - `{prefix}readings:latest`: hash sensor_id -> latest reading JSON
        - `{prefix}readings:next_id`: id counter

    Attributes:
        max_per_sensor: Optional cap; the oldest readings are trimmed first.
    """

    def __init__(
        self,
        client: RedisClient,
        key_prefix: str = "",
        max_per_sensor: Optional[int] = None,
    ) -> None:
        self._client = client
        self._prefix = key_prefix
        self.max_per_sensor = max_per_sensor

    def _series_key(self, sensor_id: int) -> str:
        return f"{self._prefix}readings:{sensor_id}"

    @property
    def _latest_key(self) -> str:
        return f"{self._prefix}readings:latest"

    async def append(
        self,
        sensor_id: int,
        value: float,
        collected_at: datetime,
    ) -> Reading:
        redis = self._client.redis
        try:
            reading_id = int(await redis.incr(f"{self._prefix}readings:next_id"))
            reading = Reading(
                id=reading_id,
                sensor_id=sensor_id,
                value=value,
                collected_at=collected_at,
            )
            serialized = reading.model_dump_json()
            key = self._series_key(sensor_id)

            async with redis.pipeline(transaction=True) as pipe:
                pipe.zadd(key, {serialized: _score(collected_at)})
                pipe.hset(self._latest_key, str(sensor_id), serialized)
                if self.max_per_sensor is not None:
                    pipe.zremrangebyrank(key, 0, -(self.max_per_sensor + 1))
                await pipe.execute()

            return reading

        except RedisError as e:
            logger.error("reading_append_failed", sensor_id=sensor_id, error=str(e))
            raise RedisOperationError(
                f"Failed to append reading for sensor {sensor_id}: {e}"
            ) from e

    @staticmethod
    def _parse(raw: Iterable[str]) -> List[Reading]:
        readings = [Reading.model_validate_json(item) for item in raw]
        readings.sort(key=lambda r: (r.collected_at, r.id))
        return readings

    async def find_by_period(
        self,
        sensor_id: int,
        start: datetime,
        end: datetime,
    ) -> List[Reading]:
        redis = self._client.redis
        try:
            raw = await redis.zrangebyscore(
                self._series_key(sensor_id), _score(start), _score(end)
            )
        except RedisError as e:
            logger.error("reading_range_read_failed", sensor_id=sensor_id, error=str(e))
            raise RedisOperationError(
                f"Failed to read readings for sensor {sensor_id}: {e}"
            ) from e
        return [r for r in self._parse(raw) if start <= r.collected_at <= end]

    async def find_recent(self, sensor_id: int, limit: int = 10) -> List[Reading]:
        if limit <= 0:
            return []
        redis = self._client.redis
        try:
            raw = await _top_members(redis, self._series_key(sensor_id), limit)
        except RedisError as e:
            logger.error("reading_recent_read_failed", sensor_id=sensor_id, error=str(e))
            raise RedisOperationError(
                f"Failed to read recent readings for sensor {sensor_id}: {e}"
            ) from e
        return list(reversed(self._parse(raw)[-limit:]))

    async def latest_per_sensor(self) -> Dict[int, Reading]:
        redis = self._client.redis
        try:
            raw = await redis.hgetall(self._latest_key)
        except RedisError as e:
            logger.error("reading_latest_read_failed", error=str(e))
            raise RedisOperationError(f"Failed to read latest readings: {e}") from e
        return {int(k): Reading.model_validate_json(v) for k, v in raw.items()}
