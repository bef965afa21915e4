"""
Alert service.

The single write path for alerts: both manual (admin-initiated) and
automatic (threshold-triggered) alerts go through create_alert(), which
persists the record and publishes exactly one AlertCreatedEvent. Publishing
only enqueues onto the subscribers' worker pools, so creation never waits
for notification delivery.

Key Features:
    - Threshold snapshot stored on the alert at creation time
    - No de-duplication: every breach creates a new alert
    - Storage failures propagate to the caller; notification failures never do
    - Read-time severity, recency and summaries
    - Age-based retention purge (strictly older than the cutoff)

Example:
    >>> service = AlertService(alert_store, sensor_service, event_bus)
    >>> alert = await service.check_and_create_alert(sensor_id=7, value=95.0)
    >>> alert.severity
    <AlertSeverity.HIGH: 'HIGH'>
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import structlog

from factory_monitor.events.bus import EventBus
from factory_monitor.exceptions import NotFoundError
from factory_monitor.interfaces.stores import AlertStore
from factory_monitor.models.alerts import (
    DEFAULT_SEVERITY_POLICY,
    Alert,
    AlertCreatedEvent,
    AlertSeverity,
    SeverityPolicy,
)
from factory_monitor.monitoring.evaluator import ThresholdEvaluator
from factory_monitor.monitoring.sensors import SensorService

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlertService:
    """
    Creates, queries and deletes alerts.

    Attributes:
        store: Alert store.
        sensors: Sensor service used to resolve sensors and facilities.
        bus: Event bus AlertCreatedEvent is published on.
        policy: Severity, emergency and recency constants.
        evaluator: Threshold evaluator for the automatic path.
        retention_days: Retention applied by purge_expired().
    """

    def __init__(
        self,
        store: AlertStore,
        sensors: SensorService,
        bus: EventBus,
        policy: SeverityPolicy = DEFAULT_SEVERITY_POLICY,
        evaluator: Optional[ThresholdEvaluator] = None,
        retention_days: int = 90,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.sensors = sensors
        self.bus = bus
        self.policy = policy
        self.evaluator = evaluator or ThresholdEvaluator(policy)
        self.retention_days = retention_days
        self._clock = clock

    # =========================================================================
    # CREATION
    # =========================================================================

    async def create_alert(self, sensor_id: int, value: float, message: str) -> Alert:
        """
        Persist an alert and publish its AlertCreatedEvent.

        The alert carries the sensor's name, type, unit, facility and
        threshold pair as configured right now.

        Args:
            sensor_id: Sensor the alert is raised for.
            value: Value that triggered it.
            message: Free-text message.

        Returns:
            Alert: The stored alert.

        Raises:
            NotFoundError: If the sensor or its facility does not exist.
            StorageError: If the alert could not be persisted.
        """
        sensor = await self.sensors.get_sensor(sensor_id)
        facility = await self.sensors.get_facility(sensor.facility_id)

        alert = Alert(
            id=await self.store.allocate_id(),
            sensor_id=sensor.id,
            value=value,
            message=message,
            created_at=self._clock(),
            sensor_name=sensor.name,
            sensor_type=sensor.type,
            sensor_unit=sensor.unit,
            facility_id=facility.id,
            facility_name=facility.name,
            threshold_min=sensor.threshold_min,
            threshold_max=sensor.threshold_max,
        )
        await self.store.save(alert)

        event = AlertCreatedEvent.from_alert(alert, self.policy)
        deliveries = self.bus.publish(event)

        logger.info(
            "alert_created",
            alert_id=alert.id,
            sensor_id=sensor.id,
            facility_id=facility.id,
            value=value,
            severity=event.severity.value,
            deliveries=deliveries,
        )
        return alert

    async def create_manual_alert(self, sensor_id: int, value: float, message: str) -> Alert:
        """Admin-initiated alert; same path as automatic alerts."""
        return await self.create_alert(sensor_id, value, message)

    async def check_and_create_alert(self, sensor_id: int, value: float) -> Optional[Alert]:
        """
        Create an alert only if the value breaches the sensor's thresholds.

        Returns None, without persisting anything, when the sensor has no
        thresholds or the value is within range.

        Raises:
            NotFoundError: If the sensor does not exist.
            StorageError: If a breach could not be persisted.
        """
        sensor = await self.sensors.get_sensor(sensor_id)
        if not sensor.has_thresholds:
            return None

        evaluation = self.evaluator.evaluate(sensor, value)
        if evaluation.within_range:
            return None

        message = (
            f"Sensor '{sensor.name}' out of range: {value:.2f} "
            f"(threshold: {sensor.threshold_min:.2f} - {sensor.threshold_max:.2f})"
        )
        return await self.create_alert(sensor_id, value, message)

    async def check_threshold_and_maybe_alert(
        self, sensor_id: int, value: float
    ) -> Optional[Alert]:
        """Alias of check_and_create_alert for API callers."""
        return await self.check_and_create_alert(sensor_id, value)

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def find_all(self) -> List[Alert]:
        """All alerts, newest first."""
        return await self.store.list_all()

    async def find_by_id(self, alert_id: int) -> Optional[Alert]:
        """The alert, or None if it does not exist."""
        return await self.store.get(alert_id)

    async def get_alert(self, alert_id: int) -> Alert:
        """
        Resolve an alert.

        Raises:
            NotFoundError: If the alert does not exist.
        """
        alert = await self.store.get(alert_id)
        if alert is None:
            raise NotFoundError("alert", alert_id)
        return alert

    async def find_by_sensor(self, sensor_id: int) -> List[Alert]:
        """Alerts for one sensor, newest first."""
        return await self.store.list_by_sensor(sensor_id)

    async def find_by_period(self, start: datetime, end: datetime) -> List[Alert]:
        """Alerts created within [start, end], newest first."""
        return await self.store.list_by_period(start, end)

    async def find_by_severity(self, severity: AlertSeverity) -> List[Alert]:
        """Alerts whose read-time severity matches, newest first."""
        return [a for a in await self.store.list_all() if a.classify(self.policy) == severity]

    async def find_recent_only(self) -> List[Alert]:
        """Alerts within the recent window, newest first."""
        now = self._clock()
        return [a for a in await self.store.list_all() if a.is_recent(now, self.policy)]

    async def find_by_facility(self, facility_id: int) -> List[Alert]:
        """Alerts raised on a facility's sensors, newest first."""
        return [a for a in await self.store.list_all() if a.facility_id == facility_id]

    async def find_top(self, limit: int) -> List[Alert]:
        """The newest `limit` alerts."""
        return await self.store.list_top(limit)

    async def get_alert_summaries(self, limit: int = 10) -> List[str]:
        """One-line summaries of the newest `limit` alerts."""
        return [a.summarize(self.policy) for a in await self.store.list_top(limit)]

    # =========================================================================
    # DELETION
    # =========================================================================

    async def delete_by_id(self, alert_id: int) -> None:
        """
        Delete one alert.

        Raises:
            NotFoundError: If the alert does not exist.
        """
        if not await self.store.delete(alert_id):
            raise NotFoundError("alert", alert_id)
        logger.info("alert_deleted", alert_id=alert_id)

    async def delete_by_sensor(self, sensor_id: int) -> int:
        """Delete every alert of a sensor; returns the number removed."""
        removed = await self.store.delete_by_sensor(sensor_id)
        logger.info("sensor_alerts_deleted", sensor_id=sensor_id, removed=removed)
        return removed

    async def delete_older_than(self, days: int) -> int:
        """
        Delete alerts created strictly before now - days.

        An alert created exactly at the cutoff is kept.

        Returns:
            int: Number of alerts removed.
        """
        if days < 0:
            raise ValueError(f"days must be >= 0, got {days}")
        cutoff = self._clock() - timedelta(days=days)
        removed = await self.store.delete_created_before(cutoff)
        logger.info(
            "old_alerts_deleted",
            days=days,
            cutoff=cutoff.isoformat(),
            removed=removed,
        )
        return removed

    async def purge_expired(self) -> int:
        """Apply the configured retention."""
        return await self.delete_older_than(self.retention_days)
