"""
Monitoring scheduler.

The scheduler drives the monitoring loop: on a fixed period it fetches the
active sensor ids, collects a reading for each sensor, appends it to the
reading log and hands the value to the alert service's threshold check.

Key Features:
    - Two independent timers: monitoring ticks and statistics logging
    - Skip-if-overlapping: a tick that is still running when the next one
      is due causes the new tick to be skipped with a warning
    - Per-sensor concurrency bounded by a semaphore
    - Per-sensor isolation: a failing sensor is logged and the rest of the
      tick continues
    - Per-call collection timeout surfaced as CollectionFailure

State machine:
    IDLE -> TICK_RUNNING -> IDLE

Example:
    >>> scheduler = MonitoringScheduler(
    ...     sensors=sensor_service,
    ...     collector=collector,
    ...     readings=reading_log,
    ...     alerts=alert_service,
    ...     config=SchedulerConfig(monitoring_interval_seconds=10),
    ... )
    >>> await scheduler.start()
    >>> ...
    >>> await scheduler.stop()
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

import structlog
from pydantic import BaseModel, Field

from factory_monitor.config.models import SchedulerConfig
from factory_monitor.exceptions import CollectionFailure
from factory_monitor.interfaces.collector import ReadingCollector
from factory_monitor.models.sensors import Sensor
from factory_monitor.monitoring.readings import ReadingLog
from factory_monitor.monitoring.sensors import SensorService

if TYPE_CHECKING:
    from factory_monitor.detection.alert_service import AlertService

logger = structlog.get_logger(__name__)


class SchedulerState(str, Enum):
    """Scheduler tick state."""

    IDLE = "IDLE"
    TICK_RUNNING = "TICK_RUNNING"


class TickReport(BaseModel):
    """
    Summary of one monitoring tick.

    Attributes:
        started_at: When the tick started.
        finished_at: When the tick finished.
        active_sensors: Number of active sensor ids fetched.
        processed: Sensors whose pipeline completed.
        failed_sensor_ids: Sensors whose pipeline raised.
        alerts_created: Alerts created during the tick.
        skipped: True if the tick was skipped because another was running.
        error: Scheduler-level error message, if the tick aborted.
    """

    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    active_sensors: int = 0
    processed: int = 0
    failed_sensor_ids: List[int] = Field(default_factory=list)
    alerts_created: int = 0
    skipped: bool = False
    error: Optional[str] = None

    @property
    def failed(self) -> int:
        """Number of sensors that failed."""
        return len(self.failed_sensor_ids)


class MonitoringScheduler:
    """
    Periodic monitoring loop over all active sensors.

    Attributes:
        sensors: Sensor service (active ids, sensor lookups).
        collector: Reading collector.
        readings: Reading log the collected values are appended to.
        alerts: Alert service performing threshold check and creation.
        config: Timing and concurrency settings.
    """

    def __init__(
        self,
        sensors: SensorService,
        collector: ReadingCollector,
        readings: ReadingLog,
        alerts: AlertService,
        config: Optional[SchedulerConfig] = None,
    ) -> None:
        self.sensors = sensors
        self.collector = collector
        self.readings = readings
        self.alerts = alerts
        self.config = config or SchedulerConfig()

        self._state = SchedulerState.IDLE
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent_sensors)
        self._monitor_task: Optional[asyncio.Task] = None
        self._stats_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._running = False

        self.ticks_completed = 0
        self.ticks_skipped = 0
        self.last_report: Optional[TickReport] = None

    @property
    def state(self) -> SchedulerState:
        """Current tick state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Check if the timers are started."""
        return self._running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        """Start the monitoring and statistics timers."""
        if self._running:
            logger.warning("scheduler_already_running")
            return

        self._running = True
        self._monitor_task = asyncio.create_task(self._monitor_loop())
        self._stats_task = asyncio.create_task(self._stats_loop())

        logger.info(
            "scheduler_started",
            collector=self.collector.name,
            monitoring_interval_seconds=self.config.monitoring_interval_seconds,
            statistics_interval_seconds=self.config.statistics_interval_seconds,
            max_concurrent_sensors=self.config.max_concurrent_sensors,
        )

    async def stop(self, tick_grace_seconds: float = 5.0) -> None:
        """
        Cancel both timers, then give an in-flight tick a bounded grace period.

        Args:
            tick_grace_seconds: How long to wait for a running tick before
                cancelling it.
        """
        self._running = False

        for task in (self._monitor_task, self._stats_task):
            if task is not None:
                task.cancel()
        for task in (self._monitor_task, self._stats_task):
            if task is not None:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._monitor_task = None
        self._stats_task = None

        tick = self._tick_task
        if tick is not None and not tick.done():
            done, _ = await asyncio.wait({tick}, timeout=tick_grace_seconds)
            if not done:
                tick.cancel()
                try:
                    await tick
                except asyncio.CancelledError:
                    pass
                logger.warning("in_flight_tick_cancelled")
        self._tick_task = None

        logger.info(
            "scheduler_stopped",
            ticks_completed=self.ticks_completed,
            ticks_skipped=self.ticks_skipped,
        )

    async def _monitor_loop(self) -> None:
        """Fire a tick every monitoring period without waiting for it."""
        try:
            while self._running:
                await asyncio.sleep(self.config.monitoring_interval_seconds)
                if self._tick_task is not None and not self._tick_task.done():
                    self.ticks_skipped += 1
                    logger.warning(
                        "tick_skipped_overlap",
                        interval_seconds=self.config.monitoring_interval_seconds,
                    )
                    continue
                self._tick_task = asyncio.create_task(self.run_tick())
        except asyncio.CancelledError:
            logger.debug("monitor_loop_cancelled")
            raise

    async def _stats_loop(self) -> None:
        try:
            while self._running:
                await asyncio.sleep(self.config.statistics_interval_seconds)
                await self.log_statistics()
        except asyncio.CancelledError:
            logger.debug("stats_loop_cancelled")
            raise

    # =========================================================================
    # TICK
    # =========================================================================

    async def run_tick(self) -> TickReport:
        """
        Run one monitoring tick across all active sensors.

        Never raises: scheduler-level failures (e.g. the sensor store being
        unreachable) are logged and recorded on the report.

        Returns:
            TickReport: What the tick did.
        """
        report = TickReport()

        if self._state == SchedulerState.TICK_RUNNING:
            self.ticks_skipped += 1
            logger.warning("tick_skipped_overlap")
            report.skipped = True
            report.finished_at = datetime.now(timezone.utc)
            return report

        self._state = SchedulerState.TICK_RUNNING
        try:
            sensor_ids = await self.sensors.get_active_sensor_ids()
            report.active_sensors = len(sensor_ids)

            if not sensor_ids:
                logger.debug("no_active_sensors")
                return report

            results = await asyncio.gather(
                *(self._process_sensor(sensor_id) for sensor_id in sensor_ids)
            )

            for sensor_id, outcome in zip(sensor_ids, results):
                if outcome is None:
                    report.failed_sensor_ids.append(sensor_id)
                else:
                    report.processed += 1
                    if outcome:
                        report.alerts_created += 1

            logger.info(
                "tick_completed",
                sensors=report.active_sensors,
                processed=report.processed,
                failed=report.failed,
                alerts=report.alerts_created,
            )

        except Exception as e:
            report.error = str(e)
            logger.error("tick_failed", error=str(e), error_type=type(e).__name__)

        finally:
            self._state = SchedulerState.IDLE
            self.ticks_completed += 1
            report.finished_at = datetime.now(timezone.utc)
            self.last_report = report

        return report

    async def _process_sensor(self, sensor_id: int) -> Optional[bool]:
        """
        Collect, persist and check one sensor.

        Returns:
            True if an alert was created, False if not, None on failure.
        """
        async with self._semaphore:
            try:
                sensor = await self.sensors.get_sensor(sensor_id)
                value = await self._collect(sensor)
                await self.readings.log_reading(sensor_id, value)
                alert = await self.alerts.check_and_create_alert(sensor_id, value)
                return alert is not None

            except CollectionFailure as e:
                logger.error(
                    "sensor_collection_failed",
                    sensor_id=sensor_id,
                    error=str(e),
                )
                return None

            except Exception as e:
                logger.error(
                    "sensor_processing_failed",
                    sensor_id=sensor_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return None

    async def _collect(self, sensor: Sensor) -> float:
        """
        Collect one value under the configured timeout.

        Raises:
            CollectionFailure: On timeout or any collector error.
        """
        try:
            return await asyncio.wait_for(
                self.collector.collect(sensor),
                timeout=self.config.collection_timeout_seconds,
            )
        except CollectionFailure:
            raise
        except asyncio.TimeoutError as e:
            raise CollectionFailure(
                sensor.id,
                f"timed out after {self.config.collection_timeout_seconds}s",
                cause=e,
            ) from e
        except Exception as e:
            raise CollectionFailure(sensor.id, str(e), cause=e) from e

    # =========================================================================
    # STATISTICS
    # =========================================================================

    async def log_statistics(self) -> None:
        """Log active sensor count and recent alert count."""
        try:
            active = await self.sensors.get_active_sensor_ids()
            recent = await self.alerts.find_recent_only()
            logger.info(
                "monitoring_statistics",
                active_sensors=len(active),
                recent_alerts=len(recent),
                ticks_completed=self.ticks_completed,
                ticks_skipped=self.ticks_skipped,
            )
        except Exception as e:
            logger.error("statistics_failed", error=str(e))
