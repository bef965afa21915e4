"""
Sensor Monitor Service entry point.

This service is responsible for:
- Collecting readings from every active sensor on a fixed period
- Appending readings to the reading log
- Creating alerts for threshold breaches
- Fanning alerts out to messaging, email and SMS channels
- Logging periodic alert statistics
- Purging alerts older than the retention period

Usage:
    python -m factory_monitor.services.sensor_monitor

Environment Variables:
    CONFIG_PATH: Path to config directory (default: config)
    STORAGE_BACKEND: memory or redis (default: memory)
    REDIS_URL: Redis connection URL (default: redis://localhost:6379)
    LOG_LEVEL: Logging level (default: INFO)
    LOG_FORMAT: json or text (default: json)
    MONITORING_INTERVAL_SECONDS: Override of the monitoring period
    EMAIL_GATEWAY_URL: Email gateway endpoint (optional)
    SMS_GATEWAY_URL: SMS gateway endpoint (optional)
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

import structlog

from factory_monitor import __version__
from factory_monitor.detection.alert_service import AlertService
from factory_monitor.detection.channels import (
    ConsoleMessagingChannel,
    EmailChannel,
    MessagingChannel,
    RedisMessagingChannel,
    SmsChannel,
)
from factory_monitor.detection.dispatcher import NotificationDispatcher
from factory_monitor.detection.statistics import NotificationStatistics
from factory_monitor.events import EventBus, WorkerPool
from factory_monitor.interfaces.collector import ReadingCollector
from factory_monitor.interfaces.stores import AlertStore, ReadingStore
from factory_monitor.models.alerts import AlertCreatedEvent
from factory_monitor.monitoring import (
    MonitoringScheduler,
    ReadingLog,
    SensorService,
    create_collector,
    create_evaluator,
)
from factory_monitor.services import ServiceRunner, setup_logging
from factory_monitor.storage import (
    InMemoryAlertStore,
    InMemoryFacilityStore,
    InMemoryReadingStore,
    InMemorySensorStore,
    InMemoryUserDirectory,
    RedisAlertStore,
    RedisReadingStore,
    load_seed,
)

logger = structlog.get_logger(__name__)

# Retention purge interval in seconds
RETENTION_CHECK_INTERVAL = 3600


class SensorMonitorService(ServiceRunner):
    """
    Monitoring service wiring stores, scheduler and notification fan-out.

    Attributes:
        sensor_service: Sensor and facility lookups.
        reading_log: Reading log.
        alert_service: Alert creation and queries.
        bus: Event bus AlertCreatedEvent is published on.
        notification_pool: Pool running the dispatcher.
        general_pool: Pool running the statistics subscriber.
        dispatcher: Notification fan-out.
        statistics: Notification counters.
        scheduler: Monitoring and statistics timers.
    """

    def __init__(self, config_path: Path | str = "config") -> None:
        """Initialize the sensor monitor service."""
        super().__init__(config_path)
        self.sensor_service: Optional[SensorService] = None
        self.reading_log: Optional[ReadingLog] = None
        self.alert_service: Optional[AlertService] = None
        self.bus: Optional[EventBus] = None
        self.notification_pool: Optional[WorkerPool] = None
        self.general_pool: Optional[WorkerPool] = None
        self.collector: Optional[ReadingCollector] = None
        self.messaging: Optional[MessagingChannel] = None
        self.email: Optional[EmailChannel] = None
        self.sms: Optional[SmsChannel] = None
        self.dispatcher: Optional[NotificationDispatcher] = None
        self.statistics: Optional[NotificationStatistics] = None
        self.scheduler: Optional[MonitoringScheduler] = None

    @property
    def service_name(self) -> str:
        """Return service name."""
        return "sensor-monitor"

    async def _initialize(self) -> None:
        """Build every component and start the timers."""
        if self.config is None:
            raise RuntimeError("Service not properly initialized")

        monitoring = self.config.monitoring
        notifications = self.config.notifications

        # Sensors, facilities and users are seeded in memory
        sensor_store = InMemorySensorStore()
        facility_store = InMemoryFacilityStore()
        users = InMemoryUserDirectory()
        await load_seed(self.config.seed, sensor_store, facility_store, users)
        self.sensor_service = SensorService(sensor_store, facility_store)

        alert_store: AlertStore
        reading_store: ReadingStore
        if self.redis_client is not None:
            alert_store = RedisAlertStore(self.redis_client)
            reading_store = RedisReadingStore(
                self.redis_client,
                max_per_sensor=monitoring.retention.max_readings_per_sensor,
            )
            self.messaging = RedisMessagingChannel(
                self.redis_client, prefix=notifications.messaging_channel_prefix
            )
        else:
            alert_store = InMemoryAlertStore()
            reading_store = InMemoryReadingStore(
                max_per_sensor=monitoring.retention.max_readings_per_sensor
            )
            self.messaging = ConsoleMessagingChannel()

        # Worker pools and event bus
        self.notification_pool = WorkerPool.from_config(
            "notification", notifications.notification_pool
        )
        self.general_pool = WorkerPool.from_config("general", notifications.general_pool)
        self.notification_pool.start()
        self.general_pool.start()
        self.bus = EventBus()

        self.reading_log = ReadingLog(reading_store, self.sensor_service)
        self.alert_service = AlertService(
            store=alert_store,
            sensors=self.sensor_service,
            bus=self.bus,
            policy=monitoring.severity,
            evaluator=create_evaluator(monitoring.severity),
            retention_days=monitoring.retention.alert_retention_days,
        )

        # Notification channels and subscribers
        self.email = EmailChannel(notifications.email) if notifications.email.enabled else None
        self.sms = SmsChannel(notifications.sms) if notifications.sms.enabled else None
        self.dispatcher = NotificationDispatcher(
            messaging=self.messaging,
            email=self.email,
            sms=self.sms,
            users=users,
            topics=notifications.topics,
        )
        self.statistics = NotificationStatistics()
        self.bus.subscribe(
            AlertCreatedEvent, self.dispatcher.handle, self.notification_pool, "dispatcher"
        )
        self.bus.subscribe(
            AlertCreatedEvent, self.statistics.handle, self.general_pool, "statistics"
        )

        # Scheduler
        self.collector = create_collector(monitoring.collector)
        self.scheduler = MonitoringScheduler(
            sensors=self.sensor_service,
            collector=self.collector,
            readings=self.reading_log,
            alerts=self.alert_service,
            config=monitoring.scheduler,
        )

        self.logger.info(
            "monitor_components_initialized",
            collector=self.collector.name,
            messaging=self.messaging.name,
            email_enabled=self.email is not None,
            sms_enabled=self.sms is not None,
            interval_seconds=monitoring.scheduler.monitoring_interval_seconds,
        )

    async def _run(self) -> None:
        """Run the scheduler and the retention purge until shutdown."""
        if self.scheduler is None or self.alert_service is None:
            raise RuntimeError("Service not properly initialized")

        await self.scheduler.start()

        while not self.shutdown_event.is_set():
            try:
                removed = await self.alert_service.purge_expired()
                if removed:
                    self.logger.info("retention_purge_completed", removed=removed)
            except Exception as e:
                self.logger.error("retention_purge_error", error=str(e))

            try:
                await asyncio.wait_for(
                    self.shutdown_event.wait(), timeout=RETENTION_CHECK_INTERVAL
                )
            except asyncio.TimeoutError:
                continue

    async def _cleanup(self) -> None:
        """Stop timers first, then drain the pools within their grace periods."""
        if self.scheduler is not None:
            await self.scheduler.stop()

        if self.config is not None:
            notifications = self.config.notifications
            if self.notification_pool is not None:
                await self.notification_pool.shutdown(
                    notifications.notification_pool.shutdown_grace_seconds
                )
            if self.general_pool is not None:
                await self.general_pool.shutdown(
                    notifications.general_pool.shutdown_grace_seconds
                )

        for channel in (self.email, self.sms):
            if channel is not None:
                await channel.close()
        if self.collector is not None:
            await self.collector.close()

        if self.statistics is not None:
            self.statistics.log_stats()
        if self.scheduler is not None:
            self.logger.info(
                "cleanup_state",
                ticks_completed=self.scheduler.ticks_completed,
                ticks_skipped=self.scheduler.ticks_skipped,
            )


async def main() -> None:
    """Main entry point."""
    # Set up initial logging
    setup_logging()

    config_path = os.getenv("CONFIG_PATH", "config")

    logger.info(
        "sensor_monitor_service_starting",
        version=__version__,
        config_path=config_path,
    )

    service = SensorMonitorService(config_path=config_path)

    try:
        await service.run()
    except Exception as e:
        logger.error("service_failed", error=str(e))
        sys.exit(1)


def cli() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    asyncio.run(main())
