"""
Alert creation and notification fan-out.

Components:
    alert_service: Alert creation, queries and retention
    dispatcher: Fan-out of AlertCreatedEvent to notification channels
    statistics: Event counters (independent second subscriber)
    channels: Messaging, email and SMS channel implementations

Example:
    >>> from factory_monitor.detection import AlertService, NotificationDispatcher
    >>>
    >>> service = AlertService(alert_store, sensor_service, bus)
    >>> bus.subscribe(AlertCreatedEvent, dispatcher.handle, notification_pool, "dispatcher")
    >>> await service.check_and_create_alert(sensor_id=7, value=95.0)
"""

from factory_monitor.detection.alert_service import AlertService
from factory_monitor.detection.channels import (
    ConsoleMessagingChannel,
    EmailChannel,
    MessagingChannel,
    RedisMessagingChannel,
    SmsChannel,
)
from factory_monitor.detection.dispatcher import (
    DASHBOARD_EVENT_TYPE,
    DispatchReport,
    NotificationDispatcher,
)
from factory_monitor.detection.statistics import NotificationStatistics

__all__: list[str] = [
    # Alerts
    "AlertService",
    # Dispatch
    "NotificationDispatcher",
    "DispatchReport",
    "DASHBOARD_EVENT_TYPE",
    "NotificationStatistics",
    # Channels
    "MessagingChannel",
    "RedisMessagingChannel",
    "ConsoleMessagingChannel",
    "EmailChannel",
    "SmsChannel",
]
