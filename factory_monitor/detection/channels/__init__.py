"""
Alert notification channels.

Components:
    messaging: Destination-based real-time messaging (Redis pub/sub, console)
    gateway: Shared aiohttp client for HTTP gateways
    email: Email alerts through a mail gateway
    sms: Emergency SMS through an SMS gateway

Example:
    >>> from factory_monitor.detection.channels import EmailChannel, RedisMessagingChannel
    >>>
    >>> messaging = RedisMessagingChannel(redis_client, prefix="factory")
    >>> email = EmailChannel(config.notifications.email)
    >>>
    >>> await messaging.send("/topic/alerts", alert.to_payload())
"""

from factory_monitor.detection.channels.email import EmailChannel, format_alert_text
from factory_monitor.detection.channels.gateway import GatewayChannel
from factory_monitor.detection.channels.messaging import (
    ConsoleMessagingChannel,
    MessagingChannel,
    RedisMessagingChannel,
)
from factory_monitor.detection.channels.sms import SMS_MAX_LENGTH, SmsChannel

__all__: list[str] = [
    # Messaging
    "MessagingChannel",
    "RedisMessagingChannel",
    "ConsoleMessagingChannel",
    # Gateways
    "GatewayChannel",
    "EmailChannel",
    "SmsChannel",
    "SMS_MAX_LENGTH",
    "format_alert_text",
]
