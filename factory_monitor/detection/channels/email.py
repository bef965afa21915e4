"""
Email alerts through an HTTP mail gateway.

Request body:
    {
        "from": "alerts@smartfactory.local",
        "to": "manager@smartfactory.local",
        "subject": "[HIGH] Oil temperature alert on Press #1",
        "text": "...",
        "alert": {...}
    }
"""

from typing import Optional

import aiohttp
import structlog

from factory_monitor.config.models import GatewayConfig
from factory_monitor.detection.channels.gateway import GatewayChannel
from factory_monitor.models.alerts import (
    DEFAULT_SEVERITY_POLICY,
    Alert,
    AlertSeverity,
    SeverityPolicy,
)

logger = structlog.get_logger(__name__)


def format_alert_text(alert: Alert, severity: AlertSeverity) -> str:
    """Plain-text body shared by email and SMS."""
    return (
        f"[{severity.value}] {alert.facility_name} / {alert.sensor_name}\n"
        f"Value: {alert.value:.2f} (threshold: {alert.threshold_info})\n"
        f"{alert.message}\n"
        f"Raised at {alert.created_at.isoformat()}"
    )


class EmailChannel(GatewayChannel):
    """
    Sends alert emails via the configured gateway.

    Example:
        >>> email = EmailChannel(GatewayConfig(url="https://mail.local/send"))
        >>> await email.send_alert(alert, AlertSeverity.HIGH, "manager@plant.local")
    """

    channel_name = "email"

    def __init__(
        self,
        config: GatewayConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(config, session)

    async def send_alert(
        self,
        alert: Alert,
        severity: AlertSeverity,
        recipient: str,
        policy: SeverityPolicy = DEFAULT_SEVERITY_POLICY,
    ) -> None:
        """
        Email one alert to one recipient.

        Raises:
            NotificationChannelError: If the gateway rejects or fails the request.
        """
        body = {
            "from": self.config.sender,
            "to": recipient,
            "subject": f"[{severity.value}] {alert.sensor_name} alert on {alert.facility_name}",
            "text": format_alert_text(alert, severity),
            "alert": alert.to_payload(policy),
        }
        await self._post(body)
        logger.info("email_alert_sent", alert_id=alert.id, recipient=recipient)
