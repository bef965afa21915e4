"""
Emergency SMS through an HTTP SMS gateway.

Messages are truncated to a single 160 character segment.
"""

from typing import Optional

import aiohttp
import structlog

from factory_monitor.config.models import GatewayConfig
from factory_monitor.detection.channels.gateway import GatewayChannel
from factory_monitor.models.alerts import Alert, AlertSeverity

logger = structlog.get_logger(__name__)

SMS_MAX_LENGTH = 160


class SmsChannel(GatewayChannel):
    """Sends emergency SMS via the configured gateway."""

    channel_name = "sms"

    def __init__(
        self,
        config: GatewayConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(config, session)

    @staticmethod
    def format_message(alert: Alert, severity: AlertSeverity) -> str:
        """Short SMS text, at most SMS_MAX_LENGTH characters."""
        text = (
            f"EMERGENCY [{severity.value}] {alert.facility_name} {alert.sensor_name}: "
            f"{alert.value:.2f} ({alert.threshold_info})"
        )
        return text[:SMS_MAX_LENGTH]

    async def send_alert(self, alert: Alert, severity: AlertSeverity, phone: str) -> None:
        """
        Send one emergency SMS.

        Raises:
            NotificationChannelError: If the gateway rejects or fails the request.
        """
        body = {
            "from": self.config.sender,
            "to": phone,
            "text": self.format_message(alert, severity),
            "alert_id": alert.id,
        }
        await self._post(body)
        logger.warning("sms_alert_sent", alert_id=alert.id, phone=phone)
