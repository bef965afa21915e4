"""
Base HTTP gateway client for the email and SMS channels.

Both channels POST a JSON document to a configured gateway URL. The
session is created lazily and reused; a session may also be injected, in
which case close() leaves it alone.
"""

import asyncio
from typing import Any, Dict, Optional

import aiohttp
import structlog

from factory_monitor.config.models import GatewayConfig
from factory_monitor.exceptions import NotificationChannelError

logger = structlog.get_logger(__name__)


class GatewayChannel:
    """
    JSON-over-HTTP gateway client.

    Attributes:
        channel_name: Channel name used in logs and errors.
        config: Gateway URL, credentials and timeout.
    """

    channel_name = "gateway"

    def __init__(
        self,
        config: GatewayConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.config = config
        self._session = session
        self._owns_session = session is None
        self.sent = 0
        self.failed = 0

    @property
    def name(self) -> str:
        return self.channel_name

    @property
    def enabled(self) -> bool:
        """Check if a gateway URL is configured."""
        return self.config.enabled

    def is_available(self) -> bool:
        return self.enabled

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
            headers = {"User-Agent": "factory-monitor/1.0"}
            if self.config.api_key:
                headers["Authorization"] = f"Bearer {self.config.api_key}"
            self._session = aiohttp.ClientSession(timeout=timeout, headers=headers)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this channel created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            logger.debug("gateway_session_closed", channel=self.channel_name)

    async def _post(self, body: Dict[str, Any]) -> None:
        """
        POST a JSON body to the gateway.

        Raises:
            NotificationChannelError: If the channel is disabled, the request
                fails, times out or returns a non-2xx status.
        """
        if not self.enabled:
            raise NotificationChannelError(self.channel_name, "gateway not configured")

        session = await self._ensure_session()
        url = self.config.url

        try:
            async with session.post(url, json=body) as response:
                if response.status < 200 or response.status >= 300:
                    error_text = await response.text()
                    self.failed += 1
                    logger.error(
                        "gateway_request_failed",
                        channel=self.channel_name,
                        url=url,
                        status=response.status,
                        error=error_text,
                    )
                    raise NotificationChannelError(
                        self.channel_name,
                        f"gateway returned status {response.status}: {error_text}",
                    )
        except aiohttp.ClientError as e:
            self.failed += 1
            logger.error("gateway_client_error", channel=self.channel_name, url=url, error=str(e))
            raise NotificationChannelError(self.channel_name, f"request failed: {e}") from e
        except asyncio.TimeoutError as e:
            self.failed += 1
            logger.error(
                "gateway_timeout",
                channel=self.channel_name,
                url=url,
                timeout=self.config.timeout_seconds,
            )
            raise NotificationChannelError(
                self.channel_name,
                f"request timeout after {self.config.timeout_seconds}s",
            ) from e

        self.sent += 1
