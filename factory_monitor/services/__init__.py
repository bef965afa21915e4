"""
Service runtime shared by the process entry points.

Provides structlog configuration and the ServiceRunner base class, which
owns the configuration, the optional Redis connection, signal handling and
the initialize / run / cleanup lifecycle.

Example:
    >>> class MyService(ServiceRunner):
    ...     @property
    ...     def service_name(self) -> str:
    ...         return "my-service"
    ...     async def _initialize(self) -> None: ...
    ...     async def _run(self) -> None:
    ...         await self.shutdown_event.wait()
    ...     async def _cleanup(self) -> None: ...
    >>> asyncio.run(MyService("config").run())
"""

import asyncio
import logging
import signal
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import structlog

from factory_monitor.config import AppConfig, load_config
from factory_monitor.storage.redis_client import RedisClient

__all__: list[str] = ["ServiceRunner", "setup_logging"]


def setup_logging(level: str = "INFO", log_format: str = "json") -> None:
    """
    Configure structlog on top of the standard logging module.

    Args:
        level: Log level name (DEBUG, INFO, ...).
        log_format: "json" for JSON lines, "text" for console output.
    """
    renderer: Any
    if log_format == "text":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
        force=True,
    )

    # Reduce noise from the HTTP client
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


class ServiceRunner(ABC):
    """
    Base class for long-running services.

    Attributes:
        config_path: Directory holding the YAML configuration.
        config: Loaded configuration (set by run()).
        redis_client: Connected Redis client when the redis backend is used.
        shutdown_event: Set on SIGINT/SIGTERM or by request_shutdown().
        logger: Logger bound with the service name.
    """

    def __init__(self, config_path: Path | str = "config") -> None:
        self.config_path = Path(config_path)
        self.config: Optional[AppConfig] = None
        self.redis_client: Optional[RedisClient] = None
        self.shutdown_event = asyncio.Event()
        self.logger = structlog.get_logger(self.service_name)

    @property
    @abstractmethod
    def service_name(self) -> str:
        """Name used in logs."""
        ...

    @abstractmethod
    async def _initialize(self) -> None:
        """Build service components. Called after config and Redis are ready."""
        ...

    @abstractmethod
    async def _run(self) -> None:
        """Main service body; should return once shutdown_event is set."""
        ...

    async def _cleanup(self) -> None:
        """Service-specific cleanup, before Redis is disconnected."""
        return None

    def request_shutdown(self) -> None:
        """Ask the service to stop."""
        if not self.shutdown_event.is_set():
            self.logger.info("shutdown_requested", service=self.service_name)
        self.shutdown_event.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform or outside the main thread
                self.logger.debug("signal_handler_unavailable", signal=sig.name)

    async def _connect_redis(self) -> None:
        assert self.config is not None
        if not self.config.uses_redis:
            return
        self.redis_client = RedisClient(self.config.redis)
        await self.redis_client.connect()

    async def run(self) -> None:
        """
        Load configuration, initialize, run until shutdown, clean up.

        Raises:
            ConfigLoadError: If configuration cannot be loaded.
            RedisConnectionException: If the redis backend is selected and
                Redis is unreachable.
        """
        if self.config is None:
            self.config = load_config(self.config_path)
        setup_logging(self.config.logging.level.value, self.config.logging.format.value)

        self.logger.info(
            "service_starting",
            service=self.service_name,
            config_path=str(self.config_path),
            storage_backend=self.config.storage_backend.value,
        )

        self._install_signal_handlers()

        try:
            await self._connect_redis()
            await self._initialize()
            self.logger.info("service_started", service=self.service_name)
            await self._run()
        finally:
            try:
                await self._cleanup()
            finally:
                if self.redis_client is not None:
                    await self.redis_client.disconnect()
            self.logger.info("service_stopped", service=self.service_name)
