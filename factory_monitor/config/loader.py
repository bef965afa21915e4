"""
Reads the YAML files of a config directory into an AppConfig.

    config/
    ├── monitoring.yaml     scheduler, severity policy, retention, collector
    ├── notifications.yaml  worker pools, topics, email/SMS gateways
    └── seed.yaml           facilities, sensors, users (optional)

Runtime settings come from the environment and take precedence over the
files:

    CONFIG_PATH                  config directory used by load_config()
    STORAGE_BACKEND              memory | redis
    REDIS_URL                    redis://host:port
    LOG_LEVEL / LOG_FORMAT       DEBUG..CRITICAL / json | text
    MONITORING_INTERVAL_SECONDS  replaces scheduler.monitoring_interval_seconds
    EMAIL_GATEWAY_URL            replaces email.url
    SMS_GATEWAY_URL              replaces sms.url

Example:
    >>> config = load_config("config")
    >>> config.notifications.notification_pool.queue_capacity
    100
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from factory_monitor.config.models import (
    AppConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    MonitoringConfig,
    NotificationConfig,
    RedisConnectionConfig,
    SeedConfig,
    StorageBackend,
)
from factory_monitor.exceptions import InvalidConfigurationError

ModelT = TypeVar("ModelT", bound=BaseModel)

_GATEWAY_URL_ENV = (("email", "EMAIL_GATEWAY_URL"), ("sms", "SMS_GATEWAY_URL"))


class ConfigLoadError(Exception):
    """
    The configuration could not be read or did not validate.

    Attributes:
        message: What went wrong.
        file_path: Offending file or directory, when known.
        cause: Underlying exception, when there is one.
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[Path] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message
        self.file_path = file_path
        self.cause = cause
        super().__init__(message)


def _override(data: Dict[str, Any], section: str, key: str, value: Any) -> Dict[str, Any]:
    """Copy of data with data[section][key] replaced."""
    merged = dict(data.get(section) or {})
    merged[key] = value
    return {**data, section: merged}


class ConfigLoader:
    """
    Validates one config directory.

    Example:
        >>> ConfigLoader("config").load().monitoring.scheduler.statistics_interval_seconds
        300.0
    """

    def __init__(self, config_dir: Path | str = "config"):
        self.config_dir = Path(config_dir)
        if not self.config_dir.is_dir():
            reason = "not a directory" if self.config_dir.exists() else "not found"
            raise ConfigLoadError(
                f"Configuration directory {reason}: {self.config_dir}",
                file_path=self.config_dir,
            )

    def _read(self, filename: str, required: bool = True) -> Dict[str, Any]:
        """
        Parse one YAML file into a mapping.

        An absent optional file reads as {}.

        Raises:
            ConfigLoadError: If a required file is absent, or any file is
                empty, unreadable, malformed or not a mapping.
        """
        path = self.config_dir / filename
        if not path.exists():
            if required:
                raise ConfigLoadError(f"Missing configuration file: {path}", file_path=path)
            return {}

        try:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigLoadError(f"Invalid YAML in {path}: {e}", file_path=path, cause=e) from e
        except OSError as e:
            raise ConfigLoadError(f"Cannot read {path}: {e}", file_path=path, cause=e) from e

        if data is None:
            raise ConfigLoadError(f"Empty configuration file: {path}", file_path=path)
        if not isinstance(data, dict):
            raise ConfigLoadError(f"Top level of {path} must be a mapping", file_path=path)
        return data

    def _validate(self, model: Type[ModelT], data: Dict[str, Any], filename: str) -> ModelT:
        try:
            return model.model_validate(data)
        except (ValidationError, InvalidConfigurationError) as e:
            raise ConfigLoadError(
                f"{filename} failed validation: {e}",
                file_path=self.config_dir / filename,
                cause=e,
            ) from e

    def _monitoring(self) -> MonitoringConfig:
        data = self._read("monitoring.yaml")
        interval = os.getenv("MONITORING_INTERVAL_SECONDS")
        if interval:
            data = _override(data, "scheduler", "monitoring_interval_seconds", interval)
        return self._validate(MonitoringConfig, data, "monitoring.yaml")

    def _notifications(self) -> NotificationConfig:
        data = self._read("notifications.yaml")
        for section, env_var in _GATEWAY_URL_ENV:
            url = os.getenv(env_var)
            if url:
                data = _override(data, section, "url", url)
        return self._validate(NotificationConfig, data, "notifications.yaml")

    def _seed(self) -> SeedConfig:
        return self._validate(SeedConfig, self._read("seed.yaml", required=False), "seed.yaml")

    @staticmethod
    def _storage_backend() -> StorageBackend:
        raw = os.getenv("STORAGE_BACKEND", StorageBackend.MEMORY.value).lower()
        try:
            return StorageBackend(raw)
        except ValueError as e:
            raise ConfigLoadError(
                f"STORAGE_BACKEND must be memory or redis, got {raw!r}", cause=e
            ) from e

    @staticmethod
    def _logging() -> LoggingConfig:
        # Unknown values fall back to the defaults rather than failing startup
        level = os.getenv("LOG_LEVEL", "INFO").upper()
        fmt = os.getenv("LOG_FORMAT", "json").lower()
        return LoggingConfig(
            level=LogLevel(level) if level in LogLevel.__members__ else LogLevel.INFO,
            format=LogFormat(fmt) if fmt in {f.value for f in LogFormat} else LogFormat.JSON,
        )

    def load(self) -> AppConfig:
        """
        Build the full application configuration.

        Raises:
            ConfigLoadError: On any missing, malformed or invalid input.
        """
        try:
            return AppConfig(
                monitoring=self._monitoring(),
                notifications=self._notifications(),
                seed=self._seed(),
                storage_backend=self._storage_backend(),
                redis=RedisConnectionConfig(
                    url=os.getenv("REDIS_URL", "redis://localhost:6379")
                ),
                logging=self._logging(),
            )
        except ValidationError as e:
            raise ConfigLoadError(f"Invalid configuration: {e}", cause=e) from e


def load_config(config_dir: Path | str | None = None) -> AppConfig:
    """
    Load the configuration directory.

    Args:
        config_dir: Directory to read; defaults to $CONFIG_PATH, then "config".

    Raises:
        ConfigLoadError: If loading or validation fails.
    """
    if config_dir is None:
        config_dir = os.getenv("CONFIG_PATH", "config")
    return ConfigLoader(config_dir).load()
