"""
Configuration management for the monitoring backend.

Configuration is loaded from YAML files in the config/ directory and
validated with Pydantic models:
    - monitoring.yaml: Scheduler periods, severity policy, retention, collector
    - notifications.yaml: Worker pools, messaging topics, email/SMS gateways
    - seed.yaml: Optional facilities, sensors and users

Environment variables can override connection and runtime settings:
    - REDIS_URL, STORAGE_BACKEND, LOG_LEVEL, LOG_FORMAT, CONFIG_PATH
    - MONITORING_INTERVAL_SECONDS, EMAIL_GATEWAY_URL, SMS_GATEWAY_URL

Example:
    >>> from factory_monitor.config import load_config
    >>> config = load_config()
    >>> config.monitoring.severity.recent_window_minutes
    30

Modules:
    loader: Configuration file loading utilities
    models: Pydantic models for configuration validation
"""

from factory_monitor.config.loader import ConfigLoadError, ConfigLoader, load_config
from factory_monitor.config.models import (
    # Enums
    LogFormat,
    LogLevel,
    StorageBackend,
    # Monitoring
    CollectorConfig,
    MonitoringConfig,
    RetentionConfig,
    SchedulerConfig,
    SimulationProfile,
    # Notifications
    GatewayConfig,
    NotificationConfig,
    PoolConfig,
    TopicsConfig,
    # Root
    AppConfig,
    LoggingConfig,
    RedisConnectionConfig,
    SeedConfig,
)

__all__: list[str] = [
    # Loader
    "ConfigLoadError",
    "ConfigLoader",
    "load_config",
    # Enums
    "LogFormat",
    "LogLevel",
    "StorageBackend",
    # Monitoring
    "CollectorConfig",
    "MonitoringConfig",
    "RetentionConfig",
    "SchedulerConfig",
    "SimulationProfile",
    # Notifications
    "GatewayConfig",
    "NotificationConfig",
    "PoolConfig",
    "TopicsConfig",
    # Root
    "AppConfig",
    "LoggingConfig",
    "RedisConnectionConfig",
    "SeedConfig",
]
