"""
Pydantic models for application configuration.

This module defines all configuration models that are validated when loading
YAML configuration files. Every business constant the monitoring loop and
the notification fan-out depend on is a field here, with the production
value as its default.

Configuration files:
    - config/monitoring.yaml: Scheduler, severity policy, retention, collector
    - config/notifications.yaml: Worker pools, topics, email/SMS gateways
    - config/seed.yaml: Optional facilities, sensors and users for local runs

Example:
    >>> from factory_monitor.config.models import AppConfig
    >>> config = AppConfig(...)
    >>> config.monitoring.scheduler.monitoring_interval_seconds
    10.0
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from factory_monitor.models.alerts import SeverityPolicy
from factory_monitor.models.sensors import Facility, Sensor, SensorType
from factory_monitor.models.users import User


# =============================================================================
# ENUMS
# =============================================================================


class LogFormat(str, Enum):
    """Logging format options."""

    JSON = "json"
    TEXT = "text"


class LogLevel(str, Enum):
    """Logging level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StorageBackend(str, Enum):
    """Where alerts and readings are persisted."""

    MEMORY = "memory"
    REDIS = "redis"


# =============================================================================
# MONITORING CONFIGURATION
# =============================================================================


class SchedulerConfig(BaseModel):
    """Monitoring scheduler timing and concurrency."""

    model_config = {"frozen": True, "extra": "forbid"}

    monitoring_interval_seconds: float = Field(
        default=10.0,
        description="Period between monitoring ticks",
        gt=0,
    )
    statistics_interval_seconds: float = Field(
        default=300.0,
        description="Period between statistics log lines",
        gt=0,
    )
    max_concurrent_sensors: int = Field(
        default=8,
        description="Sensors processed concurrently within one tick",
        ge=1,
    )
    collection_timeout_seconds: float = Field(
        default=5.0,
        description="Per-sensor collection timeout",
        gt=0,
    )


class SimulationProfile(BaseModel):
    """
    Value distribution of the simulated collector for one sensor type.

    Values are drawn uniformly from [base, base + spread); with probability
    excursion_probability the excursion offset is added on top.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    base: float = Field(default=0.0, description="Lower end of the normal draw")
    spread: float = Field(default=100.0, description="Width of the normal draw", ge=0)
    excursion: float = Field(default=0.0, description="Offset added on excursion", ge=0)
    excursion_probability: float = Field(
        default=0.0,
        description="Probability of an excursion per draw",
        ge=0,
        le=1,
    )


def _default_profiles() -> Dict[SensorType, SimulationProfile]:
    return {
        SensorType.TEMPERATURE: SimulationProfile(
            base=50.0, spread=50.0, excursion=20.0, excursion_probability=0.05
        ),
        SensorType.PRESSURE: SimulationProfile(
            base=1.0, spread=9.0, excursion=5.0, excursion_probability=0.03
        ),
        SensorType.VIBRATION: SimulationProfile(
            base=0.0, spread=5.0, excursion=3.0, excursion_probability=0.07
        ),
        SensorType.HUMIDITY: SimulationProfile(
            base=30.0, spread=50.0, excursion=15.0, excursion_probability=0.04
        ),
    }


class CollectorConfig(BaseModel):
    """Reading collector selection and simulation settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    kind: str = Field(
        default="simulated",
        description="Collector implementation (simulated or static)",
    )
    seed: Optional[int] = Field(
        default=None,
        description="RNG seed for the simulated collector",
    )
    profiles: Dict[SensorType, SimulationProfile] = Field(
        default_factory=_default_profiles,
        description="Simulation profile per sensor type",
    )
    default_profile: SimulationProfile = Field(
        default_factory=SimulationProfile,
        description="Profile for types without an entry in profiles",
    )
    static_values: Dict[int, float] = Field(
        default_factory=dict,
        description="Fixed values per sensor id for the static collector",
    )

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, v: str) -> str:
        """Only known collector kinds are accepted."""
        if v not in ("simulated", "static"):
            raise ValueError(f"Unknown collector kind: {v}")
        return v


class RetentionConfig(BaseModel):
    """Alert retention."""

    model_config = {"frozen": True, "extra": "forbid"}

    alert_retention_days: int = Field(
        default=90,
        description="Alerts older than this are purged by purge_expired()",
        ge=0,
    )
    max_readings_per_sensor: Optional[int] = Field(
        default=None,
        description="Cap on in-memory readings per sensor (None keeps all)",
        ge=1,
    )


class MonitoringConfig(BaseModel):
    """Contents of monitoring.yaml."""

    model_config = {"frozen": True, "extra": "forbid"}

    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    severity: SeverityPolicy = Field(default_factory=SeverityPolicy)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    collector: CollectorConfig = Field(default_factory=CollectorConfig)


# =============================================================================
# NOTIFICATION CONFIGURATION
# =============================================================================


class PoolConfig(BaseModel):
    """Sizing of one bounded worker pool."""

    model_config = {"frozen": True, "extra": "forbid"}

    core_size: int = Field(..., description="Long-lived workers", ge=1)
    max_size: int = Field(..., description="Upper bound on workers", ge=1)
    queue_capacity: int = Field(..., description="Bounded queue size", ge=1)
    shutdown_grace_seconds: float = Field(
        ...,
        description="How long shutdown waits for queued work",
        ge=0,
    )

    @model_validator(mode="after")
    def validate_sizes(self) -> "PoolConfig":
        """max_size must not be below core_size."""
        if self.max_size < self.core_size:
            raise ValueError(
                f"max_size ({self.max_size}) must be >= core_size ({self.core_size})"
            )
        return self


def _notification_pool() -> PoolConfig:
    return PoolConfig(core_size=2, max_size=5, queue_capacity=100, shutdown_grace_seconds=10.0)


def _general_pool() -> PoolConfig:
    return PoolConfig(core_size=3, max_size=10, queue_capacity=50, shutdown_grace_seconds=5.0)


class TopicsConfig(BaseModel):
    """Messaging destinations."""

    model_config = {"frozen": True, "extra": "forbid"}

    broadcast: str = Field(default="/topic/alerts")
    severity_prefix: str = Field(default="/topic/alerts")
    facility_template: str = Field(default="/topic/facility/{facility_id}/alerts")
    dashboard: str = Field(default="/topic/dashboard")
    personal: str = Field(default="/queue/personal-alerts")

    def severity_topic(self, suffix: str) -> str:
        """Severity-routed destination, e.g. /topic/alerts/high."""
        return f"{self.severity_prefix}/{suffix}"

    def facility_topic(self, facility_id: int) -> str:
        """Facility-routed destination."""
        return self.facility_template.format(facility_id=facility_id)


class GatewayConfig(BaseModel):
    """
    HTTP gateway used by the email or SMS channel.

    The channel is enabled only when a URL is configured.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    url: Optional[str] = Field(default=None, description="Gateway endpoint")
    api_key: Optional[str] = Field(default=None, description="Bearer token")
    sender: Optional[str] = Field(default=None, description="From address or number")
    timeout_seconds: float = Field(default=10.0, gt=0)

    @property
    def enabled(self) -> bool:
        """Check if the gateway is configured."""
        return bool(self.url)


class NotificationConfig(BaseModel):
    """Contents of notifications.yaml."""

    model_config = {"frozen": True, "extra": "forbid"}

    notification_pool: PoolConfig = Field(default_factory=_notification_pool)
    general_pool: PoolConfig = Field(default_factory=_general_pool)
    topics: TopicsConfig = Field(default_factory=TopicsConfig)
    messaging_channel_prefix: str = Field(
        default="factory",
        description="Prefix of Redis pub/sub channels for destinations",
    )
    email: GatewayConfig = Field(default_factory=GatewayConfig)
    sms: GatewayConfig = Field(default_factory=GatewayConfig)


# =============================================================================
# SEED DATA
# =============================================================================


class SeedConfig(BaseModel):
    """Contents of seed.yaml."""

    model_config = {"frozen": True, "extra": "forbid"}

    facilities: List[Facility] = Field(default_factory=list)
    sensors: List[Sensor] = Field(default_factory=list)
    users: List[User] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_references(self) -> "SeedConfig":
        """Every sensor must belong to a seeded facility."""
        facility_ids = {f.id for f in self.facilities}
        for sensor in self.sensors:
            if sensor.facility_id not in facility_ids:
                raise ValueError(
                    f"Sensor {sensor.id} references unknown facility {sensor.facility_id}"
                )
        return self


# =============================================================================
# CONNECTIONS AND ROOT
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    format: LogFormat = Field(
        default=LogFormat.JSON,
        description="Log output format",
    )
    level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Default log level",
    )


class RedisConnectionConfig(BaseModel):
    """Redis connection configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL",
    )
    db: int = Field(
        default=0,
        description="Redis database number",
        ge=0,
    )
    max_connections: int = Field(
        default=10,
        description="Maximum connection pool size",
        ge=1,
    )
    socket_timeout: int = Field(
        default=5,
        description="Socket timeout in seconds",
        ge=1,
    )


class AppConfig(BaseModel):
    """
    Root application configuration.

    Aggregates all configuration sections into a single validated object.

    Example:
        >>> config = load_config("config")
        >>> config.monitoring.severity.high_severity_ratio
        0.5
    """

    model_config = {"frozen": True, "extra": "forbid"}

    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    seed: SeedConfig = Field(default_factory=SeedConfig)
    storage_backend: StorageBackend = Field(
        default=StorageBackend.MEMORY,
        description="Persistence backend for alerts and readings",
    )
    redis: RedisConnectionConfig = Field(
        default_factory=RedisConnectionConfig,
        description="Redis connection config",
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def uses_redis(self) -> bool:
        """Check if the Redis backend is selected."""
        return self.storage_backend == StorageBackend.REDIS
