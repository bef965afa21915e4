"""
Sensor, facility and reading models.

This module defines the plant-side structures the monitoring loop works on:
facilities with an operational status, sensors with optional thresholds, and
the append-only readings collected from them.

Models:
    SensorType: Supported sensor kinds
    FacilityStatus: Operational status of a facility
    Facility: A piece of plant equipment that owns sensors
    Sensor: A sensor with optional [min, max] thresholds
    Reading: One collected measurement
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from factory_monitor.exceptions import InvalidConfigurationError


class SensorType(str, Enum):
    """
    Supported sensor kinds.

    Attributes:
        TEMPERATURE: Temperature probe (°C).
        PRESSURE: Pressure transducer (bar).
        VIBRATION: Vibration sensor (Hz).
        HUMIDITY: Relative humidity (%).
        CURRENT: Electrical current (A).
        VOLTAGE: Electrical voltage (V).
    """

    TEMPERATURE = "TEMPERATURE"
    PRESSURE = "PRESSURE"
    VIBRATION = "VIBRATION"
    HUMIDITY = "HUMIDITY"
    CURRENT = "CURRENT"
    VOLTAGE = "VOLTAGE"


class FacilityStatus(str, Enum):
    """Operational status of a facility."""

    RUNNING = "RUNNING"
    STOPPED = "STOPPED"
    MAINTENANCE = "MAINTENANCE"
    FAULT = "FAULT"

    @property
    def is_running(self) -> bool:
        """Check if sensors of a facility in this status are monitored."""
        return self == FacilityStatus.RUNNING


class Facility(BaseModel):
    """
    A piece of plant equipment.

    Attributes:
        id: Facility identifier.
        name: Human-readable name.
        location: Optional location label.
        status: Current operational status.
        created_at: When the facility was registered.

    Example:
        >>> press = Facility(id=1, name="Press #1", status=FacilityStatus.RUNNING)
        >>> press.is_running
        True
    """

    model_config = {"frozen": True, "extra": "forbid"}

    id: int = Field(..., description="Facility identifier")
    name: str = Field(..., description="Human-readable name", min_length=1, max_length=100)
    location: Optional[str] = Field(default=None, description="Location label", max_length=100)
    status: FacilityStatus = Field(
        default=FacilityStatus.STOPPED,
        description="Operational status",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the facility was registered",
    )

    @property
    def is_running(self) -> bool:
        """Check if the facility is running."""
        return self.status.is_running


def validate_thresholds(
    threshold_min: Optional[float],
    threshold_max: Optional[float],
) -> None:
    """
    Check a threshold pair against the sensor configuration rules.

    Rules:
        - both thresholds are set, or neither is
        - threshold_min < threshold_max
        - threshold_min >= 0

    Args:
        threshold_min: Lower bound, or None.
        threshold_max: Upper bound, or None.

    Raises:
        InvalidConfigurationError: If any rule is violated.
    """
    if (threshold_min is None) != (threshold_max is None):
        raise InvalidConfigurationError(
            "threshold_min and threshold_max must be set together"
        )
    if threshold_min is None or threshold_max is None:
        return
    if threshold_min >= threshold_max:
        raise InvalidConfigurationError(
            f"threshold_min ({threshold_min}) must be less than threshold_max ({threshold_max})"
        )
    if threshold_min < 0:
        raise InvalidConfigurationError(
            f"thresholds must be non-negative, got threshold_min={threshold_min}"
        )


class Sensor(BaseModel):
    """
    A sensor attached to a facility.

    Thresholds are optional but come as a pair. A sensor without thresholds
    is never monitored and every value is considered within range.

    Attributes:
        id: Sensor identifier.
        facility_id: Owning facility.
        name: Human-readable name.
        type: Sensor kind.
        unit: Measurement unit (e.g., "°C").
        threshold_min: Lower bound of the normal range.
        threshold_max: Upper bound of the normal range.

    Example:
        >>> sensor = Sensor(
        ...     id=7,
        ...     facility_id=1,
        ...     name="Oil temperature",
        ...     type=SensorType.TEMPERATURE,
        ...     unit="°C",
        ...     threshold_min=60.0,
        ...     threshold_max=80.0,
        ... )
        >>> sensor.is_value_within_threshold(85.0)
        False
    """

    model_config = {"frozen": True, "extra": "forbid"}

    id: int = Field(..., description="Sensor identifier")
    facility_id: int = Field(..., description="Owning facility identifier")
    name: str = Field(..., description="Human-readable name", min_length=1, max_length=100)
    type: SensorType = Field(..., description="Sensor kind")
    unit: Optional[str] = Field(default=None, description="Measurement unit", max_length=20)
    threshold_min: Optional[float] = Field(default=None, description="Lower threshold")
    threshold_max: Optional[float] = Field(default=None, description="Upper threshold")

    @model_validator(mode="after")
    def check_thresholds(self) -> "Sensor":
        """Reject threshold pairs that violate the configuration rules."""
        validate_thresholds(self.threshold_min, self.threshold_max)
        return self

    @property
    def has_thresholds(self) -> bool:
        """Check if both thresholds are configured."""
        return self.threshold_min is not None and self.threshold_max is not None

    @property
    def threshold_range(self) -> Optional[float]:
        """Width of the configured range, or None without thresholds."""
        if self.threshold_min is None or self.threshold_max is None:
            return None
        return self.threshold_max - self.threshold_min

    def is_value_within_threshold(self, value: Optional[float]) -> bool:
        """
        Check a value against the configured range (inclusive).

        Returns True when thresholds are not configured or value is None.
        """
        if self.threshold_min is None or self.threshold_max is None or value is None:
            return True
        return self.threshold_min <= value <= self.threshold_max

    def with_thresholds(
        self,
        threshold_min: Optional[float],
        threshold_max: Optional[float],
    ) -> "Sensor":
        """
        Return a copy with new thresholds after validating them.

        Passing None for both clears the thresholds.

        Raises:
            InvalidConfigurationError: If the pair is invalid.
        """
        validate_thresholds(threshold_min, threshold_max)
        return self.model_copy(
            update={"threshold_min": threshold_min, "threshold_max": threshold_max}
        )


class Reading(BaseModel):
    """
    One collected sensor measurement.

    Readings are append-only: one row per collection tick per sensor.

    Attributes:
        id: Reading identifier assigned by the store.
        sensor_id: Sensor that produced the value.
        value: Measured value.
        collected_at: Collection timestamp.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    id: int = Field(..., description="Reading identifier")
    sensor_id: int = Field(..., description="Sensor that produced the value")
    value: float = Field(..., description="Measured value")
    collected_at: datetime = Field(..., description="Collection timestamp")
