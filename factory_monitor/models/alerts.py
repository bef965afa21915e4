"""
Alert data models for the monitoring backend.

This module defines the alert record, the event published when one is
created, and the severity rules shared by the evaluator and the alert
read path.

Models:
    AlertSeverity: Severity levels (NORMAL, MEDIUM, HIGH, UNKNOWN)
    SeverityPolicy: Business constants for severity, emergency and recency
    Alert: Immutable alert record with its creation-time projection
    AlertCreatedEvent: Event published once per created alert

Functions:
    compute_deviation: Distance of a value from the nearest bound
    classify_severity: Severity of a value against a threshold pair
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from factory_monitor.models.sensors import SensorType


class AlertSeverity(str, Enum):
    """
    Alert severity levels.

    Severity is derived at read time from the value and the thresholds
    snapshotted on the alert; it is never stored.

    Attributes:
        NORMAL: Value within range.
        MEDIUM: Out of range by at most the HIGH ratio of the range.
        HIGH: Out of range by more than the HIGH ratio of the range.
        UNKNOWN: Thresholds were not configured.
    """

    NORMAL = "NORMAL"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    UNKNOWN = "UNKNOWN"

    @property
    def is_high(self) -> bool:
        """Check if this is the HIGH severity."""
        return self == AlertSeverity.HIGH

    @property
    def topic_suffix(self) -> str:
        """Lowercase name used in severity-routed destinations."""
        return self.value.lower()


class SeverityPolicy(BaseModel):
    """
    Business constants for alert classification.

    Attributes:
        high_severity_ratio: Deviation above range * ratio is HIGH.
        emergency_ratio: Deviation above range * ratio triggers emergency SMS.
        recent_window_minutes: Alerts at most this old are "recent".

    Example:
        >>> policy = SeverityPolicy(high_severity_ratio=0.5)
        >>> classify_severity(95.0, 60.0, 80.0, policy)
        <AlertSeverity.HIGH: 'HIGH'>
    """

    model_config = {"frozen": True, "extra": "forbid"}

    high_severity_ratio: float = Field(
        default=0.5,
        description="Deviation above range * ratio is HIGH",
        gt=0,
    )
    emergency_ratio: float = Field(
        default=1.0,
        description="Deviation above range * ratio is an emergency",
        gt=0,
    )
    recent_window_minutes: int = Field(
        default=30,
        description="Alerts at most this many minutes old are recent",
        ge=0,
    )


DEFAULT_SEVERITY_POLICY = SeverityPolicy()


def compute_deviation(
    value: float,
    threshold_min: Optional[float],
    threshold_max: Optional[float],
) -> Optional[float]:
    """
    Compute how far a value lies outside [threshold_min, threshold_max].

    Args:
        value: The measured value.
        threshold_min: Lower bound, or None.
        threshold_max: Upper bound, or None.

    Returns:
        Optional[float]: None without thresholds, 0.0 within range,
            otherwise the distance to the nearest bound.
    """
    if threshold_min is None or threshold_max is None:
        return None
    if value < threshold_min:
        return threshold_min - value
    if value > threshold_max:
        return value - threshold_max
    return 0.0


def classify_severity(
    value: float,
    threshold_min: Optional[float],
    threshold_max: Optional[float],
    policy: SeverityPolicy = DEFAULT_SEVERITY_POLICY,
) -> AlertSeverity:
    """
    Classify a value against a threshold pair.

    Args:
        value: The measured value.
        threshold_min: Lower bound, or None.
        threshold_max: Upper bound, or None.
        policy: Severity constants.

    Returns:
        AlertSeverity: UNKNOWN without thresholds, NORMAL within range,
            HIGH when deviation > range * high_severity_ratio, else MEDIUM.

    Example:
        >>> classify_severity(85.0, 60.0, 80.0)
        <AlertSeverity.MEDIUM: 'MEDIUM'>
    """
    deviation = compute_deviation(value, threshold_min, threshold_max)
    if deviation is None:
        return AlertSeverity.UNKNOWN
    if deviation == 0.0:
        return AlertSeverity.NORMAL

    value_range = threshold_max - threshold_min  # type: ignore[operator]
    if deviation > value_range * policy.high_severity_ratio:
        return AlertSeverity.HIGH
    return AlertSeverity.MEDIUM


class Alert(BaseModel):
    """
    Immutable alert record.

    The record carries the projection captured when the alert was created:
    sensor and facility labels and the threshold pair as configured at that
    moment. Reconfiguring the sensor later does not change the severity of
    an existing alert.

    Attributes:
        id: Alert identifier assigned by the store.
        sensor_id: Sensor that produced the value.
        value: Value that triggered the alert.
        message: Free-text message.
        created_at: Creation timestamp.
        sensor_name: Sensor name at creation.
        sensor_type: Sensor kind at creation.
        sensor_unit: Measurement unit at creation.
        facility_id: Owning facility at creation.
        facility_name: Facility name at creation.
        threshold_min: Lower threshold at creation.
        threshold_max: Upper threshold at creation.

    Example:
        >>> alert = Alert(
        ...     id=1,
        ...     sensor_id=7,
        ...     value=95.0,
        ...     message="Oil temperature out of range",
        ...     created_at=datetime.now(timezone.utc),
        ...     sensor_name="Oil temperature",
        ...     sensor_type=SensorType.TEMPERATURE,
        ...     facility_id=1,
        ...     facility_name="Press #1",
        ...     threshold_min=60.0,
        ...     threshold_max=80.0,
        ... )
        >>> alert.severity
        <AlertSeverity.HIGH: 'HIGH'>
    """

    model_config = {"frozen": True, "extra": "forbid"}

    # Record
    id: int = Field(..., description="Alert identifier")
    sensor_id: int = Field(..., description="Sensor that produced the value")
    value: float = Field(..., description="Value that triggered the alert")
    message: str = Field(..., description="Free-text message")
    created_at: datetime = Field(..., description="Creation timestamp")

    # Projection snapshot
    sensor_name: str = Field(..., description="Sensor name at creation")
    sensor_type: SensorType = Field(..., description="Sensor kind at creation")
    sensor_unit: Optional[str] = Field(default=None, description="Unit at creation")
    facility_id: int = Field(..., description="Owning facility at creation")
    facility_name: str = Field(..., description="Facility name at creation")
    threshold_min: Optional[float] = Field(default=None, description="Lower threshold at creation")
    threshold_max: Optional[float] = Field(default=None, description="Upper threshold at creation")

    @property
    def severity(self) -> AlertSeverity:
        """Severity under the default policy."""
        return self.classify()

    def classify(self, policy: SeverityPolicy = DEFAULT_SEVERITY_POLICY) -> AlertSeverity:
        """Severity under the given policy."""
        return classify_severity(self.value, self.threshold_min, self.threshold_max, policy)

    @property
    def deviation(self) -> Optional[float]:
        """Distance from the nearest bound (None without thresholds)."""
        return compute_deviation(self.value, self.threshold_min, self.threshold_max)

    def is_emergency(self, policy: SeverityPolicy = DEFAULT_SEVERITY_POLICY) -> bool:
        """
        Check if the breach exceeds the emergency bound.

        An emergency is a deviation larger than range * emergency_ratio,
        which with the default ratio of 1.0 means further out than the
        whole threshold range.
        """
        deviation = self.deviation
        if deviation is None or deviation == 0.0:
            return False
        value_range = self.threshold_max - self.threshold_min  # type: ignore[operator]
        return deviation > value_range * policy.emergency_ratio

    def age_minutes(self, now: Optional[datetime] = None) -> int:
        """Whole minutes elapsed since creation (truncated)."""
        current = now or datetime.now(timezone.utc)
        return int((current - self.created_at).total_seconds() // 60)

    def is_recent(
        self,
        now: Optional[datetime] = None,
        policy: SeverityPolicy = DEFAULT_SEVERITY_POLICY,
    ) -> bool:
        """Check if the alert is at most recent_window_minutes old."""
        return self.age_minutes(now) <= policy.recent_window_minutes

    @property
    def threshold_info(self) -> str:
        """Formatted threshold pair, e.g. "60.00 - 80.00 °C"."""
        if self.threshold_min is None or self.threshold_max is None:
            return "thresholds not configured"
        unit = self.sensor_unit or ""
        return f"{self.threshold_min:.2f} - {self.threshold_max:.2f} {unit}".rstrip()

    @property
    def summary(self) -> str:
        """One-line dashboard summary under the default policy."""
        return self.summarize()

    def summarize(self, policy: SeverityPolicy = DEFAULT_SEVERITY_POLICY) -> str:
        """One-line dashboard summary with severity classified under policy."""
        return (
            f"[{self.classify(policy).value}] {self.sensor_name} alert on "
            f"{self.facility_name} (value: {self.value:.2f})"
        )

    def to_payload(self, policy: SeverityPolicy = DEFAULT_SEVERITY_POLICY) -> Dict[str, Any]:
        """JSON-ready projection including attributes derived under policy."""
        payload = self.model_dump(mode="json")
        payload["severity"] = self.classify(policy).value
        payload["summary"] = self.summarize(policy)
        payload["threshold_info"] = self.threshold_info
        return payload


class AlertCreatedEvent(BaseModel):
    """
    Event published once per created alert.

    Attributes:
        alert: Snapshot of the created alert.
        severity: Severity computed by the publisher's policy.
        facility_id: Facility of the alerting sensor.
        sensor_id: Alerting sensor.
        policy: Policy the severity was computed with.
        published_at: When the event was built.

    Example:
        >>> event = AlertCreatedEvent.from_alert(alert)
        >>> event.is_high_severity
        True
    """

    model_config = {"frozen": True, "extra": "forbid"}

    alert: Alert = Field(..., description="Snapshot of the created alert")
    severity: AlertSeverity = Field(..., description="Computed severity")
    facility_id: int = Field(..., description="Facility of the alerting sensor")
    sensor_id: int = Field(..., description="Alerting sensor")
    policy: SeverityPolicy = Field(
        default=DEFAULT_SEVERITY_POLICY,
        description="Policy used for severity, emergency and recency",
    )
    published_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event was built",
    )

    @classmethod
    def from_alert(
        cls,
        alert: Alert,
        policy: SeverityPolicy = DEFAULT_SEVERITY_POLICY,
    ) -> "AlertCreatedEvent":
        """Build the event from an alert, computing its severity."""
        return cls(
            alert=alert,
            severity=alert.classify(policy),
            facility_id=alert.facility_id,
            sensor_id=alert.sensor_id,
            policy=policy,
        )

    @property
    def summary(self) -> str:
        """Short event description for logs."""
        return f"[{self.severity.value}] alert raised on facility {self.alert.facility_name}"

    @property
    def is_high_severity(self) -> bool:
        """Check if the event carries HIGH severity."""
        return self.severity.is_high

    def is_recent(self, now: Optional[datetime] = None) -> bool:
        """Check if the alert is recent under the event's policy."""
        return self.alert.is_recent(now=now, policy=self.policy)

    @property
    def is_emergency(self) -> bool:
        """Check if the breach exceeds the emergency bound."""
        return self.alert.is_emergency(self.policy)
