"""
Threshold evaluator.

This module provides the ThresholdEvaluator which decides whether a reading
lies within a sensor's configured range and classifies the breach.

Rules:
    - A sensor without thresholds accepts every value (NORMAL).
    - within_range iff threshold_min <= value <= threshold_max.
    - Out of range: deviation is the distance to the nearest bound and the
      severity is HIGH when deviation > range * high_severity_ratio,
      otherwise MEDIUM.

The evaluator is stateless and safe to call from concurrent tasks.

Example:
    >>> evaluator = ThresholdEvaluator()
    >>> result = evaluator.evaluate(sensor, 95.0)  # sensor range 60-80
    >>> result.within_range, result.severity
    (False, <AlertSeverity.HIGH: 'HIGH'>)
"""

from typing import Optional

import structlog
from pydantic import BaseModel, Field

from factory_monitor.models.alerts import (
    DEFAULT_SEVERITY_POLICY,
    AlertSeverity,
    SeverityPolicy,
    classify_severity,
    compute_deviation,
)
from factory_monitor.models.sensors import Sensor

logger = structlog.get_logger(__name__)


class ThresholdEvaluation(BaseModel):
    """
    Result of evaluating one value against a sensor's thresholds.

    Attributes:
        within_range: Whether the value is acceptable.
        severity: NORMAL when within range, otherwise MEDIUM or HIGH.
        deviation: Distance to the nearest bound (None without thresholds).
    """

    model_config = {"frozen": True, "extra": "forbid"}

    within_range: bool = Field(..., description="Whether the value is acceptable")
    severity: AlertSeverity = Field(..., description="Breach classification")
    deviation: Optional[float] = Field(default=None, description="Distance to nearest bound")

    @property
    def is_breach(self) -> bool:
        """Check if the value is out of range."""
        return not self.within_range


class ThresholdEvaluator:
    """
    Evaluates readings against sensor thresholds.

    Attributes:
        policy: Severity constants (HIGH ratio).

    Example:
        >>> evaluator = ThresholdEvaluator(SeverityPolicy(high_severity_ratio=0.5))
        >>> evaluator.evaluate(sensor, 85.0).severity  # range 60-80
        <AlertSeverity.MEDIUM: 'MEDIUM'>
    """

    def __init__(self, policy: SeverityPolicy = DEFAULT_SEVERITY_POLICY) -> None:
        self.policy = policy

    def evaluate(self, sensor: Sensor, value: float) -> ThresholdEvaluation:
        """
        Evaluate a value against the sensor's configured range.

        Args:
            sensor: Sensor whose thresholds apply.
            value: The measured value.

        Returns:
            ThresholdEvaluation: Range check, severity and deviation.
        """
        if not sensor.has_thresholds:
            return ThresholdEvaluation(within_range=True, severity=AlertSeverity.NORMAL)

        if sensor.is_value_within_threshold(value):
            return ThresholdEvaluation(
                within_range=True,
                severity=AlertSeverity.NORMAL,
                deviation=0.0,
            )

        deviation = compute_deviation(value, sensor.threshold_min, sensor.threshold_max)
        severity = classify_severity(
            value, sensor.threshold_min, sensor.threshold_max, self.policy
        )

        logger.debug(
            "threshold_breached",
            sensor_id=sensor.id,
            value=value,
            threshold_min=sensor.threshold_min,
            threshold_max=sensor.threshold_max,
            deviation=deviation,
            severity=severity.value,
        )

        return ThresholdEvaluation(
            within_range=False,
            severity=severity,
            deviation=deviation,
        )


def create_evaluator(policy: SeverityPolicy = DEFAULT_SEVERITY_POLICY) -> ThresholdEvaluator:
    """
    Factory function to create a ThresholdEvaluator.

    Example:
        >>> evaluator = create_evaluator()
    """
    return ThresholdEvaluator(policy)
