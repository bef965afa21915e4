"""
Shared Pydantic data models for the monitoring backend.

Modules:
    sensors: Facilities, sensors and readings
    alerts: Alert records, severity rules and the alert-created event
    users: Notification recipients and roles

Example:
    >>> from factory_monitor.models import Sensor, SensorType, Alert, AlertSeverity
"""

# Sensor models
from factory_monitor.models.sensors import (
    Facility,
    FacilityStatus,
    Reading,
    Sensor,
    SensorType,
    validate_thresholds,
)

# Alert models
from factory_monitor.models.alerts import (
    DEFAULT_SEVERITY_POLICY,
    Alert,
    AlertCreatedEvent,
    AlertSeverity,
    SeverityPolicy,
    classify_severity,
    compute_deviation,
)

# User models
from factory_monitor.models.users import (
    User,
    UserRole,
)

__all__: list[str] = [
    # Sensors
    "Facility",
    "FacilityStatus",
    "Reading",
    "Sensor",
    "SensorType",
    "validate_thresholds",
    # Alerts
    "DEFAULT_SEVERITY_POLICY",
    "Alert",
    "AlertCreatedEvent",
    "AlertSeverity",
    "SeverityPolicy",
    "classify_severity",
    "compute_deviation",
    # Users
    "User",
    "UserRole",
]
