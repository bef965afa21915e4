"""
Smart Factory Sensor Monitoring.

A monitoring backend that periodically collects readings from factory
sensors, raises alerts when values leave their configured thresholds and
fans those alerts out to notification channels.

This package provides:
- Data models for facilities, sensors, readings, alerts and users
- Abstract interfaces for stores and reading collectors
- Configuration management
- In-memory and Redis storage backends
- The monitoring scheduler, alert service and notification dispatcher
"""

__version__ = "0.1.0"
