"""
Sensor monitoring loop.

This module collects readings from active sensors on a fixed period,
appends them to the reading log and checks them against thresholds.

Components:
    evaluator: Pure threshold evaluation and severity classification
    sensors: Sensor lookups and configuration
    collector: Simulated and static reading collectors
    readings: Reading log (append, queries, anomalies, statistics)
    scheduler: Periodic monitoring and statistics timers

Example:
    >>> from factory_monitor.monitoring import MonitoringScheduler, ThresholdEvaluator
    >>> evaluator = ThresholdEvaluator()
    >>> evaluator.evaluate(sensor, 85.0).severity
    <AlertSeverity.MEDIUM: 'MEDIUM'>
"""

from factory_monitor.monitoring.collector import (
    SimulatedReadingCollector,
    StaticReadingCollector,
    create_collector,
)
from factory_monitor.monitoring.evaluator import (
    ThresholdEvaluation,
    ThresholdEvaluator,
    create_evaluator,
)
from factory_monitor.monitoring.readings import ReadingLog, ReadingStatistics
from factory_monitor.monitoring.scheduler import (
    MonitoringScheduler,
    SchedulerState,
    TickReport,
)
from factory_monitor.monitoring.sensors import SensorService

__all__: list[str] = [
    # Evaluator
    "ThresholdEvaluation",
    "ThresholdEvaluator",
    "create_evaluator",
    # Sensors
    "SensorService",
    # Collectors
    "SimulatedReadingCollector",
    "StaticReadingCollector",
    "create_collector",
    # Readings
    "ReadingLog",
    "ReadingStatistics",
    # Scheduler
    "MonitoringScheduler",
    "SchedulerState",
    "TickReport",
]
