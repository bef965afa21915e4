"""
Notification statistics.

Second AlertCreatedEvent subscriber, running on the general worker pool.
Counts are kept in memory and logged on demand.
"""

from collections import Counter
from datetime import datetime
from typing import Any, Dict, Optional

import structlog

from factory_monitor.models.alerts import AlertCreatedEvent

logger = structlog.get_logger(__name__)


class NotificationStatistics:
    """
    Counts alert events by severity and facility.

    Example:
        >>> stats = NotificationStatistics()
        >>> bus.subscribe(AlertCreatedEvent, stats.handle, general_pool, "statistics")
        >>> stats.snapshot()["total"]
        0
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        """Clear all counters."""
        self.total = 0
        self.by_severity: Counter = Counter()
        self.by_facility: Counter = Counter()
        self.high_severity = 0
        self.emergencies = 0
        self.last_event_at: Optional[datetime] = None

    async def handle(self, event: AlertCreatedEvent) -> None:
        """Record one event."""
        self.total += 1
        self.by_severity[event.severity.value] += 1
        self.by_facility[event.facility_id] += 1
        if event.is_high_severity:
            self.high_severity += 1
        if event.is_emergency:
            self.emergencies += 1
        self.last_event_at = event.alert.created_at
        self.log_stats()

    def snapshot(self) -> Dict[str, Any]:
        """Current counters as a plain dict."""
        return {
            "total": self.total,
            "by_severity": dict(self.by_severity),
            "by_facility": dict(self.by_facility),
            "high_severity": self.high_severity,
            "emergencies": self.emergencies,
            "last_event_at": self.last_event_at.isoformat() if self.last_event_at else None,
        }

    def log_stats(self) -> None:
        logger.info("notification_stats", **self.snapshot())
