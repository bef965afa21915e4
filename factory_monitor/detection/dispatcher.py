"""
Notification dispatcher for created alerts.

NotificationDispatcher is the primary AlertCreatedEvent subscriber. It runs
on the notification worker pool and fans each alert out to the messaging,
email and SMS channels. Every step is isolated: a failing channel is logged
and recorded in the DispatchReport, the remaining steps still run, and
nothing is raised back to the pool.

Fan-out per event:
    1. broadcast          -> /topic/alerts
    2. severity           -> /topic/alerts/<severity>
    3. facility           -> /topic/facility/<id>/alerts
    4. dashboard          -> /topic/dashboard (NEW_ALERT payload)
    5. HIGH only:
       managers           -> personal queue of active MANAGER and ADMIN users
       manager_email      -> their valid email addresses (if email is available)
       emergency_sms      -> manager phones, only when the breach exceeds the
                             emergency bound (if SMS is available)
    6. recent only:
       recent_dashboard   -> dashboard payload again
       operators          -> personal queue of active OPERATOR users

Example:
    >>> dispatcher = NotificationDispatcher(messaging, email, sms, user_directory)
    >>> bus.subscribe(AlertCreatedEvent, dispatcher.handle, notification_pool, "dispatcher")
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from factory_monitor.config.models import TopicsConfig
from factory_monitor.detection.channels.email import EmailChannel
from factory_monitor.detection.channels.messaging import MessagingChannel
from factory_monitor.detection.channels.sms import SmsChannel
from factory_monitor.interfaces.stores import UserDirectory
from factory_monitor.models.alerts import AlertCreatedEvent, AlertSeverity
from factory_monitor.models.users import UserRole

logger = structlog.get_logger(__name__)

DASHBOARD_EVENT_TYPE = "NEW_ALERT"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DispatchReport:
    """
    Outcome of one event's fan-out.

    Attributes:
        alert_id: The dispatched alert.
        attempted: Steps that were run, in order.
        failed: Steps in which at least one delivery failed.
        skipped: Steps not run because their channel was unavailable.
        deliveries: Individual messages delivered successfully.
    """

    alert_id: int
    attempted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    deliveries: int = 0

    @property
    def succeeded(self) -> List[str]:
        """Attempted steps with no failure."""
        return [step for step in self.attempted if step not in self.failed]

    @property
    def ok(self) -> bool:
        """Check if every attempted step succeeded."""
        return not self.failed


class NotificationDispatcher:
    """
    Fans AlertCreatedEvents out to notification channels.

    Attributes:
        messaging: Real-time messaging channel.
        email: Email channel, or None when not configured.
        sms: SMS channel, or None when not configured.
        users: Directory resolving recipients by role.
        topics: Messaging destinations.
    """

    def __init__(
        self,
        messaging: MessagingChannel,
        email: Optional[EmailChannel],
        sms: Optional[SmsChannel],
        users: UserDirectory,
        topics: Optional[TopicsConfig] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.messaging = messaging
        self.email = email
        self.sms = sms
        self.users = users
        self.topics = topics or TopicsConfig()
        self._clock = clock

        self.events_handled = 0
        self.step_failures = 0
        self.last_report: Optional[DispatchReport] = None

        logger.info(
            "notification_dispatcher_initialized",
            messaging=messaging.name,
            email_enabled=self._email_available(),
            sms_enabled=self._sms_available(),
        )

    def _email_available(self) -> bool:
        return self.email is not None and self.email.is_available()

    def _sms_available(self) -> bool:
        return self.sms is not None and self.sms.is_available()

    def is_channel_available(self, channel: str) -> bool:
        """Check a channel by name: "messaging", "email" or "sms"."""
        if channel == "messaging":
            return self.messaging.is_available()
        if channel == "email":
            return self._email_available()
        if channel == "sms":
            return self._sms_available()
        return False

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    async def handle(self, event: AlertCreatedEvent) -> DispatchReport:
        """
        Run the full fan-out for one event.

        Never raises for channel failures; they are logged and listed in the
        returned report.
        """
        alert = event.alert
        payload = alert.to_payload(event.policy)
        report = DispatchReport(alert_id=alert.id)

        self._log_receipt(event)

        await self._step(
            report,
            "broadcast",
            event,
            [lambda: self.messaging.send(self.topics.broadcast, payload)],
        )
        await self._step(
            report,
            "severity",
            event,
            [
                lambda: self.messaging.send(
                    self.topics.severity_topic(event.severity.topic_suffix), payload
                )
            ],
        )
        await self._step(
            report,
            "facility",
            event,
            [
                lambda: self.messaging.send(
                    self.topics.facility_topic(event.facility_id), payload
                )
            ],
        )
        await self._step(
            report,
            "dashboard",
            event,
            [lambda: self.messaging.send(self.topics.dashboard, self.dashboard_payload(event))],
        )

        if event.is_high_severity:
            await self._handle_high_severity(event, payload, report)

        if event.is_recent(self._clock()):
            await self._handle_recent(event, payload, report)

        self.events_handled += 1
        self.step_failures += len(report.failed)
        self.last_report = report

        log = logger.warning if report.failed else logger.info
        log(
            "alert_dispatch_complete",
            alert_id=alert.id,
            severity=event.severity.value,
            attempted=report.attempted,
            failed=report.failed,
            skipped=report.skipped,
            deliveries=report.deliveries,
        )
        return report

    def dashboard_payload(self, event: AlertCreatedEvent) -> Dict[str, Any]:
        """Dashboard update message for an event."""
        return {
            "type": DASHBOARD_EVENT_TYPE,
            "alert": event.alert.to_payload(event.policy),
            "timestamp": self._clock().isoformat(),
            "severity": event.severity.value,
            "facilityId": event.facility_id,
        }

    # =========================================================================
    # CONDITIONAL STEPS
    # =========================================================================

    async def _handle_high_severity(
        self,
        event: AlertCreatedEvent,
        payload: Dict[str, Any],
        report: DispatchReport,
    ) -> None:
        alert = event.alert
        logger.warning(
            "high_severity_alert",
            alert_id=alert.id,
            facility=alert.facility_name,
            message=alert.message,
        )

        manager_ids = await self._resolve(
            report, "managers", event, self._manager_ids
        )
        if manager_ids is not None:
            await self._step(
                report,
                "managers",
                event,
                [self._personal(uid, payload) for uid in manager_ids],
            )

        if self._email_available():
            emails = await self._resolve(report, "manager_email", event, self._manager_emails)
            if emails is not None:
                assert self.email is not None
                email = self.email
                await self._step(
                    report,
                    "manager_email",
                    event,
                    [
                        (
                            lambda to=to: email.send_alert(
                                alert, event.severity, to, event.policy
                            )
                        )
                        for to in emails
                    ],
                )
        else:
            report.skipped.append("manager_email")

        if not event.is_emergency:
            return
        if self._sms_available():
            phones = await self._resolve(
                report, "emergency_sms", event, self.users.get_emergency_phone_numbers
            )
            if phones is not None:
                assert self.sms is not None
                sms = self.sms
                await self._step(
                    report,
                    "emergency_sms",
                    event,
                    [
                        (lambda to=to: sms.send_alert(alert, event.severity, to))
                        for to in phones
                    ],
                )
        else:
            report.skipped.append("emergency_sms")

    async def _handle_recent(
        self,
        event: AlertCreatedEvent,
        payload: Dict[str, Any],
        report: DispatchReport,
    ) -> None:
        logger.info("recent_alert", alert_id=event.alert.id)

        await self._step(
            report,
            "recent_dashboard",
            event,
            [lambda: self.messaging.send(self.topics.dashboard, self.dashboard_payload(event))],
        )

        operator_ids = await self._resolve(
            report,
            "operators",
            event,
            lambda: self.users.get_active_user_ids_by_role(UserRole.OPERATOR),
        )
        if operator_ids is not None:
            await self._step(
                report,
                "operators",
                event,
                [self._personal(uid, payload) for uid in operator_ids],
            )

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _manager_ids(self) -> List[int]:
        ids: List[int] = []
        for role in (UserRole.MANAGER, UserRole.ADMIN):
            for user_id in await self.users.get_active_user_ids_by_role(role):
                if user_id not in ids:
                    ids.append(user_id)
        return ids

    async def _manager_emails(self) -> List[str]:
        emails: List[str] = []
        for role in (UserRole.MANAGER, UserRole.ADMIN):
            for address in await self.users.get_active_emails_by_role(role):
                if address not in emails:
                    emails.append(address)
        return emails

    def _personal(
        self, user_id: int, payload: Dict[str, Any]
    ) -> Callable[[], Awaitable[None]]:
        return lambda: self.messaging.send_to_user(user_id, self.topics.personal, payload)

    async def _resolve(
        self,
        report: DispatchReport,
        step: str,
        event: AlertCreatedEvent,
        lookup: Callable[[], Awaitable[List[Any]]],
    ) -> Optional[List[Any]]:
        """Run a recipient lookup; a failure fails the step and returns None."""
        try:
            return await lookup()
        except Exception as e:
            report.attempted.append(step)
            report.failed.append(step)
            logger.error(
                "recipient_lookup_failed",
                step=step,
                alert_id=event.alert.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def _step(
        self,
        report: DispatchReport,
        step: str,
        event: AlertCreatedEvent,
        sends: List[Callable[[], Awaitable[None]]],
    ) -> None:
        """
        Run the deliveries of one step, each isolated from the others.

        The step is marked failed if any delivery raised.
        """
        report.attempted.append(step)
        failures = 0

        for send in sends:
            try:
                await send()
                report.deliveries += 1
            except Exception as e:
                failures += 1
                logger.error(
                    "notification_step_failed",
                    step=step,
                    channel=getattr(e, "channel", None),
                    alert_id=event.alert.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        if failures:
            report.failed.append(step)
        logger.debug(
            "notification_step_complete",
            step=step,
            alert_id=event.alert.id,
            recipients=len(sends),
            failures=failures,
        )

    def _log_receipt(self, event: AlertCreatedEvent) -> None:
        alert = event.alert
        if event.severity == AlertSeverity.HIGH:
            log = logger.error
        elif event.severity == AlertSeverity.MEDIUM:
            log = logger.warning
        else:
            log = logger.info
        log(
            "alert_event_received",
            alert_id=alert.id,
            severity=event.severity.value,
            facility=alert.facility_name,
            sensor=alert.sensor_name,
            value=alert.value,
            created_at=alert.created_at.isoformat(),
        )
