"""Tests for notification fan-out."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest
from structlog.testing import capture_logs

from factory_monitor.detection.channels.messaging import MessagingChannel
from factory_monitor.detection.dispatcher import NotificationDispatcher
from factory_monitor.exceptions import NotificationChannelError
from factory_monitor.models.alerts import AlertCreatedEvent, AlertSeverity, SeverityPolicy


class RecordingMessaging(MessagingChannel):
    def __init__(self, fail_destinations: Optional[Set[str]] = None) -> None:
        self.sent: List[Tuple[str, Dict[str, Any]]] = []
        self.personal: List[Tuple[int, str]] = []
        self.fail_destinations = fail_destinations or set()

    @property
    def name(self) -> str:
        return "recording"

    async def send(self, destination: str, payload: Dict[str, Any]) -> None:
        if destination in self.fail_destinations:
            raise NotificationChannelError(self.name, f"{destination} unreachable")
        self.sent.append((destination, payload))

    async def send_to_user(self, user_id: int, destination: str, payload: Dict[str, Any]) -> None:
        self.personal.append((user_id, destination))

    @property
    def destinations(self) -> List[str]:
        return [d for d, _ in self.sent]


class StubGateway:
    def __init__(self, name: str, available: bool = True, fail_for: Optional[Set[str]] = None) -> None:
        self.name = name
        self.available = available
        self.fail_for = fail_for or set()
        self.sent: List[str] = []
        self.policies: List[Any] = []

    def is_available(self) -> bool:
        return self.available

    async def send_alert(
        self, alert, severity: AlertSeverity, recipient: str, policy=None
    ) -> None:
        if recipient in self.fail_for:
            raise NotificationChannelError(self.name, "provider down")
        self.sent.append(recipient)
        self.policies.append(policy)

    async def close(self) -> None:
        return None


@pytest.fixture
def messaging() -> RecordingMessaging:
    return RecordingMessaging()


@pytest.fixture
def email() -> StubGateway:
    return StubGateway("email")


@pytest.fixture
def sms() -> StubGateway:
    return StubGateway("sms")


@pytest.fixture
def dispatcher(messaging, email, sms, user_directory, clock) -> NotificationDispatcher:
    return NotificationDispatcher(messaging, email, sms, user_directory, clock=clock)


@pytest.mark.asyncio
async def test_medium_alert_fans_out_without_manager_paths(
    dispatcher, messaging, email, sms, make_alert
) -> None:
    event = AlertCreatedEvent.from_alert(make_alert(value=85.0))

    report = await dispatcher.handle(event)

    assert report.ok
    assert report.attempted == [
        "broadcast",
        "severity",
        "facility",
        "dashboard",
        "recent_dashboard",
        "operators",
    ]
    assert messaging.destinations == [
        "/topic/alerts",
        "/topic/alerts/medium",
        "/topic/facility/1/alerts",
        "/topic/dashboard",
        "/topic/dashboard",
    ]
    # operator.b is inactive
    assert messaging.personal == [(3, "/queue/personal-alerts")]
    assert email.sent == []
    assert sms.sent == []


@pytest.mark.asyncio
async def test_high_alert_notifies_managers_and_emails_them(
    dispatcher, messaging, email, sms, make_alert
) -> None:
    event = AlertCreatedEvent.from_alert(make_alert(value=95.0))

    report = await dispatcher.handle(event)

    assert "/topic/alerts/high" in messaging.destinations
    manager_ids = [uid for uid, _ in messaging.personal if uid != 3]
    assert sorted(manager_ids) == [1, 2, 5]
    # night.manager has no usable email address
    assert sorted(email.sent) == ["admin@plant.local", "manager@plant.local"]
    # deviation 15 does not exceed the range of 20
    assert sms.sent == []
    assert "managers" in report.attempted
    assert "manager_email" in report.attempted
    assert "emergency_sms" not in report.attempted


@pytest.mark.asyncio
async def test_payloads_carry_severity_of_configured_policy(
    dispatcher, messaging, email, make_alert
) -> None:
    # deviation 5 exceeds 20 * 0.1, so this is HIGH rather than the default MEDIUM
    policy = SeverityPolicy(high_severity_ratio=0.1)
    event = AlertCreatedEvent.from_alert(make_alert(value=85.0), policy)
    assert event.severity == AlertSeverity.HIGH

    await dispatcher.handle(event)

    payloads = dict(messaging.sent)
    assert payloads["/topic/alerts/high"]["severity"] == "HIGH"
    assert payloads["/topic/alerts"]["summary"].startswith("[HIGH]")
    assert payloads["/topic/dashboard"]["alert"]["severity"] == "HIGH"
    assert payloads["/topic/dashboard"]["severity"] == "HIGH"
    assert "/topic/alerts/medium" not in messaging.destinations
    assert email.policies and all(p == policy for p in email.policies)


@pytest.mark.asyncio
async def test_emergency_sms_goes_to_valid_manager_phones(dispatcher, sms, make_alert) -> None:
    event = AlertCreatedEvent.from_alert(make_alert(value=101.0))
    assert event.is_emergency

    report = await dispatcher.handle(event)

    assert sms.sent == ["010-1234-5678"]
    assert "emergency_sms" in report.succeeded


@pytest.mark.asyncio
async def test_unavailable_channels_are_skipped(messaging, user_directory, clock, make_alert) -> None:
    email = StubGateway("email", available=False)
    dispatcher = NotificationDispatcher(messaging, email, None, user_directory, clock=clock)
    event = AlertCreatedEvent.from_alert(make_alert(value=101.0))

    report = await dispatcher.handle(event)

    assert email.sent == []
    assert report.skipped == ["manager_email", "emergency_sms"]
    assert report.ok
    assert not dispatcher.is_channel_available("email")
    assert not dispatcher.is_channel_available("sms")
    assert dispatcher.is_channel_available("messaging")


@pytest.mark.asyncio
async def test_failing_email_does_not_stop_other_channels(
    messaging, sms, user_directory, clock, make_alert
) -> None:
    email = StubGateway("email", fail_for={"manager@plant.local"})
    dispatcher = NotificationDispatcher(messaging, email, sms, user_directory, clock=clock)
    event = AlertCreatedEvent.from_alert(make_alert(value=101.0))

    with capture_logs() as logs:
        report = await dispatcher.handle(event)

    failures = [e for e in logs if e["event"] == "notification_step_failed"]
    assert len(failures) == 1
    assert failures[0]["log_level"] == "error"
    assert failures[0]["step"] == "manager_email"
    assert failures[0]["channel"] == "email"
    assert failures[0]["error_type"] == "NotificationChannelError"
    assert report.failed == ["manager_email"]
    assert email.sent == ["admin@plant.local"]
    assert sms.sent == ["010-1234-5678"]
    assert (3, "/queue/personal-alerts") in messaging.personal
    assert dispatcher.step_failures == 1


@pytest.mark.asyncio
async def test_failing_broadcast_is_isolated(user_directory, email, sms, clock, make_alert) -> None:
    messaging = RecordingMessaging(fail_destinations={"/topic/alerts"})
    dispatcher = NotificationDispatcher(messaging, email, sms, user_directory, clock=clock)

    report = await dispatcher.handle(AlertCreatedEvent.from_alert(make_alert(value=85.0)))

    assert report.failed == ["broadcast"]
    assert "/topic/alerts/medium" in messaging.destinations
    assert "/topic/facility/1/alerts" in messaging.destinations


@pytest.mark.asyncio
async def test_user_lookup_failure_fails_only_that_step(
    dispatcher, messaging, user_directory, make_alert, monkeypatch
) -> None:
    async def broken(role):
        raise ConnectionError("directory offline")

    monkeypatch.setattr(user_directory, "get_active_user_ids_by_role", broken)

    report = await dispatcher.handle(AlertCreatedEvent.from_alert(make_alert(value=85.0)))

    assert report.failed == ["operators"]
    assert messaging.personal == []
    assert "recent_dashboard" in report.succeeded


@pytest.mark.asyncio
@pytest.mark.parametrize(("age_minutes", "recent"), [(29, True), (31, False)])
async def test_recent_branch_depends_on_alert_age(
    dispatcher, messaging, make_alert, clock, age_minutes: int, recent: bool
) -> None:
    alert = make_alert(value=85.0, created_at=clock.now - timedelta(minutes=age_minutes))

    report = await dispatcher.handle(AlertCreatedEvent.from_alert(alert))

    assert ("operators" in report.attempted) is recent
    assert (messaging.destinations.count("/topic/dashboard") == 2) is recent
    assert ((3, "/queue/personal-alerts") in messaging.personal) is recent


@pytest.mark.asyncio
async def test_dashboard_payload_shape(dispatcher, messaging, make_alert, clock) -> None:
    event = AlertCreatedEvent.from_alert(make_alert(alert_id=12, value=95.0))

    await dispatcher.handle(event)

    payload = dict(messaging.sent)["/topic/dashboard"]
    assert payload["type"] == "NEW_ALERT"
    assert payload["severity"] == "HIGH"
    assert payload["facilityId"] == 1
    assert payload["alert"]["id"] == 12
    assert payload["timestamp"] == clock.now.isoformat()
    assert dispatcher.events_handled == 1
    assert dispatcher.last_report is not None
