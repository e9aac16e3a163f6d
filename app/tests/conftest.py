"""Shared fixtures for the notification service test suite.

Level 1 fixtures: a controllable clock, an in-memory repository, model
factories and a scripted channel adapter. Feature-level conftest files
build on these.
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from infrastructure.configuration import Settings
from infrastructure.notifications import (
    Channel,
    InMemoryNotificationRepository,
    Notification,
    NotificationPreference,
    NotificationRequest,
    NotificationTemplate,
    NotificationType,
    build_notification_service,
)
from infrastructure.notifications.channels.base import NotificationChannel
from infrastructure.operations import OperationResult

DEFAULT_NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = DEFAULT_NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, value: datetime) -> datetime:
        self.now = value
        return self.now


class StubChannel(NotificationChannel):
    """Scripted channel adapter.

    Each send pops the next outcome: an exception is raised, anything else
    is returned as the external id. With no outcomes left, sends succeed.
    """

    def __init__(self, channel, outcomes=None, unit_cost=0.0, healthy=True, on_send=None):
        self._channel = channel
        self.outcomes = list(outcomes or [])
        self.unit_cost = unit_cost
        self.healthy = healthy
        self.on_send = on_send
        self.calls = []
        self._lock = threading.Lock()

    @property
    def channel(self):
        return self._channel

    def send(self, recipient, message):
        with self._lock:
            self.calls.append((recipient, message))
            outcome = (
                self.outcomes.pop(0)
                if self.outcomes
                else f"{self._channel.value}-{len(self.calls)}"
            )
        if self.on_send is not None:
            self.on_send(recipient, message)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def health_check(self):
        if self.healthy:
            return OperationResult.success(message="stub healthy")
        return OperationResult.permanent_error("stub down", error_code="DOWN")

    @property
    def call_count(self):
        with self._lock:
            return len(self.calls)


@pytest.fixture
def clock():
    """Fake clock fixed at 2024-01-15 12:00 UTC."""
    return FakeClock()


@pytest.fixture
def repository():
    """Fresh in-memory notification repository."""
    return InMemoryNotificationRepository()


@pytest.fixture
def notification_factory(clock):
    """Factory for creating Notification instances.

    Example:
        notification = notification_factory(status=NotificationStatus.FAILED)
    """

    def _factory(**overrides):
        defaults = {
            "recipient_id": "user-1",
            "type": NotificationType.SYSTEM_ANNOUNCEMENT,
            "title": "Maintenance tonight",
            "content": "The app is down from 1am to 2am",
            "resolved_channels": [Channel.IN_APP],
            "explicit_content": True,
            "created_at": clock(),
            "updated_at": clock(),
        }
        defaults.update(overrides)
        return Notification(**defaults)

    return _factory


@pytest.fixture
def preference_factory():
    """Factory for creating NotificationPreference instances.

    Example:
        preference = preference_factory(email="a@example.com", quiet_hours_start=22)
    """

    def _factory(**overrides):
        defaults = {"recipient_id": "user-1"}
        defaults.update(overrides)
        return NotificationPreference(**defaults)

    return _factory


@pytest.fixture
def request_factory():
    """Factory for creating NotificationRequest instances with explicit content.

    Example:
        request = request_factory(channels=["email"], dedup_key="k-1")
    """

    def _factory(**overrides):
        defaults = {
            "recipient_id": "user-1",
            "type": NotificationType.SYSTEM_ANNOUNCEMENT,
            "title": "Maintenance tonight",
            "content": "The app is down from 1am to 2am",
        }
        defaults.update(overrides)
        return NotificationRequest(**defaults)

    return _factory


@pytest.fixture
def template_factory():
    """Factory for creating NotificationTemplate instances.

    Example:
        template = template_factory(type=NotificationType.EXPIRY_ALERT)
    """

    def _factory(**overrides):
        defaults = {
            "type": NotificationType.EXPIRY_ALERT,
            "title_template": "{{item.name}} expires soon",
            "content_template": "{{item.name}} expires in {{days}} days",
        }
        defaults.update(overrides)
        return NotificationTemplate(**defaults)

    return _factory


@pytest.fixture
def stub_channel_factory():
    """Factory for scripted channel adapters.

    Example:
        email = stub_channel_factory(Channel.EMAIL, outcomes=[TimeoutError("slow")])
    """

    def _factory(channel, outcomes=None, **kwargs):
        return StubChannel(channel, outcomes=outcomes, **kwargs)

    return _factory


@pytest.fixture
def stub_channels(stub_channel_factory):
    """One succeeding stub adapter per channel, keyed by Channel."""
    return {channel: stub_channel_factory(channel) for channel in Channel}


@pytest.fixture
def service_factory(repository, clock):
    """Factory for fully wired NotificationService instances.

    Services are built through ``build_notification_service`` with the
    shared repository and clock, and shut down after the test.

    Example:
        service = service_factory(channels={Channel.IN_APP: InAppChannel()})
    """
    built = []

    def _factory(channels, settings=None, **overrides):
        service = build_notification_service(
            settings or Settings(),
            repository=overrides.pop("repository", repository),
            channels=channels,
            clock=overrides.pop("clock", clock),
        )
        built.append(service)
        return service

    yield _factory

    for service in built:
        service.shutdown(wait=True)
