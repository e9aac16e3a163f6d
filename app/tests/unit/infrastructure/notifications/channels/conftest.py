"""Fixtures for channel adapter tests."""

from unittest.mock import MagicMock

import pytest

from infrastructure.notifications.models import NotificationPriority, Recipient, RenderedMessage
from integrations.notify import NotifyClient


@pytest.fixture
def recipient():
    return Recipient(
        recipient_id="user-1",
        email="a@example.com",
        phone_number="+15555551234",
        chat_user_id="U123",
        push_tokens=["device-1", "device-2"],
    )


@pytest.fixture
def message_factory():
    """Factory for RenderedMessage instances.

    Example:
        message = message_factory(action_url="https://app.example/tasks/1")
    """

    def _factory(**overrides):
        defaults = {
            "notification_id": "n-1",
            "title": "Milk expires soon",
            "content": "Milk expires in 2 days",
            "priority": NotificationPriority.MEDIUM,
        }
        defaults.update(overrides)
        return RenderedMessage(**defaults)

    return _factory


@pytest.fixture
def notify_client():
    return MagicMock(spec=NotifyClient)
