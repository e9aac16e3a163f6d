"""Unit tests for ChatChannel."""

from unittest.mock import MagicMock

import pytest
from slack_sdk.errors import SlackApiError

from infrastructure.notifications.channels.chat import ChatChannel, format_chat_message
from infrastructure.notifications.errors import ChannelDeliveryError
from infrastructure.notifications.models import Channel


def slack_error(error, status_code=200, headers=None):
    response = MagicMock()
    response.get.return_value = error
    response.status_code = status_code
    response.headers = headers or {}
    return SlackApiError(message=error, response=response)


@pytest.fixture
def slack_client():
    client = MagicMock()
    client.conversations_open.return_value = {"channel": {"id": "D123"}}
    client.chat_postMessage.return_value = {"ts": "1700000000.000100"}
    return client


@pytest.fixture
def channel(slack_client):
    return ChatChannel(slack_client)


@pytest.mark.unit
class TestChatChannel:
    """Tests for ChatChannel."""

    def test_send_direct_message(self, channel, slack_client, recipient, message_factory):
        external_id = channel.send(recipient, message_factory())

        assert external_id == "D123:1700000000.000100"
        slack_client.conversations_open.assert_called_once_with(users=["U123"])
        slack_client.chat_postMessage.assert_called_once_with(
            channel="D123", text="*Milk expires soon*\n\nMilk expires in 2 days"
        )

    def test_missing_user_id(self, channel, slack_client, recipient, message_factory):
        recipient.chat_user_id = None

        with pytest.raises(ChannelDeliveryError) as err:
            channel.send(recipient, message_factory())

        assert err.value.error_code == "MISSING_CHAT_ID"
        slack_client.conversations_open.assert_not_called()

    def test_rate_limited_is_retryable(self, channel, slack_client, recipient, message_factory):
        slack_client.chat_postMessage.side_effect = slack_error("ratelimited", 429)

        with pytest.raises(ChannelDeliveryError) as err:
            channel.send(recipient, message_factory())

        assert err.value.retryable is True
        assert err.value.error_code == "RATE_LIMITED"

    def test_unknown_user_is_permanent(self, channel, slack_client, recipient, message_factory):
        slack_client.conversations_open.side_effect = slack_error("user_not_found")

        with pytest.raises(ChannelDeliveryError) as err:
            channel.send(recipient, message_factory())

        assert err.value.retryable is False
        assert err.value.error_code == "NOT_FOUND"

    def test_health_check(self, channel, slack_client):
        slack_client.auth_test.return_value = {"team": "Family", "user": "notifier"}

        result = channel.health_check()

        assert result.is_success
        assert result.data == {"team": "Family", "user": "notifier"}

    def test_health_check_invalid_auth(self, channel, slack_client):
        slack_client.auth_test.side_effect = slack_error("invalid_auth")

        assert channel.health_check().error_code == "UNAUTHORIZED"

    def test_identity(self, channel):
        assert channel.channel == Channel.CHAT


@pytest.mark.unit
def test_format_chat_message_with_action(message_factory):
    message = message_factory(action_url="https://app.example/i/1")

    assert format_chat_message(message).endswith("<https://app.example/i/1|Open>")
