"""Chat channel implementation using Slack."""

from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError

from infrastructure.logging import get_module_logger
from infrastructure.notifications.channels.base import NotificationChannel
from infrastructure.notifications.errors import ChannelDeliveryError
from infrastructure.notifications.models import Channel, Recipient, RenderedMessage
from infrastructure.operations import OperationResult, classify_slack_error

logger = get_module_logger()


def format_chat_message(message: RenderedMessage) -> str:
    text = f"*{message.title}*\n\n{message.content}"
    if message.action_url:
        label = message.action_text or "Open"
        text = f"{text}\n\n<{message.action_url}|{label}>"
    return text


class ChatChannel(NotificationChannel):
    """Slack chat notification channel.

    Sends a direct message to the recipient's Slack user id via the Web API.
    """

    def __init__(self, client: WebClient):
        self._client = client
        logger.info("initialized_chat_channel", backend="slack")

    @property
    def channel(self) -> Channel:
        return Channel.CHAT

    def send(self, recipient: Recipient, message: RenderedMessage) -> str:
        if not recipient.chat_user_id:
            raise ChannelDeliveryError(
                "Slack user id required", error_code="MISSING_CHAT_ID", retryable=False
            )

        try:
            conversation = self._client.conversations_open(users=[recipient.chat_user_id])
            channel_id = conversation["channel"]["id"]
            response = self._client.chat_postMessage(
                channel=channel_id,
                text=format_chat_message(message),
            )
        except SlackApiError as e:
            result = classify_slack_error(e)
            logger.warning(
                "slack_dm_send_error",
                notification_id=message.notification_id,
                error_code=result.error_code,
                error=result.message,
            )
            self.raise_for_result(result)
            raise

        logger.info(
            "slack_dm_sent",
            notification_id=message.notification_id,
            slack_user_id=recipient.chat_user_id,
        )
        return f"{channel_id}:{response['ts']}"

    def health_check(self) -> OperationResult:
        """Check Slack API connectivity."""
        try:
            auth_test = self._client.auth_test()
        except SlackApiError as e:
            return classify_slack_error(e)
        return OperationResult.success(
            message="Slack API healthy",
            data={"team": auth_test.get("team"), "user": auth_test.get("user")},
        )
