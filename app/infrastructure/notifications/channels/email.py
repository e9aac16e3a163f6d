"""Email channel implementation using GC Notify."""

from infrastructure.logging import get_module_logger
from infrastructure.notifications.channels.base import NotificationChannel
from infrastructure.notifications.errors import ChannelDeliveryError
from infrastructure.notifications.models import Channel, Recipient, RenderedMessage
from infrastructure.operations import OperationResult
from integrations.notify import NotifyClient

logger = get_module_logger()


def format_email_body(message: RenderedMessage) -> str:
    """Body text with the call to action appended as a markdown link."""
    if message.action_url:
        label = message.action_text or message.action_url
        return f"{message.content}\n\n[{label}]({message.action_url})"
    return message.content


class EmailChannel(NotificationChannel):
    """Sends email through a GC Notify pass-through template."""

    unit_cost = 0.001

    def __init__(self, client: NotifyClient):
        self._client = client
        logger.info("initialized_email_channel", backend="gc_notify")

    @property
    def channel(self) -> Channel:
        return Channel.EMAIL

    def send(self, recipient: Recipient, message: RenderedMessage) -> str:
        if not recipient.email:
            raise ChannelDeliveryError(
                "Email address required", error_code="MISSING_EMAIL", retryable=False
            )

        result = self._client.send_email(
            recipient.email,
            personalisation={"title": message.title, "body": format_email_body(message)},
            reference=message.notification_id,
        )
        self.raise_for_result(result)
        logger.info(
            "email_sent",
            notification_id=message.notification_id,
            priority=message.priority.value,
        )
        return result.data["id"] or message.notification_id

    def health_check(self) -> OperationResult:
        """Check GC Notify credentials by building an authorization header."""
        try:
            self._client.create_authorization_header()
        except ValueError as e:
            return OperationResult.permanent_error(
                message=f"GC Notify not configured: {e}",
                error_code="NOT_CONFIGURED",
            )
        return OperationResult.success(message="GC Notify API credentials valid")
