"""SMS channel implementation using GC Notify."""

from infrastructure.logging import get_module_logger
from infrastructure.notifications.channels.base import NotificationChannel
from infrastructure.notifications.errors import ChannelDeliveryError
from infrastructure.notifications.models import Channel, Recipient, RenderedMessage
from infrastructure.operations import OperationResult
from integrations.notify import NotifyClient

logger = get_module_logger()

# GC Notify SMS limit
MAX_SMS_LENGTH = 612


def format_sms(message: RenderedMessage) -> str:
    text = f"{message.title}: {message.content}" if message.title else message.content
    if message.action_url:
        text = f"{text} {message.action_url}"
    if len(text) > MAX_SMS_LENGTH:
        text = text[: MAX_SMS_LENGTH - 3] + "..."
    return text


class SMSChannel(NotificationChannel):
    """SMS notification channel using GC Notify.

    Requires phone numbers in E.164 format (+1234567890); the preference
    model validates them on save.
    """

    unit_cost = 0.05

    def __init__(self, client: NotifyClient):
        self._client = client
        logger.info("initialized_sms_channel", backend="gc_notify")

    @property
    def channel(self) -> Channel:
        return Channel.SMS

    def send(self, recipient: Recipient, message: RenderedMessage) -> str:
        if not recipient.phone_number:
            raise ChannelDeliveryError(
                "Phone number required for SMS", error_code="MISSING_PHONE", retryable=False
            )

        body = format_sms(message)
        result = self._client.send_sms(
            recipient.phone_number,
            personalisation={"body": body},
            reference=message.notification_id,
        )
        self.raise_for_result(result)
        logger.info(
            "sms_sent",
            notification_id=message.notification_id,
            length=len(body),
        )
        return result.data["id"] or message.notification_id

    def health_check(self) -> OperationResult:
        try:
            self._client.create_authorization_header()
        except ValueError as e:
            return OperationResult.permanent_error(
                message=f"GC Notify not configured: {e}",
                error_code="NOT_CONFIGURED",
            )
        return OperationResult.success(message="GC Notify API credentials valid")
