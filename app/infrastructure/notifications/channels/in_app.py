"""In-app channel: the notification row itself is the delivery."""

from infrastructure.notifications.channels.base import NotificationChannel
from infrastructure.notifications.models import Channel, Recipient, RenderedMessage
from infrastructure.operations import OperationResult


class InAppChannel(NotificationChannel):
    """Always succeeds; the persisted notification is what the app shows."""

    @property
    def channel(self) -> Channel:
        return Channel.IN_APP

    def send(self, recipient: Recipient, message: RenderedMessage) -> str:
        return f"in_app:{message.notification_id}"

    def health_check(self) -> OperationResult:
        return OperationResult.success(message="in-app delivery is local")
