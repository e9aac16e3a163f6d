"""Notification channel abstract base class.

All channel adapters (in-app, email, SMS, chat, push) implement this
interface. Adapters are stateless with respect to notifications: the
dispatcher hands them a recipient's contact data and the rendered message
and records whatever comes back.
"""

from abc import ABC, abstractmethod

from infrastructure.notifications.errors import ChannelDeliveryError
from infrastructure.notifications.models import Channel, Recipient, RenderedMessage
from infrastructure.operations import OperationResult


class NotificationChannel(ABC):
    """Abstract base class for notification channels.

    Example Implementation:
        class FaxChannel(NotificationChannel):
            unit_cost = 0.02

            @property
            def channel(self) -> Channel:
                return Channel.FAX

            def send(self, recipient, message) -> str:
                result = self._client.send(recipient.fax_number, message.content)
                self.raise_for_result(result)
                return result.data["id"]
    """

    # Provider price of one send, recorded on the delivery log
    unit_cost: float = 0.0

    @property
    @abstractmethod
    def channel(self) -> Channel:
        """Channel this adapter delivers on."""

    @abstractmethod
    def send(self, recipient: Recipient, message: RenderedMessage) -> str:
        """Deliver ``message`` to ``recipient``.

        Returns:
            The provider's identifier for the delivery (external id).

        Raises:
            ChannelDeliveryError: the provider rejected or failed the send.
                Any other exception is treated as a retryable failure.
        """

    @abstractmethod
    def health_check(self) -> OperationResult:
        """Check channel health (API connectivity, credentials)."""

    @staticmethod
    def raise_for_result(result: OperationResult) -> None:
        """Raise ChannelDeliveryError for a failed provider result."""
        if not result.is_success:
            raise ChannelDeliveryError(
                result.message,
                error_code=result.error_code,
                retryable=result.is_retryable,
            )
