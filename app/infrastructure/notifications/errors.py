"""Notification domain exceptions.

All exceptions raised by the notification subsystem derive from
``NotificationError`` so the HTTP layer can map them in one place.
"""

from typing import Optional


class NotificationError(Exception):
    """Base class for notification errors."""


class NoEligibleChannelError(NotificationError):
    """The resolved channel set is empty; nothing was persisted."""

    def __init__(self, recipient_id: str, notification_type: str):
        self.recipient_id = recipient_id
        self.notification_type = notification_type
        super().__init__(
            f"No eligible channel for recipient {recipient_id} "
            f"and type {notification_type}"
        )


class NotFoundOrForbiddenError(NotificationError):
    """The notification does not exist or belongs to another recipient.

    The two cases are deliberately indistinguishable to the caller.
    """

    def __init__(self, notification_id: str):
        self.notification_id = notification_id
        super().__init__("Notification not found or access denied")


class TemplateNotFoundError(NotificationError):
    """No explicit title/content was given and no active template exists."""

    def __init__(self, notification_type: str):
        self.notification_type = notification_type
        super().__init__(f"No active template for notification type {notification_type}")


class InvalidStatusTransitionError(NotificationError):
    """A status change that the notification state machine does not allow."""

    def __init__(self, notification_id: str, current: str, target: str):
        self.notification_id = notification_id
        self.current = current
        self.target = target
        super().__init__(
            f"Notification {notification_id} cannot move from {current} to {target}"
        )


class ScheduleInPastError(NotificationError):
    """An explicit schedule request named a time that is not in the future."""


class ChannelDeliveryError(NotificationError):
    """Raised by channel adapters when a provider rejects or fails a send.

    Attributes:
        error_code: Machine readable code from the provider classifier
        retryable: Whether repeating the send later may succeed
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        retryable: bool = True,
    ):
        self.error_code = error_code
        self.retryable = retryable
        super().__init__(message)
