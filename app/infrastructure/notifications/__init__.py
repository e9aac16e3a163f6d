"""Multi-channel notification subsystem.

Delivers one logical notification over in-app, email, SMS, chat and push
with:
- Per-recipient channel preferences, contact checks and daily caps
- Templated content with channel and locale overrides
- Duplicate suppression by dedup key or batch id
- Quiet-hours deferral
- Concurrent per-channel fan-out with isolated failures
- Exponential-backoff retry of the failed channels only

Usage:
    from infrastructure.notifications import (
        NotificationRequest,
        NotificationType,
        build_notification_service,
    )

    service = build_notification_service(settings)
    result = service.create_notification(
        NotificationRequest(
            recipient_id="user-1",
            type=NotificationType.HEALTH_ALERT,
            title="Blood pressure high",
            content="Your last reading was {{reading}}",
            template_data={"reading": "150/95"},
            dedup_key="bp-high-2024-01",
        )
    )
"""

# Models
from infrastructure.notifications.models import (
    Channel,
    CreateNotificationResult,
    DeliveryLog,
    DispatchOutcome,
    Notification,
    NotificationPage,
    NotificationPreference,
    NotificationPriority,
    NotificationQuery,
    NotificationRequest,
    NotificationStatus,
    NotificationTemplate,
    NotificationType,
    Recipient,
    ScheduledNotification,
)

# Errors
from infrastructure.notifications.errors import (
    ChannelDeliveryError,
    InvalidStatusTransitionError,
    NoEligibleChannelError,
    NotFoundOrForbiddenError,
    NotificationError,
    ScheduleInPastError,
    TemplateNotFoundError,
)

# Components
from infrastructure.notifications.dispatcher import ChannelDispatcher
from infrastructure.notifications.queries import NotificationQueries
from infrastructure.notifications.repository import (
    InMemoryNotificationRepository,
    NotificationRepository,
)
from infrastructure.notifications.service import NotificationService
from infrastructure.notifications.sweeps import (
    RetrySweep,
    ScheduledNotificationSweep,
    StaleDispatchSweep,
)
from infrastructure.notifications.factory import build_channels, build_notification_service

# Channel interface
from infrastructure.notifications.channels.base import NotificationChannel

__all__ = [
    # Models
    "Channel",
    "CreateNotificationResult",
    "DeliveryLog",
    "DispatchOutcome",
    "Notification",
    "NotificationPage",
    "NotificationPreference",
    "NotificationPriority",
    "NotificationQuery",
    "NotificationRequest",
    "NotificationStatus",
    "NotificationTemplate",
    "NotificationType",
    "Recipient",
    "ScheduledNotification",
    # Errors
    "ChannelDeliveryError",
    "InvalidStatusTransitionError",
    "NoEligibleChannelError",
    "NotFoundOrForbiddenError",
    "NotificationError",
    "ScheduleInPastError",
    "TemplateNotFoundError",
    # Components
    "ChannelDispatcher",
    "InMemoryNotificationRepository",
    "NotificationQueries",
    "NotificationRepository",
    "NotificationService",
    "RetrySweep",
    "ScheduledNotificationSweep",
    "StaleDispatchSweep",
    "build_channels",
    "build_notification_service",
    # Channel interface
    "NotificationChannel",
]
