"""Preference resolution: which channels a notification is attempted on."""

from datetime import datetime, time
from typing import Iterable, List, Optional

from infrastructure.logging import get_module_logger
from infrastructure.notifications.errors import NoEligibleChannelError
from infrastructure.notifications.models import (
    Channel,
    Clock,
    NotificationPreference,
    NotificationPriority,
    NotificationType,
    utc_now,
)
from infrastructure.notifications.repository import NotificationRepository

logger = get_module_logger()

CHANNEL_ORDER = list(Channel)


def _ordered(channels: Iterable[Channel]) -> List[Channel]:
    wanted = set(channels)
    return [channel for channel in CHANNEL_ORDER if channel in wanted]


def local_day_start(now: datetime, preference: NotificationPreference) -> datetime:
    """Midnight of the recipient's current local day, as an aware datetime."""
    local_now = now.astimezone(preference.zone)
    return preference.zone.localize(datetime.combine(local_now.date(), time(0)))


class PreferenceResolver:
    """Computes the channel set for a recipient and notification type.

    Normal priority:
        1. Start from the requested channels, else the per-type default list
           (preference list, then the template's default channels, then IN_APP).
        2. Drop channels not listed in the recipient's per-type channel list
           (when one is stored) and channels without contact data.
        3. Union in IN_APP.
        4. Drop non-IN_APP channels whose daily cap is reached.
        A type the recipient disabled, or a globally disabled recipient,
        yields no channels at all.

    URGENT priority uses every channel with contact data plus IN_APP and
    ignores per-type lists, toggles and caps.

    Raises:
        NoEligibleChannelError: the final set is empty.
    """

    def __init__(self, repository: NotificationRepository, clock: Clock = utc_now):
        self._repository = repository
        self._clock = clock

    def get_preference(self, recipient_id: str) -> NotificationPreference:
        preference = self._repository.get_preference(recipient_id)
        if preference is None:
            return NotificationPreference.default_for(recipient_id)
        return preference

    def resolve(
        self,
        recipient_id: str,
        notification_type: NotificationType,
        priority: NotificationPriority = NotificationPriority.MEDIUM,
        requested_channels: Optional[List[Channel]] = None,
        preference: Optional[NotificationPreference] = None,
        template_channels: Optional[List[Channel]] = None,
    ) -> List[Channel]:
        if preference is None:
            preference = self.get_preference(recipient_id)

        if priority == NotificationPriority.URGENT:
            channels = _ordered(c for c in CHANNEL_ORDER if preference.has_contact(c))
        else:
            channels = self._resolve_normal(
                preference, notification_type, requested_channels, template_channels
            )

        if not channels:
            logger.info(
                "no_eligible_channel",
                recipient_id=recipient_id,
                notification_type=notification_type.value,
                priority=priority.value,
            )
            raise NoEligibleChannelError(recipient_id, notification_type.value)

        logger.debug(
            "channels_resolved",
            recipient_id=recipient_id,
            notification_type=notification_type.value,
            channels=[c.value for c in channels],
        )
        return channels

    def default_channels_for(
        self,
        preference: NotificationPreference,
        notification_type: NotificationType,
        template_channels: Optional[List[Channel]] = None,
    ) -> List[Channel]:
        stored = preference.type_channels.get(notification_type)
        if stored:
            return list(stored)
        if template_channels:
            return list(template_channels)
        return [Channel.IN_APP]

    def _resolve_normal(
        self,
        preference: NotificationPreference,
        notification_type: NotificationType,
        requested_channels: Optional[List[Channel]],
        template_channels: Optional[List[Channel]],
    ) -> List[Channel]:
        if not preference.enabled or not preference.is_type_enabled(notification_type):
            return []

        if requested_channels:
            candidates = list(requested_channels)
        else:
            candidates = self.default_channels_for(
                preference, notification_type, template_channels
            )

        allowed = preference.type_channels.get(notification_type)
        eligible = {
            channel
            for channel in candidates
            if (allowed is None or channel in allowed) and preference.has_contact(channel)
        }
        eligible.add(Channel.IN_APP)

        return _ordered(self._apply_daily_caps(preference, eligible))

    def _apply_daily_caps(
        self, preference: NotificationPreference, channels: set
    ) -> set:
        external = {c for c in channels if c is not Channel.IN_APP}
        if not external:
            return channels

        since = local_day_start(self._clock(), preference)

        if preference.daily_max_total is not None:
            sent_today = self._repository.count_deliveries(preference.recipient_id, since)
            if sent_today >= preference.daily_max_total:
                logger.info(
                    "daily_cap_reached",
                    recipient_id=preference.recipient_id,
                    cap=preference.daily_max_total,
                    sent_today=sent_today,
                )
                return channels - external

        kept = set(channels)
        for channel in external:
            cap = preference.daily_max_per_channel.get(channel)
            if cap is None:
                continue
            sent_today = self._repository.count_deliveries(
                preference.recipient_id, since, channel=channel
            )
            if sent_today >= cap:
                logger.info(
                    "channel_daily_cap_reached",
                    recipient_id=preference.recipient_id,
                    channel=channel.value,
                    cap=cap,
                    sent_today=sent_today,
                )
                kept.discard(channel)
        return kept

