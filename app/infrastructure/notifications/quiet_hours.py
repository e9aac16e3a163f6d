"""Quiet-hours deferral.

Quiet hours are an hour-of-day window evaluated in the recipient's
timezone. ``start <= end`` is a same-day window ``[start, end)``;
``start > end`` wraps midnight. ``start == end`` is an empty window.
"""

from datetime import datetime, time, timedelta, timezone
from typing import Optional

from infrastructure.notifications.models import NotificationPreference, NotificationPriority


def in_quiet_hours(hour: int, start: Optional[int], end: Optional[int]) -> bool:
    if start is None or end is None:
        return False
    if start <= end:
        return start <= hour < end
    return hour >= start or hour < end


class QuietHoursScheduler:
    """Decides whether a notification must wait for the quiet window to end."""

    def deferral_time(
        self,
        now: datetime,
        preference: NotificationPreference,
        priority: NotificationPriority,
    ) -> Optional[datetime]:
        """When to send instead of now, or None to send immediately.

        URGENT is never deferred. The returned time is the next ``end:00``
        in the recipient's timezone that is at or after ``now``, in UTC.
        """
        if priority == NotificationPriority.URGENT:
            return None

        start = preference.quiet_hours_start
        end = preference.quiet_hours_end
        zone = preference.zone
        local_now = now.astimezone(zone)

        if not in_quiet_hours(local_now.hour, start, end):
            return None

        boundary = zone.localize(datetime.combine(local_now.date(), time(end)))
        if boundary < local_now:
            next_day = local_now.date() + timedelta(days=1)
            boundary = zone.localize(datetime.combine(next_day, time(end)))
        return boundary.astimezone(timezone.utc)
