"""Unit tests for the retry, scheduled and stale dispatch sweeps."""

import threading
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from infrastructure.notifications.locks import ClaimRegistry
from infrastructure.notifications.models import (
    Channel,
    NotificationStatus,
    ScheduledNotification,
    ScheduleReason,
    ScheduleStatus,
)
from infrastructure.notifications.sweeps import (
    RetrySweep,
    ScheduledNotificationSweep,
    StaleDispatchSweep,
)
from infrastructure.notifications.workers import DispatchQueue


@pytest.fixture
def service(service_factory, stub_channels):
    return service_factory(stub_channels)


@pytest.fixture
def failing_service():
    """Service stand-in whose dispatch always raises."""
    service = MagicMock()
    service.claims = ClaimRegistry()
    service.claim_lease_seconds = 300
    service.dispatch.side_effect = RuntimeError("database unavailable")
    service.dispatch_queue = DispatchQueue(max_workers=1)
    yield service
    service.dispatch_queue.shutdown(wait=True)


@pytest.fixture
def due_retry(stored_notification, clock):
    """Factory for FAILED notifications with a retry due now."""

    def _factory(**overrides):
        defaults = {
            "status": NotificationStatus.FAILED,
            "retry_count": 1,
            "next_retry_at": clock() - timedelta(seconds=1),
        }
        defaults.update(overrides)
        return stored_notification(**defaults)

    return _factory


@pytest.fixture
def stored_schedule(repository, stored_notification, clock):
    """Factory persisting a PENDING notification and a schedule for it.

    Example:
        scheduled = stored_schedule(scheduled_time=clock() + timedelta(hours=1))
    """

    def _factory(notification=None, **overrides):
        notification = notification or stored_notification()
        defaults = {
            "recipient_id": notification.recipient_id,
            "notification_id": notification.id,
            "payload": notification,
            "scheduled_time": clock() - timedelta(seconds=1),
            "reason": ScheduleReason.QUIET_HOURS,
            "created_at": clock(),
        }
        defaults.update(overrides)
        scheduled = ScheduledNotification(**defaults)
        repository.create_scheduled(scheduled)
        return scheduled

    return _factory


@pytest.mark.unit
class TestRetrySweep:
    """Tests for RetrySweep.process_batch."""

    def test_no_due_records(self, repository, service, clock):
        sweep = RetrySweep(repository, service, clock=clock)

        stats = sweep.process_batch()

        assert stats == {
            "processed": 0,
            "successful": 0,
            "retried": 0,
            "permanent_failures": 0,
            "skipped": 0,
        }

    def test_due_retry_sent(self, repository, service, due_retry, clock):
        notification = due_retry()
        sweep = RetrySweep(repository, service, clock=clock)

        stats = sweep.process_batch()

        assert stats["processed"] == 1
        assert stats["successful"] == 1
        stored = repository.get_notification(notification.id)
        assert stored.status == NotificationStatus.SENT
        assert stored.next_retry_at is None

    def test_not_yet_due_left_alone(self, repository, service, due_retry, clock):
        notification = due_retry(next_retry_at=clock() + timedelta(minutes=1))

        stats = RetrySweep(repository, service, clock=clock).process_batch()

        assert stats["processed"] == 0
        assert repository.get_notification(notification.id).status == NotificationStatus.FAILED

    def test_failure_reschedules(
        self, repository, service_factory, stub_channel_factory, due_retry, clock,
        preference_factory,
    ):
        repository.save_preference(preference_factory(phone_number="+15555551234"))
        sms = stub_channel_factory(Channel.SMS, outcomes=[TimeoutError("provider timeout")])
        service = service_factory(
            {Channel.IN_APP: stub_channel_factory(Channel.IN_APP), Channel.SMS: sms}
        )
        notification = due_retry(resolved_channels=[Channel.IN_APP, Channel.SMS])

        stats = RetrySweep(repository, service, clock=clock).process_batch()

        assert stats["retried"] == 1
        stored = repository.get_notification(notification.id)
        assert stored.retry_count == 2
        assert stored.next_retry_at == clock() + timedelta(seconds=120)

    def test_last_retry_is_permanent(
        self, repository, service_factory, stub_channel_factory, due_retry, clock
    ):
        """A failure after the final retry leaves no retry scheduled."""
        broken = stub_channel_factory(Channel.IN_APP, outcomes=[TimeoutError("slow")])
        service = service_factory({Channel.IN_APP: broken})
        notification = due_retry(retry_count=3)

        stats = RetrySweep(repository, service, clock=clock).process_batch()

        assert stats["permanent_failures"] == 1
        assert repository.get_notification(notification.id).next_retry_at is None

    def test_claimed_notification_skipped(self, repository, service, due_retry, clock):
        notification = due_retry()
        service.claims.claim(notification.id, lease_seconds=60)

        stats = RetrySweep(repository, service, clock=clock).process_batch()

        assert stats["skipped"] == 1
        assert repository.get_notification(notification.id).status == NotificationStatus.FAILED

    def test_dispatch_exception_does_not_stop_batch(
        self, repository, failing_service, due_retry, clock
    ):
        due_retry()
        due_retry()

        stats = RetrySweep(repository, failing_service, clock=clock).process_batch()

        assert stats["retried"] == 2
        assert failing_service.dispatch.call_count == 2

    def test_fetch_failure_returns_empty_stats(self, service, clock):
        repository = MagicMock()
        repository.list_due_retries.side_effect = ConnectionError("db down")

        stats = RetrySweep(repository, service, clock=clock).process_batch()

        assert stats["processed"] == 0

    def test_batch_size_respected(self, repository, failing_service, due_retry, clock):
        for _ in range(3):
            due_retry()

        RetrySweep(repository, failing_service, batch_size=2, clock=clock).process_batch()

        assert failing_service.dispatch.call_count == 2

    def test_recipients_retried_in_parallel(
        self, repository, service_factory, stub_channel_factory, due_retry, clock
    ):
        """A slow send for one recipient does not hold back another's retry.

        Both sends wait on a shared barrier; sequential retries would break it.
        """
        barrier = threading.Barrier(2, timeout=5)
        in_app = stub_channel_factory(Channel.IN_APP, on_send=lambda r, m: barrier.wait())
        service = service_factory({Channel.IN_APP: in_app})
        due_retry(recipient_id="a")
        due_retry(recipient_id="b")

        stats = RetrySweep(repository, service, clock=clock).process_batch()

        assert stats["successful"] == 2
        assert in_app.call_count == 2

    def test_closed_queue_stops_submission(self, repository, failing_service, due_retry, clock):
        due_retry()
        failing_service.dispatch_queue.shutdown(wait=True)

        stats = RetrySweep(repository, failing_service, clock=clock).process_batch()

        assert stats["processed"] == 0
        failing_service.dispatch.assert_not_called()


@pytest.mark.unit
class TestScheduledNotificationSweep:
    """Tests for ScheduledNotificationSweep.process_batch."""

    def test_due_schedule_fired(self, repository, service, stored_schedule, clock):
        scheduled = stored_schedule()

        stats = ScheduledNotificationSweep(repository, service, clock=clock).process_batch()

        assert stats["processed"] == 1
        assert stats["successful"] == 1
        fired = repository.get_scheduled(scheduled.id)
        assert fired.status == ScheduleStatus.FIRED
        assert fired.fired_at == clock()
        assert (
            repository.get_notification(scheduled.notification_id).status
            == NotificationStatus.SENT
        )

    def test_due_schedules_fired_in_parallel(
        self, repository, service_factory, stub_channel_factory, stored_notification,
        stored_schedule, clock,
    ):
        barrier = threading.Barrier(2, timeout=5)
        in_app = stub_channel_factory(Channel.IN_APP, on_send=lambda r, m: barrier.wait())
        service = service_factory({Channel.IN_APP: in_app})
        stored_schedule(stored_notification(recipient_id="a"))
        stored_schedule(stored_notification(recipient_id="b"))

        stats = ScheduledNotificationSweep(repository, service, clock=clock).process_batch()

        assert stats["successful"] == 2

    def test_future_schedule_not_fired(self, repository, service, stored_schedule, clock):
        scheduled = stored_schedule(scheduled_time=clock() + timedelta(hours=1))

        stats = ScheduledNotificationSweep(repository, service, clock=clock).process_batch()

        assert stats["processed"] == 0
        assert repository.get_scheduled(scheduled.id).status == ScheduleStatus.SCHEDULED

    def test_cancelled_notification_not_fired(
        self, repository, service, stored_schedule, stored_notification, clock, stub_channels
    ):
        """A schedule whose notification was cancelled is dropped."""
        notification = stored_notification(status=NotificationStatus.CANCELLED)
        scheduled = stored_schedule(notification=notification)

        stats = ScheduledNotificationSweep(repository, service, clock=clock).process_batch()

        assert stats["cancelled"] == 1
        assert repository.get_scheduled(scheduled.id).status == ScheduleStatus.CANCELLED
        assert stub_channels[Channel.IN_APP].call_count == 0

    def test_deleted_notification_not_fired(
        self, repository, service, stored_schedule, stored_notification, clock
    ):
        notification = stored_notification(deleted_at=clock())
        scheduled = stored_schedule(notification=notification)

        stats = ScheduledNotificationSweep(repository, service, clock=clock).process_batch()

        assert stats["cancelled"] == 1
        assert repository.get_scheduled(scheduled.id).status == ScheduleStatus.CANCELLED

    def test_claimed_schedule_skipped(self, repository, service, stored_schedule, clock):
        scheduled = stored_schedule()
        service.claims.claim(f"scheduled:{scheduled.id}", lease_seconds=60)

        stats = ScheduledNotificationSweep(repository, service, clock=clock).process_batch()

        assert stats["skipped"] == 1
        assert repository.get_scheduled(scheduled.id).status == ScheduleStatus.SCHEDULED

    def test_notification_mid_dispatch_retried_next_sweep(
        self, repository, service, stored_schedule, clock
    ):
        scheduled = stored_schedule()
        token = service.claims.claim(scheduled.notification_id, lease_seconds=60)

        stats = ScheduledNotificationSweep(repository, service, clock=clock).process_batch()

        assert stats["skipped"] == 1
        assert repository.get_scheduled(scheduled.id).status == ScheduleStatus.SCHEDULED

        service.claims.release(scheduled.notification_id, token)
        stats = ScheduledNotificationSweep(repository, service, clock=clock).process_batch()

        assert stats["successful"] == 1

    def test_fire_failure_counts_attempts(
        self, repository, failing_service, stored_schedule, clock
    ):
        scheduled = stored_schedule(max_retries=2)
        sweep = ScheduledNotificationSweep(repository, failing_service, clock=clock)

        sweep.process_batch()
        after_first = repository.get_scheduled(scheduled.id)
        sweep.process_batch()
        after_second = repository.get_scheduled(scheduled.id)

        assert after_first.retry_count == 1
        assert after_first.status == ScheduleStatus.SCHEDULED
        assert after_first.last_error == "database unavailable"
        assert after_second.status == ScheduleStatus.FIRED

    def test_fetch_failure_returns_empty_stats(self, service, clock):
        repository = MagicMock()
        repository.list_due_scheduled.side_effect = ConnectionError("db down")

        stats = ScheduledNotificationSweep(repository, service, clock=clock).process_batch()

        assert stats["processed"] == 0
        assert stats["cancelled"] == 0


@pytest.mark.unit
class TestStaleDispatchSweep:
    """Tests for StaleDispatchSweep.process_batch."""

    @pytest.fixture
    def stale(self, stored_notification, clock):
        def _factory(**overrides):
            defaults = {"updated_at": clock() - timedelta(seconds=601)}
            defaults.update(overrides)
            return stored_notification(**defaults)

        return _factory

    def test_stale_pending_redriven(self, repository, service, stale, clock):
        notification = stale()

        stats = StaleDispatchSweep(repository, service, clock=clock).process_batch()

        assert stats["successful"] == 1
        assert repository.get_notification(notification.id).status == NotificationStatus.SENT

    def test_stale_sending_redriven(self, repository, service, stale, clock):
        """A crashed dispatch left SENDING is completed."""
        notification = stale(status=NotificationStatus.SENDING)

        StaleDispatchSweep(repository, service, clock=clock).process_batch()

        assert repository.get_notification(notification.id).status == NotificationStatus.SENT

    def test_fresh_rows_ignored(self, repository, service, stored_notification, clock):
        notification = stored_notification()

        stats = StaleDispatchSweep(repository, service, clock=clock).process_batch()

        assert stats["processed"] == 0
        assert repository.get_notification(notification.id).status == NotificationStatus.PENDING

    def test_claimed_row_skipped(self, repository, service, stale, clock):
        notification = stale()
        service.claims.claim(notification.id, lease_seconds=60)

        stats = StaleDispatchSweep(repository, service, clock=clock).process_batch()

        assert stats["skipped"] == 1

    def test_row_awaiting_schedule_skipped(
        self, repository, service, stale, stored_schedule, clock
    ):
        notification = stale()
        stored_schedule(notification=notification, scheduled_time=clock() + timedelta(hours=8))

        stats = StaleDispatchSweep(repository, service, clock=clock).process_batch()

        assert stats["skipped"] == 1
        assert repository.get_notification(notification.id).status == NotificationStatus.PENDING

    def test_threshold_configurable(self, repository, service, stored_notification, clock):
        notification = stored_notification(updated_at=clock() - timedelta(seconds=61))

        StaleDispatchSweep(
            repository, service, stale_after_seconds=60, clock=clock
        ).process_batch()

        assert repository.get_notification(notification.id).status == NotificationStatus.SENT
