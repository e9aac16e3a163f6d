"""Polling sweeps that drive time-based work from persisted state.

Retries, deferred sends and abandoned dispatches are all recovered by
polling the repository (``next_retry_at``, ``scheduled_time``, stale
``updated_at``), so nothing is lost when the process restarts.

Each sweep exposes ``process_batch() -> dict`` and never raises; the
scheduled job runner calls it on an interval. The due items of one batch
are dispatched in parallel on the service's dispatch queue, each task
returning its own counts, which the sweep adds up once all have finished.

Example:
    sweep = RetrySweep(repository, service, batch_size=50)
    stats = sweep.process_batch()
    logger.info("batch_complete", **stats)
"""

import uuid
from collections import Counter
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Optional

from infrastructure.logging import bind_request_context, get_module_logger
from infrastructure.notifications.models import (
    Clock,
    DispatchOutcome,
    NotificationStatus,
    ScheduleStatus,
    utc_now,
)
from infrastructure.notifications.repository import NotificationRepository

if TYPE_CHECKING:
    from infrastructure.notifications.service import NotificationService

logger = get_module_logger()


def _empty_stats() -> Dict[str, int]:
    return {
        "processed": 0,
        "successful": 0,
        "retried": 0,
        "permanent_failures": 0,
        "skipped": 0,
    }


def _tally(counts: Counter, outcome: Optional[DispatchOutcome]) -> None:
    if outcome is None or outcome.skipped:
        counts["skipped"] += 1
        return
    counts["processed"] += 1
    if outcome.status == NotificationStatus.SENT:
        counts["successful"] += 1
    elif outcome.next_retry_at is not None:
        counts["retried"] += 1
    else:
        counts["permanent_failures"] += 1


def run_on_queue(
    service: "NotificationService",
    task: Callable[[Any], Counter],
    items: Iterable[Any],
    stats: Dict[str, int],
    log,
) -> None:
    """Run ``task(item)`` for every item on the dispatch queue and add up the counts.

    Blocks until every submitted task has finished. A queue that has been
    shut down stops submission; tasks already submitted are still awaited.
    """
    futures = []
    for item in items:
        try:
            futures.append(service.dispatch_queue.submit(task, item))
        except RuntimeError as e:
            log.warning("sweep_queue_closed", error=str(e), submitted=len(futures))
            break

    for future in futures:
        counts = future.result()
        # None: the task raised and the queue already logged it
        if counts is None:
            stats["skipped"] += 1
            continue
        for key, value in counts.items():
            stats[key] = stats.get(key, 0) + value


class RetrySweep:
    """Re-dispatches FAILED notifications whose ``next_retry_at`` has passed."""

    def __init__(
        self,
        repository: NotificationRepository,
        service: "NotificationService",
        batch_size: int = 50,
        clock: Clock = utc_now,
    ):
        self.repository = repository
        self.service = service
        self.batch_size = batch_size
        self._clock = clock
        self.log = logger.bind(worker="retry_sweep")

    def process_batch(self) -> Dict[str, int]:
        """Process due retries.

        Returns:
            Dictionary with processing statistics:
                - processed: Notifications dispatched
                - successful: Now SENT
                - retried: FAILED with another retry scheduled
                - permanent_failures: FAILED with no retry left
                - skipped: Claimed elsewhere or no longer due
        """
        stats = _empty_stats()
        with bind_request_context(correlation_id=f"retry-{uuid.uuid4().hex[:12]}"):
            try:
                due = self.repository.list_due_retries(self._clock(), self.batch_size)
            except Exception as e:
                self.log.error("retry_sweep_fetch_failed", error=str(e), exc_info=True)
                return stats

            if not due:
                self.log.debug("retry_sweep_no_records")
                return stats

            self.log.info("retry_sweep_start", record_count=len(due))
            run_on_queue(self.service, self._retry_one, [n.id for n in due], stats, self.log)
            self.log.info("retry_sweep_complete", **stats)
        return stats

    def _retry_one(self, notification_id: str) -> Counter:
        counts: Counter = Counter()
        try:
            outcome = self.service.dispatch(notification_id)
        except Exception as e:
            self.log.error(
                "retry_dispatch_exception",
                notification_id=notification_id,
                error=str(e),
                exc_info=True,
            )
            counts["retried"] += 1
            return counts
        _tally(counts, outcome)
        return counts


class ScheduledNotificationSweep:
    """Fires scheduled notifications whose time has come.

    A schedule is claimed before firing and re-read under the claim; a
    schedule or notification cancelled in the meantime is never fired.
    """

    def __init__(
        self,
        repository: NotificationRepository,
        service: "NotificationService",
        batch_size: int = 50,
        clock: Clock = utc_now,
    ):
        self.repository = repository
        self.service = service
        self.batch_size = batch_size
        self._clock = clock
        self.log = logger.bind(worker="scheduled_sweep")

    def process_batch(self) -> Dict[str, int]:
        stats = _empty_stats()
        stats["cancelled"] = 0
        with bind_request_context(correlation_id=f"scheduled-{uuid.uuid4().hex[:12]}"):
            try:
                due = self.repository.list_due_scheduled(self._clock(), self.batch_size)
            except Exception as e:
                self.log.error("scheduled_sweep_fetch_failed", error=str(e), exc_info=True)
                return stats

            if not due:
                self.log.debug("scheduled_sweep_no_records")
                return stats

            self.log.info("scheduled_sweep_start", record_count=len(due))
            run_on_queue(self.service, self._process_one, due, stats, self.log)
            self.log.info("scheduled_sweep_complete", **stats)
        return stats

    def _process_one(self, scheduled) -> Counter:
        counts: Counter = Counter()
        claim_key = f"scheduled:{scheduled.id}"
        with self.service.claims.claimed(claim_key, self.service.claim_lease_seconds) as acquired:
            if not acquired:
                counts["skipped"] += 1
                return counts
            try:
                self._fire(scheduled.id, counts)
            except Exception as e:
                self.log.error(
                    "scheduled_fire_exception",
                    scheduled_id=scheduled.id,
                    notification_id=scheduled.notification_id,
                    error=str(e),
                    exc_info=True,
                )
                self._record_failure(scheduled.id, str(e))
                counts["retried"] += 1
        return counts

    def _fire(self, scheduled_id: str, counts: Counter) -> None:
        scheduled = self.repository.get_scheduled(scheduled_id)
        if scheduled is None or scheduled.status != ScheduleStatus.SCHEDULED:
            counts["skipped"] += 1
            return

        notification = self.repository.get_notification(scheduled.notification_id)
        if (
            notification is None
            or notification.is_deleted
            or notification.status == NotificationStatus.CANCELLED
        ):
            scheduled.status = ScheduleStatus.CANCELLED
            self.repository.update_scheduled(scheduled)
            self.log.info(
                "scheduled_notification_dropped",
                scheduled_id=scheduled.id,
                notification_id=scheduled.notification_id,
            )
            counts["cancelled"] += 1
            return

        outcome = self.service.dispatch(scheduled.notification_id)
        if outcome is None:
            # notification is mid-dispatch elsewhere; try again next sweep
            counts["skipped"] += 1
            return

        scheduled.status = ScheduleStatus.FIRED
        scheduled.fired_at = self._clock()
        self.repository.update_scheduled(scheduled)
        self.log.info(
            "scheduled_notification_fired",
            scheduled_id=scheduled.id,
            notification_id=scheduled.notification_id,
            reason=scheduled.reason.value,
            status=outcome.status.value,
        )

        counts["processed"] += 1
        if outcome.status == NotificationStatus.SENT:
            counts["successful"] += 1
        elif outcome.next_retry_at is not None:
            counts["retried"] += 1
        elif outcome.status == NotificationStatus.FAILED:
            counts["permanent_failures"] += 1

    def _record_failure(self, scheduled_id: str, error: str) -> None:
        scheduled = self.repository.get_scheduled(scheduled_id)
        if scheduled is None:
            return
        scheduled.retry_count += 1
        scheduled.last_error = error
        if scheduled.retry_count >= scheduled.max_retries:
            # the PENDING row is left to the stale dispatch sweep
            scheduled.status = ScheduleStatus.FIRED
            scheduled.fired_at = self._clock()
        self.repository.update_scheduled(scheduled)


class StaleDispatchSweep:
    """Re-drives notifications stuck in PENDING or SENDING.

    A row is stale when it has not changed for ``stale_after_seconds``, is not
    currently claimed, and is not waiting on a schedule.
    """

    def __init__(
        self,
        repository: NotificationRepository,
        service: "NotificationService",
        stale_after_seconds: int = 600,
        batch_size: int = 50,
        clock: Clock = utc_now,
    ):
        self.repository = repository
        self.service = service
        self.stale_after = timedelta(seconds=stale_after_seconds)
        self.batch_size = batch_size
        self._clock = clock
        self.log = logger.bind(worker="stale_dispatch_sweep")

    def process_batch(self) -> Dict[str, int]:
        stats = _empty_stats()
        with bind_request_context(correlation_id=f"stale-{uuid.uuid4().hex[:12]}"):
            try:
                stale = self.repository.list_stale(
                    (NotificationStatus.PENDING, NotificationStatus.SENDING),
                    self._clock() - self.stale_after,
                    self.batch_size,
                )
            except Exception as e:
                self.log.error("stale_sweep_fetch_failed", error=str(e), exc_info=True)
                return stats

            redrive = []
            for notification in stale:
                if self.service.claims.is_claimed(notification.id) or self._awaiting_schedule(
                    notification.id
                ):
                    stats["skipped"] += 1
                    continue

                self.log.warning(
                    "stale_notification_redriven",
                    notification_id=notification.id,
                    status=notification.status.value,
                    updated_at=notification.updated_at.isoformat(),
                )
                redrive.append(notification.id)

            run_on_queue(self.service, self._redrive_one, redrive, stats, self.log)

            if stale:
                self.log.info("stale_sweep_complete", **stats)
        return stats

    def _redrive_one(self, notification_id: str) -> Counter:
        counts: Counter = Counter()
        try:
            outcome = self.service.dispatch(notification_id)
        except Exception as e:
            self.log.error(
                "stale_dispatch_exception",
                notification_id=notification_id,
                error=str(e),
                exc_info=True,
            )
            counts["retried"] += 1
            return counts
        _tally(counts, outcome)
        return counts

    def _awaiting_schedule(self, notification_id: str) -> bool:
        schedules = self.repository.list_scheduled_for_notification(notification_id)
        return any(s.status == ScheduleStatus.SCHEDULED for s in schedules)
