import threading
import time

import schedule

from infrastructure.configuration import Settings
from infrastructure.logging import get_module_logger
from infrastructure.notifications import (
    NotificationService,
    RetrySweep,
    ScheduledNotificationSweep,
    StaleDispatchSweep,
)

logger = get_module_logger()

CLEANUP_TIME = "03:00"


def safe_run(job):
    def wrapper(*args, **kwargs):
        try:
            job(*args, **kwargs)
        except Exception as e:
            logger.error("scheduled_job_failed", job=job.__name__, error=str(e), exc_info=True)

    wrapper.__name__ = job.__name__
    return wrapper


def init(service: NotificationService, settings: Settings, scheduler=None):
    """Register the notification sweeps and the retention cleanup.

    Args:
        service: Notification service the sweeps dispatch through
        settings: Application settings (intervals, batch sizes, retention)
        scheduler: ``schedule.Scheduler`` to register on; the module default
            scheduler when omitted
    """
    scheduler = scheduler or schedule.default_scheduler
    features = settings.notifications
    interval = features.sweep_interval_seconds
    repository = service.repository

    retry_sweep = RetrySweep(repository, service, batch_size=settings.retry.batch_size)
    scheduled_sweep = ScheduledNotificationSweep(
        repository, service, batch_size=settings.retry.batch_size
    )
    stale_sweep = StaleDispatchSweep(
        repository,
        service,
        stale_after_seconds=features.stale_sending_seconds,
        batch_size=settings.retry.batch_size,
    )

    scheduler.every(interval).seconds.do(safe_run(scheduled_sweep.process_batch))
    if settings.retry.enabled:
        scheduler.every(interval).seconds.do(safe_run(retry_sweep.process_batch))
    scheduler.every(interval * 2).seconds.do(safe_run(stale_sweep.process_batch))
    scheduler.every(5).minutes.do(safe_run(scheduler_heartbeat))
    scheduler.every(5).minutes.do(safe_run(channel_healthchecks), service=service)
    scheduler.every().day.at(CLEANUP_TIME).do(
        safe_run(cleanup_old_notifications),
        service=service,
        retention_days=features.retention_days,
    )

    logger.info(
        "scheduled_tasks_initialized",
        sweep_interval_seconds=interval,
        retry_enabled=settings.retry.enabled,
        jobs=len(scheduler.get_jobs()),
    )
    return scheduler


def scheduler_heartbeat():
    logger.info("scheduler_heartbeat", at=time.ctime())


def channel_healthchecks(service: NotificationService):
    for channel, healthy in service.health_check().items():
        if healthy:
            logger.info("channel_healthy", channel=channel)
        else:
            logger.error("channel_unhealthy", channel=channel)


def cleanup_old_notifications(service: NotificationService, retention_days: int):
    service.queries.cleanup_old_notifications(retention_days)


def run_continuously(interval=1, scheduler=None):
    """Continuously run, while executing pending jobs at each
    elapsed time interval.
    @return cease_continuous_run: threading. Event which can
    be set to cease continuous run. Please note that it is
    *intended behavior that run_continuously() does not run
    missed jobs*. For example, if you've registered a job that
    should run every minute and you set a continuous run
    interval of one hour then your job won't be run 60 times
    at each interval but only once.
    """
    scheduler = scheduler or schedule.default_scheduler
    cease_continuous_run = threading.Event()

    class ScheduleThread(threading.Thread):
        def run(self):
            while not cease_continuous_run.is_set():
                scheduler.run_pending()
                time.sleep(interval)

    continuous_thread = ScheduleThread(daemon=True, name="notification-scheduler")
    continuous_thread.start()
    return cease_continuous_run
