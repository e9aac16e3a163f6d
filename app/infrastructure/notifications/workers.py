"""Supervised in-process dispatch queue.

Creation persists a PENDING notification and hands its id to this queue;
the dispatch itself runs on a bounded thread pool. Every submission is
supervised: an exception escaping the task is logged with the correlation
id of the request that submitted it, never lost.

A task lost to a process restart is recovered by the stale dispatch sweep,
which re-drives PENDING/SENDING rows that stopped moving.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Optional, Set

from infrastructure.logging import bind_request_context, get_correlation_id, get_module_logger

logger = get_module_logger()


class DispatchQueue:
    """Bounded worker pool for asynchronous notification dispatch.

    Example:
        queue = DispatchQueue(max_workers=8)
        queue.submit(service.dispatch, notification.id)
        ...
        queue.shutdown()
    """

    def __init__(self, max_workers: int = 8, name: str = "notification-dispatch"):
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()

    def submit(self, task: Callable[..., Any], *args: Any) -> Future:
        """Run ``task(*args)`` on the pool.

        Raises:
            RuntimeError: the queue has been shut down.
        """
        correlation_id = get_correlation_id()
        future = self._executor.submit(self._supervised, task, args, correlation_id)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until every submitted task has finished; False on timeout."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def shutdown(self, wait: bool = True) -> None:
        logger.info("dispatch_queue_shutdown", pending=self.pending_count, wait=wait)
        self._executor.shutdown(wait=wait)

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    @staticmethod
    def _supervised(task: Callable[..., Any], args: tuple, correlation_id: Optional[str]) -> Any:
        with bind_request_context(correlation_id=correlation_id):
            try:
                return task(*args)
            except Exception as e:
                logger.error(
                    "dispatch_task_failed",
                    task=getattr(task, "__name__", repr(task)),
                    args=[str(a) for a in args],
                    error=str(e),
                    exc_info=True,
                )
                return None
