"""Worker pool that pulls keys off the queue and runs the reconciler."""

from __future__ import annotations

import threading
from logging import getLogger
from typing import TYPE_CHECKING

from cnat.domain.errors import ConflictError

from .deadline import Deadline

if TYPE_CHECKING:
    from cnat.domain.model import ObjectKey

    from .queue import RateLimitingQueue
    from .result import Reconciler

log = getLogger(__name__)


class Dispatcher:
    """Run ``workers`` loops of get -> reconcile -> requeue decision -> done.

    The queue never hands the same key to two workers, and a key is only
    released with ``done`` after its outcome has been recorded, so reconciles of
    one key are serialized while different keys run in parallel.
    """

    def __init__(
        self,
        queue: RateLimitingQueue[ObjectKey],
        reconciler: Reconciler,
        *,
        workers: int = 1,
        reconcile_timeout: float | None = None,
        conflict_requeue: float = 0.0,
        max_retries: int | None = None,
        name: str = "at",
    ) -> None:
        if workers < 1:
            raise ValueError("Dispatcher needs at least one worker")
        self.queue = queue
        self.reconciler = reconciler
        self.workers = workers
        self.reconcile_timeout = reconcile_timeout
        self.conflict_requeue = conflict_requeue
        self.max_retries = max_retries
        self.name = name
        self._threads: list[threading.Thread] = []

    def start(self) -> None:
        if self._threads:
            raise RuntimeError(f"Dispatcher {self.name} already started")
        for index in range(self.workers):
            thread = threading.Thread(
                target=self._worker_loop,
                name=f"{self.name}-worker-{index}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        log.info("Started %d worker(s) for %s", self.workers, self.name)

    def stop(self, *, timeout: float | None = None) -> None:
        """Stop pulling new keys and wait for in-flight reconciles to finish."""

        drained = self.queue.shut_down(drain=True, timeout=timeout)
        if not drained:
            log.warning("Timed out waiting for in-flight reconciles of %s", self.name)
        for thread in self._threads:
            thread.join(timeout)
        self._threads.clear()
        log.info("Stopped workers for %s", self.name)

    def run(self, stop_event: threading.Event) -> None:
        """Start the workers and block until ``stop_event`` is set."""

        self.start()
        try:
            stop_event.wait()
        finally:
            self.stop()

    def _worker_loop(self) -> None:
        while self.process_next_item():
            pass

    def process_next_item(self, timeout: float | None = None) -> bool:
        """Handle one key; ``False`` once the queue is shut down (or timed out)."""

        key = self.queue.get(timeout)
        if key is None:
            return False
        try:
            self._reconcile_and_requeue(key)
        finally:
            self.queue.done(key)
        return True

    def _reconcile_and_requeue(self, key: ObjectKey) -> None:
        deadline = Deadline.after(self.reconcile_timeout)
        try:
            result = self.reconciler.reconcile(key, deadline=deadline)
        except ConflictError as exc:
            # stale read; retry on fresh state without growing the backoff
            log.info("Conflict reconciling %s, requeueing: %s", key, exc)
            self.queue.add_after(key, self.conflict_requeue)
        except Exception:  # noqa: BLE001
            retries = self.queue.num_requeues(key)
            if self.max_retries is not None and retries >= self.max_retries:
                log.exception("Dropping %s after %d retries", key, retries)
                self.queue.forget(key)
                return
            log.exception("Error reconciling %s (retry %d)", key, retries + 1)
            self.queue.add_rate_limited(key)
        else:
            self.queue.forget(key)
            if result.requeue:
                assert result.requeue_after is not None
                log.info("Requeue %s after %s", key, result.requeue_after)
                self.queue.add_after(key, result.requeue_after.total_seconds())
