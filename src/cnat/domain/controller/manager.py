"""Controller wiring: change events in, keys on the queue, workers running."""

from __future__ import annotations

import threading
from logging import getLogger
from typing import TYPE_CHECKING

from cnat.domain.model import AT_KIND, ChangeEvent, ObjectKey, ResourceKind

from .dispatcher import Dispatcher
from .queue import ExponentialBackoff, RateLimitingQueue
from .reconciler import AtReconciler

if TYPE_CHECKING:
    from cnat.config import ControllerConfig
    from cnat.domain.ports import ChangeNotifier, ResourceClient, Unsubscribe

    from .result import Reconciler

log = getLogger(__name__)


def keys_for_event(event: ChangeEvent) -> list[ObjectKey]:
    """Map a change to the ``At`` keys that must be reconciled."""

    if event.kind is ResourceKind.AT:
        return [event.key]
    owner = event.owner
    if event.kind is ResourceKind.TASK and owner is not None and owner.kind == AT_KIND:
        return [ObjectKey(namespace=event.key.namespace, name=owner.name)]
    return []


class Controller:
    """Feed the work queue from a notifier and drive it with a dispatcher.

    On start every existing ``At`` is queued once, so changes made while the
    controller was down are picked up. ``resync_seconds`` re-lists periodically,
    which is the only source of work when no notifier is available.
    """

    def __init__(
        self,
        client: ResourceClient,
        config: ControllerConfig,
        *,
        notifier: ChangeNotifier | None = None,
        reconciler: Reconciler | None = None,
    ) -> None:
        self.client = client
        self.config = config
        self.notifier = notifier
        self.queue: RateLimitingQueue[ObjectKey] = RateLimitingQueue(
            rate_limiter=ExponentialBackoff(
                base=config.backoff_base_seconds,
                maximum=config.backoff_max_seconds,
            ),
            name="at",
        )
        self.dispatcher = Dispatcher(
            self.queue,
            reconciler or AtReconciler(client),
            workers=config.workers,
            reconcile_timeout=config.reconcile_timeout_seconds,
            conflict_requeue=config.conflict_requeue_seconds,
            max_retries=config.max_retries,
        )
        self._unsubscribe: Unsubscribe | None = None
        self._stopping = threading.Event()
        self._resync_thread: threading.Thread | None = None

    def handle_event(self, event: ChangeEvent) -> None:
        for key in keys_for_event(event):
            log.debug("Event %s %s %s -> %s", event.type, event.kind, event.key, key)
            self.queue.add(key)

    def sync_all(self) -> int:
        """Queue every ``At`` currently in the store."""

        ats = self.client.list_ats(None)
        for at in ats:
            self.queue.add(at.key)
        log.info("Queued %d At resource(s) for sync", len(ats))
        return len(ats)

    def start(self) -> None:
        if self.notifier is not None:
            self._unsubscribe = self.notifier.subscribe(self.handle_event)
        elif self.config.resync_seconds is None:
            log.warning("No change notifier and no resync period: only the initial sync runs")
        self.sync_all()
        self.dispatcher.start()
        if self.config.resync_seconds is not None:
            self._resync_thread = threading.Thread(
                target=self._resync_loop,
                args=(self.config.resync_seconds,),
                name="at-resync",
                daemon=True,
            )
            self._resync_thread.start()

    def stop(self, *, timeout: float | None = None) -> None:
        self._stopping.set()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.dispatcher.stop(timeout=timeout)
        if self._resync_thread is not None:
            self._resync_thread.join(timeout)
            self._resync_thread = None

    def run(self, stop_event: threading.Event) -> None:
        """Run until ``stop_event`` is set, then shut down gracefully."""

        self.start()
        try:
            stop_event.wait()
        finally:
            self.stop()

    def _resync_loop(self, period: float) -> None:
        while not self._stopping.wait(period):
            try:
                self.sync_all()
            except Exception:  # noqa: BLE001
                log.exception("Periodic resync failed")
