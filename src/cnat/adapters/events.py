"""In-process change broadcaster shared by the resource stores."""

from __future__ import annotations

import threading
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cnat.domain.model import ChangeEvent
    from cnat.domain.ports import ChangeHandler, Unsubscribe

log = getLogger(__name__)


class EventBroadcaster:
    """Fan committed changes out to every subscriber.

    Handlers run synchronously on the publishing thread and must be quick (the
    controller only puts a key on its queue). A failing handler is logged and
    does not prevent delivery to the others.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: list[ChangeHandler] = []

    def subscribe(self, handler: ChangeHandler) -> Unsubscribe:
        with self._lock:
            self._handlers.append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            handlers = tuple(self._handlers)
        for handler in handlers:
            try:
                handler(event)
            except Exception:  # noqa: BLE001
                log.exception("Change handler %r failed for %s %s", handler, event.kind, event.key)

    def publish_all(self, events: list[ChangeEvent]) -> None:
        for event in events:
            self.publish(event)
