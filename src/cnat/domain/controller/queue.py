"""Deduplicating, delayable, rate-limited work queue.

Keys move through three sets:

* ``dirty``: keys that need processing (queued or deferred behind an in-flight copy)
* ``processing``: keys handed out by ``get`` and not yet ``done``
* ``waiting``: keys scheduled by ``add_after`` that are not eligible yet

A key is never in the ready deque twice and never handed to two workers at once.
A key re-added while it is being processed stays dirty and is queued again when
the worker calls ``done``.
"""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections import deque
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from logging import getLogger

log = getLogger(__name__)

type Clock = Callable[[], float]


@dataclass(slots=True)
class ExponentialBackoff[T: Hashable]:
    """Per-key exponential delay: ``base * 2**failures`` capped at ``maximum``."""

    base: float = 1.0
    maximum: float = 300.0
    _failures: dict[T, int] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def when(self, key: T) -> float:
        with self._lock:
            exponent = self._failures.get(key, 0)
            self._failures[key] = exponent + 1
        # avoid float overflow for keys that fail for a very long time
        if exponent >= 64:
            return self.maximum
        return min(self.base * (2**exponent), self.maximum)

    def forget(self, key: T) -> None:
        with self._lock:
            self._failures.pop(key, None)

    def num_requeues(self, key: T) -> int:
        with self._lock:
            return self._failures.get(key, 0)


class RateLimitingQueue[T: Hashable]:
    """Work queue with delayed delivery and per-key backoff."""

    def __init__(
        self,
        *,
        rate_limiter: ExponentialBackoff[T] | None = None,
        clock: Clock = time.monotonic,
        name: str = "queue",
    ) -> None:
        self.name = name
        self._rate_limiter: ExponentialBackoff[T] = rate_limiter or ExponentialBackoff()
        self._clock = clock
        self._cond = threading.Condition()
        self._ready: deque[T] = deque()
        self._dirty: set[T] = set()
        self._processing: set[T] = set()
        self._waiting: dict[T, float] = {}
        self._heap: list[tuple[float, int, T]] = []
        self._sequence = itertools.count()
        self._shutting_down = False

    # -- adding -----------------------------------------------------------------

    def add(self, key: T) -> None:
        """Queue ``key`` for immediate processing."""

        with self._cond:
            self._add_locked(key)

    def add_after(self, key: T, delay: float) -> None:
        """Queue ``key`` once ``delay`` seconds have elapsed.

        A key already waiting keeps whichever deadline comes first.
        """

        if delay <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutting_down:
                log.debug("%s: ignoring add_after(%s) during shutdown", self.name, key)
                return
            ready_at = self._clock() + delay
            current = self._waiting.get(key)
            if current is not None and current <= ready_at:
                return
            self._waiting[key] = ready_at
            heapq.heappush(self._heap, (ready_at, next(self._sequence), key))
            # a sleeping getter may need to wake up earlier than planned
            self._cond.notify_all()

    def add_rate_limited(self, key: T) -> None:
        """Queue ``key`` after its current backoff delay."""

        delay = self._rate_limiter.when(key)
        log.debug("%s: backing off %s for %.3fs", self.name, key, delay)
        self.add_after(key, delay)

    def forget(self, key: T) -> None:
        """Reset the backoff counter of ``key``."""

        self._rate_limiter.forget(key)

    def num_requeues(self, key: T) -> int:
        return self._rate_limiter.num_requeues(key)

    # -- consuming --------------------------------------------------------------

    def get(self, timeout: float | None = None) -> T | None:
        """Block until a key is eligible and hand it out.

        Returns ``None`` when the queue shuts down or ``timeout`` elapses first.
        """

        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                if self._shutting_down:
                    return None
                self._promote_ready_locked()
                if self._ready:
                    key = self._ready.popleft()
                    self._processing.add(key)
                    self._dirty.discard(key)
                    return key
                if deadline is not None and self._clock() >= deadline:
                    return None
                self._cond.wait(self._next_wakeup_locked(deadline))

    def done(self, key: T) -> None:
        """Mark ``key`` as processed; requeue it if it was re-added meanwhile."""

        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._ready.append(key)
            self._cond.notify_all()

    # -- lifecycle --------------------------------------------------------------

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def shut_down(self, *, drain: bool = False, timeout: float | None = None) -> bool:
        """Stop accepting work and wake every blocked getter.

        With ``drain=True`` wait (up to ``timeout``) until in-flight keys are done.
        Returns ``False`` if the drain timed out.
        """

        with self._cond:
            self._shutting_down = True
            pending = len(self._ready) + len(self._waiting)
            if pending:
                log.info(
                    "%s: shutting down with %d undelivered key(s); they will be "
                    "picked up by the next sync",
                    self.name,
                    pending,
                )
            self._cond.notify_all()
            if not drain:
                return True
            return self._cond.wait_for(lambda: not self._processing, timeout)

    def __len__(self) -> int:
        with self._cond:
            return len(self._ready)

    def in_flight(self) -> frozenset[T]:
        with self._cond:
            return frozenset(self._processing)

    # -- internals --------------------------------------------------------------

    def _add_locked(self, key: T) -> None:
        if self._shutting_down:
            log.debug("%s: ignoring add(%s) during shutdown", self.name, key)
            return
        # an immediate add supersedes any pending delayed delivery
        self._waiting.pop(key, None)
        if key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._ready.append(key)
        self._cond.notify()

    def _promote_ready_locked(self) -> None:
        now = self._clock()
        while self._heap and self._heap[0][0] <= now:
            ready_at, _, key = heapq.heappop(self._heap)
            if self._waiting.get(key) != ready_at:
                continue  # superseded by an earlier deadline or an immediate add
            del self._waiting[key]
            if self._shutting_down:
                continue
            if key in self._dirty:
                continue
            self._dirty.add(key)
            if key not in self._processing:
                self._ready.append(key)

    def _next_wakeup_locked(self, deadline: float | None) -> float | None:
        now = self._clock()
        candidates: list[float] = []
        if self._heap:
            candidates.append(self._heap[0][0] - now)
        if deadline is not None:
            candidates.append(deadline - now)
        if not candidates:
            return None
        # a heap head that came due since the last promotion means "look again now"
        return max(min(candidates), 0.0)
