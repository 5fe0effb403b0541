"""Reconciler for ``At`` resources: PENDING -> RUNNING -> DONE.

Each reconcile starts from a fresh read of the resource and is safe to repeat:

* PENDING waits for the schedule by returning a requeue delay, never by sleeping.
* RUNNING creates the derived task if it is missing and watches it until it ends.
* DONE is terminal.

Phase changes happen in memory and are persisted once, at the end of the pass.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from cnat.domain.errors import AlreadyExistsError, NotFoundError
from cnat.domain.model import AtPhase, AtStatus
from cnat.domain.schedule import time_until_schedule

from .deadline import Deadline
from .result import ReconcileResult
from .status import StatusWriter
from .tasks import new_task_for

if TYPE_CHECKING:
    from collections.abc import Callable

    from cnat.domain.model import At, ObjectKey
    from cnat.domain.ports import ResourceClient

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class _Advance:
    """Handler outcome: continue the pass in ``phase``."""

    phase: AtPhase


type _Step = _Advance | ReconcileResult


class AtReconciler:
    def __init__(
        self,
        client: ResourceClient,
        *,
        status_writer: StatusWriter | None = None,
        now_provider: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client = client
        self._status_writer = status_writer or StatusWriter(client)
        self._now = now_provider

    def reconcile(self, key: ObjectKey, *, deadline: Deadline | None = None) -> ReconcileResult:
        deadline = deadline or Deadline()
        log.info("=== Reconciling At: namespace=%s at=%s", key.namespace, key.name)

        try:
            at = self._client.get_at(key, timeout=deadline.remaining())
        except NotFoundError:
            # deleted after the event was queued; nothing left to do
            log.info("At %s not found, skipping", key)
            return ReconcileResult()

        observed = at.status.phase
        start: str = observed or AtPhase.PENDING
        phase = start
        result = ReconcileResult()

        while True:
            match phase:
                case AtPhase.PENDING:
                    step = self._reconcile_pending(at)
                case AtPhase.RUNNING:
                    step = self._reconcile_running(at, deadline)
                case AtPhase.DONE:
                    log.info("Phase: DONE namespace=%s at=%s", key.namespace, key.name)
                    step = ReconcileResult()
                case _:
                    log.info("NOP: namespace=%s at=%s phase=%r", key.namespace, key.name, phase)
                    return ReconcileResult()
            if isinstance(step, _Advance):
                phase = step.phase
                continue
            result = step
            break

        # early exits (waiting, task still running) leave the stored status alone
        if phase == start:
            return result

        self._status_writer.write(
            replace(at, status=AtStatus(phase=phase)),
            observed,
            timeout=deadline.remaining(),
        )
        return result

    # -- phase handlers -----------------------------------------------------------

    def _reconcile_pending(self, at: At) -> _Step:
        log.info(
            "Phase: PENDING namespace=%s at=%s schedule=%s",
            at.metadata.namespace,
            at.metadata.name,
            at.spec.schedule,
        )
        # a malformed schedule raises and is retried until the schedule is edited
        delay = time_until_schedule(at.spec.schedule, now_provider=self._now)
        log.debug("Schedule parsed: at=%s diff=%s", at.key, delay)
        if delay > timedelta(0):
            return ReconcileResult(requeue_after=delay)
        log.info("It's time! at=%s command=%r", at.key, at.spec.command)
        return _Advance(AtPhase.RUNNING)

    def _reconcile_running(self, at: At, deadline: Deadline) -> _Step:
        log.info("Phase: RUNNING namespace=%s at=%s", at.metadata.namespace, at.metadata.name)
        desired = new_task_for(at)
        try:
            found = self._client.get_task(desired.key, timeout=deadline.remaining())
        except NotFoundError:
            try:
                self._client.create_task(desired, timeout=deadline.remaining())
            except AlreadyExistsError:
                log.info("Task %s already exists, waiting for its events", desired.key)
            else:
                log.info("Task launched: at=%s task=%s", at.key, desired.key)
            # the task's own change events trigger the next reconcile
            return ReconcileResult()

        if found.status.phase.is_terminal:
            log.info(
                "Task terminated: at=%s task=%s phase=%s reason=%s message=%s",
                at.key,
                found.key,
                found.status.phase,
                found.status.reason,
                found.status.message,
            )
            return _Advance(AtPhase.DONE)

        log.debug("Task %s still %s", found.key, found.status.phase)
        return ReconcileResult()
