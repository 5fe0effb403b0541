"""Run derived tasks as local processes and report their phase to the store."""

from __future__ import annotations

import subprocess
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from logging import getLogger
from typing import TYPE_CHECKING

from cnat.domain.errors import NotFoundError, ResourceError
from cnat.domain.model import EventType, ResourceKind, RestartPolicy, TaskPhase, TaskStatus

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from cnat.domain.model import ChangeEvent, ObjectKey, Task
    from cnat.domain.ports import ChangeNotifier, ResourceStore, Unsubscribe

log = getLogger(__name__)

type ProcessRunner = Callable[[Sequence[str]], subprocess.CompletedProcess[str]]

START_ERROR_REASON = "StartError"
FAILED_REASON = "Error"


def run_process(command: Sequence[str]) -> subprocess.CompletedProcess[str]:
    return subprocess.run(  # noqa: S603
        list(command),
        capture_output=True,
        text=True,
        check=False,
        stdin=subprocess.DEVNULL,
    )


class LocalTaskRunner:
    """Execute newly added tasks on a thread pool.

    A task is picked up once, when it is added in phase ``Pending``. Tasks that
    already exist in that phase when the runner starts are picked up too.
    """

    def __init__(
        self,
        store: ResourceStore,
        notifier: ChangeNotifier,
        *,
        max_attempts: int = 3,
        max_workers: int = 4,
        runner: ProcessRunner = run_process,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.notifier = notifier
        self.max_attempts = max_attempts
        self._runner = runner
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="task")
        self._lock = threading.Lock()
        self._active: set[ObjectKey] = set()
        self._unsubscribe: Unsubscribe | None = None
        self._stopped = False

    def start(self) -> None:
        self._unsubscribe = self.notifier.subscribe(self.handle_event)
        for task in self.store.list_tasks(None):
            if task.status.phase is TaskPhase.PENDING:
                self.submit(task.key)

    def stop(self, *, wait: bool = True) -> None:
        with self._lock:
            self._stopped = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def handle_event(self, event: ChangeEvent) -> None:
        if event.kind is ResourceKind.TASK and event.type is EventType.ADDED:
            self.submit(event.key)

    def submit(self, key: ObjectKey) -> Future[TaskPhase | None] | None:
        with self._lock:
            if self._stopped or key in self._active:
                return None
            self._active.add(key)
            future = self._executor.submit(self._execute, key)

        def release(done: Future[TaskPhase | None]) -> None:
            with self._lock:
                self._active.discard(key)
            if done.cancelled():
                return
            exc = done.exception()
            if exc is not None:
                log.error("Runner for task %s crashed", key, exc_info=exc)

        future.add_done_callback(release)
        return future

    def run_task(self, key: ObjectKey) -> TaskPhase | None:
        """Run ``key`` to completion; ``None`` if it was gone or already started."""

        try:
            task = self.store.get_task(key)
        except NotFoundError:
            log.debug("Task %s vanished before it could run", key)
            return None
        if task.status.phase is not TaskPhase.PENDING:
            return None

        self.store.update_task_status(key, TaskStatus(phase=TaskPhase.RUNNING))
        status = self._run_attempts(task)
        self.store.update_task_status(key, status)
        log.info("Task %s finished: %s", key, status.phase)
        return status.phase

    def _run_attempts(self, task: Task) -> TaskStatus:
        command = task.spec.container.command
        attempts = 1 if task.spec.restart_policy is RestartPolicy.NEVER else self.max_attempts
        message: str | None = None
        for attempt in range(1, attempts + 1):
            try:
                completed = self._runner(command)
            except OSError as exc:
                log.warning("Task %s could not start %r: %s", task.key, command, exc)
                return TaskStatus(phase=TaskPhase.FAILED, reason=START_ERROR_REASON, message=str(exc))
            if completed.returncode == 0:
                return TaskStatus(phase=TaskPhase.SUCCEEDED)
            message = (completed.stderr or "").strip() or f"exit status {completed.returncode}"
            log.warning(
                "Task %s attempt %d/%d exited with %d",
                task.key,
                attempt,
                attempts,
                completed.returncode,
            )
        return TaskStatus(phase=TaskPhase.FAILED, reason=FAILED_REASON, message=message)

    def _execute(self, key: ObjectKey) -> TaskPhase | None:
        try:
            return self.run_task(key)
        except NotFoundError:
            log.info("Task %s was deleted while running", key)
        except ResourceError:
            log.exception("Could not report the outcome of task %s", key)
        return None
