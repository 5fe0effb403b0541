"""Resource store facade over the SQLAlchemy repositories.

Each call runs in its own unit of work. Change events are published only
after the transaction commits, so a subscriber that reacts by reading the
store always sees the change.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from cnat.adapters.events import EventBroadcaster
from cnat.domain.errors import TransientClientError
from cnat.domain.model import ChangeEvent, EventType, ResourceKind

from .unit_of_work import SqlAlchemyUnitOfWork

if TYPE_CHECKING:
    from cnat.domain.model import At, AtSpec, ObjectKey, Task, TaskStatus
    from cnat.domain.ports import ChangeHandler, Unsubscribe

log = getLogger(__name__)

type UnitOfWorkFactory = Callable[[], SqlAlchemyUnitOfWork]


class SqlAlchemyResourceStore:
    """``ResourceStore`` and ``ChangeNotifier`` backed by a relational database.

    ``timeout`` is accepted for interface parity; statements run to completion
    and the caller's deadline is checked between calls.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory = SqlAlchemyUnitOfWork,
        *,
        broadcaster: EventBroadcaster | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._broadcaster = broadcaster or EventBroadcaster()

    def subscribe(self, handler: ChangeHandler) -> Unsubscribe:
        return self._broadcaster.subscribe(handler)

    # ResourceClient

    def get_at(self, key: ObjectKey, *, timeout: float | None = None) -> At:
        _ = timeout
        with self._unit_of_work() as uow:
            return uow.repositories.ats.get(key)

    def list_ats(self, namespace: str | None = None, *, timeout: float | None = None) -> list[At]:
        _ = timeout
        with self._unit_of_work() as uow:
            return uow.repositories.ats.query(namespace)

    def update_at_status(self, at: At, *, timeout: float | None = None) -> At:
        _ = timeout
        with self._unit_of_work() as uow:
            updated = uow.repositories.ats.update_status(at)
            uow.commit()
        self._broadcaster.publish(_at_event(EventType.MODIFIED, updated))
        return updated

    def get_task(self, key: ObjectKey, *, timeout: float | None = None) -> Task:
        _ = timeout
        with self._unit_of_work() as uow:
            return uow.repositories.tasks.get(key)

    def create_task(self, task: Task, *, timeout: float | None = None) -> Task:
        _ = timeout
        with self._unit_of_work() as uow:
            created = uow.repositories.tasks.add(task)
            uow.commit()
        log.info("Created task %s", created.key)
        self._broadcaster.publish(_task_event(EventType.ADDED, created))
        return created

    # ResourceStore

    def create_at(self, at: At) -> At:
        with self._unit_of_work() as uow:
            created = uow.repositories.ats.add(at)
            uow.commit()
        log.info("Created At %s", created.key)
        self._broadcaster.publish(_at_event(EventType.ADDED, created))
        return created

    def update_at_spec(self, key: ObjectKey, spec: AtSpec) -> At:
        with self._unit_of_work() as uow:
            updated = uow.repositories.ats.update_spec(key, spec)
            uow.commit()
        self._broadcaster.publish(_at_event(EventType.MODIFIED, updated))
        return updated

    def delete_at(self, key: ObjectKey) -> None:
        with self._unit_of_work() as uow:
            at, tasks = uow.repositories.ats.remove(key)
            uow.commit()
        log.info("Deleted At %s and %d owned task(s)", at.key, len(tasks))
        events = [_task_event(EventType.DELETED, task) for task in tasks]
        events.append(_at_event(EventType.DELETED, at))
        self._broadcaster.publish_all(events)

    def list_tasks(self, namespace: str | None = None) -> list[Task]:
        with self._unit_of_work() as uow:
            return uow.repositories.tasks.query(namespace)

    def update_task_status(self, key: ObjectKey, status: TaskStatus) -> Task:
        with self._unit_of_work() as uow:
            updated = uow.repositories.tasks.update_status(key, status)
            uow.commit()
        self._broadcaster.publish(_task_event(EventType.MODIFIED, updated))
        return updated

    @contextmanager
    def _unit_of_work(self) -> Iterator[SqlAlchemyUnitOfWork]:
        try:
            with self._uow_factory() as uow:
                yield uow
        except SQLAlchemyError as exc:
            raise TransientClientError(f"Database error: {exc}") from exc


def _at_event(type_: EventType, at: At) -> ChangeEvent:
    return ChangeEvent(kind=ResourceKind.AT, type=type_, key=at.key)


def _task_event(type_: EventType, task: Task) -> ChangeEvent:
    return ChangeEvent(
        kind=ResourceKind.TASK,
        type=type_,
        key=task.key,
        owner=task.metadata.controller_owner(),
    )
