from __future__ import annotations

from dataclasses import replace

import pytest
from sqlalchemy.exc import OperationalError

from cnat.adapters.sqlalchemy.store import SqlAlchemyResourceStore
from cnat.domain.controller import new_task_for
from cnat.domain.errors import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    TransientClientError,
)
from cnat.domain.model import (
    AtSpec,
    AtStatus,
    ChangeEvent,
    EventType,
    ObjectKey,
    ResourceKind,
    TaskPhase,
    TaskStatus,
)
from tests.helpers.resources import make_at


@pytest.fixture
def events(sqlite_store: SqlAlchemyResourceStore) -> list[ChangeEvent]:
    received: list[ChangeEvent] = []
    sqlite_store.subscribe(received.append)
    return received


def test_create_and_read_back(sqlite_store: SqlAlchemyResourceStore) -> None:
    created = sqlite_store.create_at(make_at("example", namespace="team-a"))

    assert sqlite_store.get_at(created.key) == created
    assert sqlite_store.list_ats("team-a") == [created]
    assert sqlite_store.list_ats("team-b") == []
    assert sqlite_store.list_ats(None) == [created]


def test_create_publishes_an_added_event(
    sqlite_store: SqlAlchemyResourceStore, events: list[ChangeEvent]
) -> None:
    created = sqlite_store.create_at(make_at())

    assert events == [ChangeEvent(kind=ResourceKind.AT, type=EventType.ADDED, key=created.key)]

    with pytest.raises(AlreadyExistsError):
        sqlite_store.create_at(make_at())
    assert len(events) == 1


def test_status_update_is_conditional(
    sqlite_store: SqlAlchemyResourceStore, events: list[ChangeEvent]
) -> None:
    created = sqlite_store.create_at(make_at())
    running = replace(created, status=AtStatus(phase="RUNNING"))

    updated = sqlite_store.update_at_status(running)

    assert updated.status.phase == "RUNNING"
    assert events[-1].type is EventType.MODIFIED
    with pytest.raises(ConflictError):
        sqlite_store.update_at_status(running)
    with pytest.raises(NotFoundError):
        sqlite_store.update_at_status(make_at("ghost"))


def test_spec_edit_invalidates_observed_versions(sqlite_store: SqlAlchemyResourceStore) -> None:
    observed = sqlite_store.create_at(make_at())

    sqlite_store.update_at_spec(observed.key, AtSpec(schedule="2030-01-01T00:00:00Z", command="date"))

    with pytest.raises(ConflictError):
        sqlite_store.update_at_status(replace(observed, status=AtStatus(phase="PENDING")))


def test_created_task_event_names_its_owner(
    sqlite_store: SqlAlchemyResourceStore, events: list[ChangeEvent]
) -> None:
    at = sqlite_store.create_at(make_at())

    task = sqlite_store.create_task(new_task_for(at))

    event = events[-1]
    assert event.kind is ResourceKind.TASK
    assert event.type is EventType.ADDED
    assert event.key == task.key
    assert event.owner is not None
    assert event.owner.uid == at.metadata.uid
    assert sqlite_store.get_task(task.key) == task
    assert sqlite_store.list_tasks("default") == [task]


def test_task_status_update_publishes_modified(
    sqlite_store: SqlAlchemyResourceStore, events: list[ChangeEvent]
) -> None:
    at = sqlite_store.create_at(make_at())
    task = sqlite_store.create_task(new_task_for(at))

    updated = sqlite_store.update_task_status(task.key, TaskStatus(phase=TaskPhase.SUCCEEDED))

    assert updated.status.phase is TaskPhase.SUCCEEDED
    assert events[-1] == ChangeEvent(
        kind=ResourceKind.TASK,
        type=EventType.MODIFIED,
        key=task.key,
        owner=task.metadata.controller_owner(),
    )


def test_delete_cascades_to_owned_tasks(
    sqlite_store: SqlAlchemyResourceStore, events: list[ChangeEvent]
) -> None:
    at = sqlite_store.create_at(make_at())
    task = sqlite_store.create_task(new_task_for(at))
    events.clear()

    sqlite_store.delete_at(at.key)

    assert [(event.kind, event.type, event.key) for event in events] == [
        (ResourceKind.TASK, EventType.DELETED, task.key),
        (ResourceKind.AT, EventType.DELETED, at.key),
    ]
    with pytest.raises(NotFoundError):
        sqlite_store.get_task(task.key)
    with pytest.raises(NotFoundError):
        sqlite_store.delete_at(at.key)


def test_subscribers_see_committed_state(sqlite_store: SqlAlchemyResourceStore) -> None:
    seen: list[str] = []

    def read_back(event: ChangeEvent) -> None:
        seen.append(sqlite_store.get_at(event.key).spec.command)

    sqlite_store.subscribe(read_back)
    sqlite_store.create_at(make_at(command="echo committed"))

    assert seen == ["echo committed"]


def test_unsubscribe_stops_delivery(sqlite_store: SqlAlchemyResourceStore) -> None:
    received: list[ChangeEvent] = []
    unsubscribe = sqlite_store.subscribe(received.append)

    unsubscribe()
    sqlite_store.create_at(make_at())

    assert received == []


class _BrokenUnitOfWork:
    def __enter__(self) -> _BrokenUnitOfWork:
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    def __exit__(self, *exc_info: object) -> None:
        return None


def test_database_errors_surface_as_transient() -> None:
    store = SqlAlchemyResourceStore(_BrokenUnitOfWork)  # type: ignore[arg-type]

    with pytest.raises(TransientClientError, match="database is locked"):
        store.get_at(ObjectKey(namespace="default", name="example"))
