"""Repository implementations backed by SQLAlchemy sessions.

Rows are translated to frozen domain objects on the way out, so callers never
hold anything the session could mutate behind their back.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, insert, select, update

from cnat.adapters.sqlalchemy.mappings import at_table, task_table
from cnat.domain.errors import AlreadyExistsError, ConflictError, NotFoundError
from cnat.domain.model import (
    At,
    AtSpec,
    AtStatus,
    Container,
    ObjectKey,
    ObjectMeta,
    OwnerReference,
    ResourceKind,
    RestartPolicy,
    Task,
    TaskPhase,
    TaskSpec,
    TaskStatus,
)

if TYPE_CHECKING:
    from sqlalchemy import Row
    from sqlalchemy.orm import Session


def _parse_version(resource_version: str) -> int:
    try:
        return int(resource_version)
    except ValueError as exc:
        raise ConflictError(f"Unusable resource version {resource_version!r}") from exc


def _task_phase(value: str) -> TaskPhase:
    try:
        return TaskPhase(value)
    except ValueError:
        return TaskPhase.UNKNOWN


def _row_to_at(row: Row[Any]) -> At:
    return At(
        metadata=ObjectMeta(
            name=row.name,
            namespace=row.namespace,
            uid=row.uid,
            resource_version=str(row.resource_version),
            creation_timestamp=row.creation_timestamp,
            labels=dict(row.labels),
        ),
        spec=AtSpec(schedule=row.schedule, command=row.command),
        status=AtStatus(phase=row.phase),
    )


def _row_to_task(row: Row[Any]) -> Task:
    owners: tuple[OwnerReference, ...] = ()
    if row.owner_uid is not None:
        owners = (
            OwnerReference(
                api_version=row.owner_api_version or "",
                kind=row.owner_kind or "",
                name=row.owner_name or "",
                uid=row.owner_uid,
                controller=row.owner_controller,
                block_owner_deletion=row.owner_block_deletion,
            ),
        )
    return Task(
        metadata=ObjectMeta(
            name=row.name,
            namespace=row.namespace,
            uid=row.uid,
            resource_version=str(row.resource_version),
            creation_timestamp=row.creation_timestamp,
            labels=dict(row.labels),
            owner_references=owners,
        ),
        spec=TaskSpec(
            container=Container(name=row.container_name, image=row.image, command=row.command),
            restart_policy=RestartPolicy(row.restart_policy),
        ),
        status=TaskStatus(phase=_task_phase(row.phase), reason=row.reason, message=row.message),
    )


class SqlAlchemyAtRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, key: ObjectKey) -> At:
        stmt = (
            select(at_table)
            .where(at_table.c.namespace == key.namespace)
            .where(at_table.c.name == key.name)
        )
        row = self.session.execute(stmt).one_or_none()
        if row is None:
            raise NotFoundError(ResourceKind.AT, key)
        return _row_to_at(row)

    def query(self, namespace: str | None = None) -> list[At]:
        stmt = select(at_table).order_by(at_table.c.namespace, at_table.c.name)
        if namespace is not None:
            stmt = stmt.where(at_table.c.namespace == namespace)
        return [_row_to_at(row) for row in self.session.execute(stmt)]

    def add(self, at: At) -> At:
        if self._exists(at.key):
            raise AlreadyExistsError(ResourceKind.AT, at.key)
        uid = str(uuid.uuid4())
        self.session.execute(
            insert(at_table).values(
                uid=uid,
                namespace=at.metadata.namespace,
                name=at.metadata.name,
                resource_version=1,
                creation_timestamp=datetime.now(UTC),
                labels=dict(at.metadata.labels),
                schedule=at.spec.schedule,
                command=at.spec.command,
                phase=at.status.phase,
            )
        )
        return self.get(at.key)

    def update_status(self, at: At) -> At:
        """Conditional write of the status columns only."""

        observed = _parse_version(at.metadata.resource_version)
        result = self.session.execute(
            update(at_table)
            .where(at_table.c.namespace == at.metadata.namespace)
            .where(at_table.c.name == at.metadata.name)
            .where(at_table.c.resource_version == observed)
            .values(phase=at.status.phase, resource_version=at_table.c.resource_version + 1)
        )
        if result.rowcount == 0:
            if not self._exists(at.key):
                raise NotFoundError(ResourceKind.AT, at.key)
            raise ConflictError(
                f"At {at.key} was modified since resource version {observed}; re-read and retry"
            )
        return self.get(at.key)

    def update_spec(self, key: ObjectKey, spec: AtSpec) -> At:
        result = self.session.execute(
            update(at_table)
            .where(at_table.c.namespace == key.namespace)
            .where(at_table.c.name == key.name)
            .values(
                schedule=spec.schedule,
                command=spec.command,
                resource_version=at_table.c.resource_version + 1,
            )
        )
        if result.rowcount == 0:
            raise NotFoundError(ResourceKind.AT, key)
        return self.get(key)

    def remove(self, key: ObjectKey) -> tuple[At, list[Task]]:
        """Delete ``key`` and the tasks it controls; return what was removed."""

        at = self.get(key)
        owned = SqlAlchemyTaskRepository(self.session).owned_by(at.metadata.uid)
        self.session.execute(delete(task_table).where(task_table.c.owner_uid == at.metadata.uid))
        self.session.execute(delete(at_table).where(at_table.c.uid == at.metadata.uid))
        return at, owned

    def _exists(self, key: ObjectKey) -> bool:
        stmt = (
            select(at_table.c.uid)
            .where(at_table.c.namespace == key.namespace)
            .where(at_table.c.name == key.name)
        )
        return self.session.execute(stmt).scalar_one_or_none() is not None


class SqlAlchemyTaskRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, key: ObjectKey) -> Task:
        stmt = (
            select(task_table)
            .where(task_table.c.namespace == key.namespace)
            .where(task_table.c.name == key.name)
        )
        row = self.session.execute(stmt).one_or_none()
        if row is None:
            raise NotFoundError(ResourceKind.TASK, key)
        return _row_to_task(row)

    def query(self, namespace: str | None = None) -> list[Task]:
        stmt = select(task_table).order_by(task_table.c.namespace, task_table.c.name)
        if namespace is not None:
            stmt = stmt.where(task_table.c.namespace == namespace)
        return [_row_to_task(row) for row in self.session.execute(stmt)]

    def owned_by(self, owner_uid: str) -> list[Task]:
        stmt = select(task_table).where(task_table.c.owner_uid == owner_uid)
        return [_row_to_task(row) for row in self.session.execute(stmt)]

    def add(self, task: Task) -> Task:
        owner = task.metadata.controller_owner()
        if owner is None and task.metadata.owner_references:
            owner = task.metadata.owner_references[0]
        container = task.spec.container
        if self._exists(task.key):
            raise AlreadyExistsError(ResourceKind.TASK, task.key)
        self.session.execute(
            insert(task_table).values(
                uid=str(uuid.uuid4()),
                namespace=task.metadata.namespace,
                name=task.metadata.name,
                resource_version=1,
                creation_timestamp=datetime.now(UTC),
                labels=dict(task.metadata.labels),
                owner_api_version=owner.api_version if owner else None,
                owner_kind=owner.kind if owner else None,
                owner_name=owner.name if owner else None,
                owner_uid=owner.uid if owner else None,
                owner_controller=owner.controller if owner else False,
                owner_block_deletion=owner.block_owner_deletion if owner else False,
                container_name=container.name,
                image=container.image,
                command=container.command,
                restart_policy=task.spec.restart_policy.value,
                phase=task.status.phase.value,
                reason=task.status.reason,
                message=task.status.message,
            )
        )
        return self.get(task.key)

    def update_status(self, key: ObjectKey, status: TaskStatus) -> Task:
        result = self.session.execute(
            update(task_table)
            .where(task_table.c.namespace == key.namespace)
            .where(task_table.c.name == key.name)
            .values(
                phase=status.phase.value,
                reason=status.reason,
                message=status.message,
                resource_version=task_table.c.resource_version + 1,
            )
        )
        if result.rowcount == 0:
            raise NotFoundError(ResourceKind.TASK, key)
        return self.get(key)

    def _exists(self, key: ObjectKey) -> bool:
        stmt = (
            select(task_table.c.uid)
            .where(task_table.c.namespace == key.namespace)
            .where(task_table.c.name == key.name)
        )
        return self.session.execute(stmt).scalar_one_or_none() is not None
