"""Ports for reading and writing managed resources."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from cnat.domain.model import At, AtSpec, ObjectKey, Task, TaskStatus


@runtime_checkable
class ResourceClient(Protocol):
    """What the reconciler needs from the resource store.

    Every call accepts ``timeout`` (seconds, ``None`` for the adapter default).
    Failures are reported with the ``cnat.domain.errors`` taxonomy.
    """

    def get_at(self, key: ObjectKey, *, timeout: float | None = None) -> At: ...

    def list_ats(self, namespace: str | None = None, *, timeout: float | None = None) -> list[At]:
        """List resources in ``namespace``, or in every namespace for ``None``."""
        ...

    def update_at_status(self, at: At, *, timeout: float | None = None) -> At:
        """Persist ``at.status`` only, conditional on ``at.metadata.resource_version``."""
        ...

    def get_task(self, key: ObjectKey, *, timeout: float | None = None) -> Task: ...

    def create_task(self, task: Task, *, timeout: float | None = None) -> Task: ...


@runtime_checkable
class ResourceStore(ResourceClient, Protocol):
    """Administrative operations used by the CLI and the local task runner."""

    def create_at(self, at: At) -> At: ...

    def update_at_spec(self, key: ObjectKey, spec: AtSpec) -> At: ...

    def delete_at(self, key: ObjectKey) -> None:
        """Delete the resource together with every task it controls."""
        ...

    def list_tasks(self, namespace: str | None = None) -> list[Task]: ...

    def update_task_status(self, key: ObjectKey, status: TaskStatus) -> Task: ...
