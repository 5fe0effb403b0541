"""The managed ``At`` resource and the ``Task`` derived from it."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

from .enums import AtPhase, RestartPolicy, TaskPhase
from .meta import ObjectKey, ObjectMeta  # noqa: TC001

AT_GROUP: Final[str] = "cnat.programming-kubernetes.info"
AT_VERSION: Final[str] = "v1alpha1"
AT_API_VERSION: Final[str] = f"{AT_GROUP}/{AT_VERSION}"
AT_KIND: Final[str] = "At"


@dataclass(frozen=True, slots=True)
class AtSpec:
    schedule: str
    command: str


@dataclass(frozen=True, slots=True)
class AtStatus:
    # kept as ``str`` so that unknown stored phases survive a round trip
    phase: str = AtPhase.UNSET


@dataclass(frozen=True, slots=True)
class At:
    """Run ``spec.command`` once ``spec.schedule`` has passed."""

    metadata: ObjectMeta
    spec: AtSpec
    status: AtStatus = field(default_factory=AtStatus)

    @property
    def key(self) -> ObjectKey:
        return self.metadata.key


@dataclass(frozen=True, slots=True)
class Container:
    name: str
    image: str
    command: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class TaskSpec:
    container: Container
    restart_policy: RestartPolicy = RestartPolicy.ON_FAILURE


@dataclass(frozen=True, slots=True)
class TaskStatus:
    phase: TaskPhase = TaskPhase.PENDING
    reason: str | None = None
    message: str | None = None


@dataclass(frozen=True, slots=True)
class Task:
    """One-shot unit of execution owned by an ``At``."""

    metadata: ObjectMeta
    spec: TaskSpec
    status: TaskStatus = field(default_factory=TaskStatus)

    @property
    def key(self) -> ObjectKey:
        return self.metadata.key
