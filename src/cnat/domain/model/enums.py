"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class AtPhase(StrEnum):
    """Lifecycle of an ``At`` resource; only ever moves forward."""

    UNSET = ""
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"

    @classmethod
    def rank(cls, phase: str) -> int | None:
        """Position of ``phase`` in the forward order, ``None`` for unknown values."""

        try:
            return _AT_PHASE_ORDER.index(cls(phase))
        except ValueError:
            return None

    @classmethod
    def is_forward(cls, previous: str, new: str) -> bool:
        """Whether moving from ``previous`` to ``new`` keeps the phase monotonic."""

        before, after = cls.rank(previous), cls.rank(new)
        if before is None or after is None:
            return False
        return after >= before


_AT_PHASE_ORDER: tuple[AtPhase, ...] = (
    AtPhase.UNSET,
    AtPhase.PENDING,
    AtPhase.RUNNING,
    AtPhase.DONE,
)


class TaskPhase(StrEnum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @property
    def is_terminal(self) -> bool:
        return self in {TaskPhase.SUCCEEDED, TaskPhase.FAILED}


class RestartPolicy(StrEnum):
    ALWAYS = "Always"
    ON_FAILURE = "OnFailure"
    NEVER = "Never"


class ResourceKind(StrEnum):
    """Discriminator for change events and owner references."""

    AT = "At"
    TASK = "Task"


class EventType(StrEnum):
    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
