"""Public surface of the domain model."""

from __future__ import annotations

from .enums import AtPhase, EventType, ResourceKind, RestartPolicy, TaskPhase
from .events import ChangeEvent
from .meta import DEFAULT_NAMESPACE, ObjectKey, ObjectMeta, OwnerReference
from .resources import (
    AT_API_VERSION,
    AT_GROUP,
    AT_KIND,
    AT_VERSION,
    At,
    AtSpec,
    AtStatus,
    Container,
    Task,
    TaskSpec,
    TaskStatus,
)

__all__ = [
    "AT_API_VERSION",
    "AT_GROUP",
    "AT_KIND",
    "AT_VERSION",
    "DEFAULT_NAMESPACE",
    "At",
    "AtPhase",
    "AtSpec",
    "AtStatus",
    "ChangeEvent",
    "Container",
    "EventType",
    "ObjectKey",
    "ObjectMeta",
    "OwnerReference",
    "ResourceKind",
    "RestartPolicy",
    "Task",
    "TaskPhase",
    "TaskSpec",
    "TaskStatus",
]
