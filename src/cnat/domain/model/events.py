"""Change notifications emitted by resource stores."""

from __future__ import annotations

from dataclasses import dataclass

from .enums import EventType, ResourceKind  # noqa: TC001
from .meta import ObjectKey, OwnerReference  # noqa: TC001


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    kind: ResourceKind
    type: EventType
    key: ObjectKey
    owner: OwnerReference | None = None
