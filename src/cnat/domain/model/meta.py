"""Identity and ownership metadata shared by every resource."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

DEFAULT_NAMESPACE = "default"


@dataclass(frozen=True, slots=True, order=True)
class ObjectKey:
    """Namespace-qualified name; the unit of work for the controller."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def parse(cls, value: str, *, default_namespace: str = DEFAULT_NAMESPACE) -> ObjectKey:
        """Parse ``namespace/name`` (or a bare ``name`` in ``default_namespace``)."""

        namespace, sep, name = value.partition("/")
        if not sep:
            namespace, name = default_namespace, value
        if not namespace or not name or "/" in name:
            raise ValueError(f"Invalid object key: {value!r}")
        return cls(namespace=namespace, name=name)


@dataclass(frozen=True, slots=True)
class OwnerReference:
    api_version: str
    kind: str
    name: str
    uid: str
    controller: bool = False
    block_owner_deletion: bool = False


@dataclass(frozen=True, slots=True)
class ObjectMeta:
    name: str
    namespace: str = DEFAULT_NAMESPACE
    uid: str = ""
    resource_version: str = ""
    creation_timestamp: datetime | None = None
    labels: dict[str, str] = field(default_factory=dict[str, str])
    owner_references: tuple[OwnerReference, ...] = ()

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(namespace=self.namespace, name=self.name)

    def controller_owner(self) -> OwnerReference | None:
        """Return the owner reference flagged as controller, if any."""

        for reference in self.owner_references:
            if reference.controller:
                return reference
        return None
