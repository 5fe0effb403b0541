"""Translate between API server wire models and domain resources."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from cnat.domain.model import (
    AT_API_VERSION,
    AT_GROUP,
    AT_KIND,
    AT_VERSION,
    At,
    AtSpec,
    AtStatus,
    Container,
    ObjectMeta,
    OwnerReference,
    ResourceKind,
    RestartPolicy,
    Task,
    TaskPhase,
    TaskSpec,
    TaskStatus,
)

from .schema import (
    AtModel,
    AtSpecModel,
    AtStatusModel,
    ContainerModel,
    ObjectMetaModel,
    OwnerReferenceModel,
    PodModel,
    PodSpecModel,
    PodStatusModel,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from cnat.domain.model import ObjectKey


@dataclass(frozen=True, slots=True)
class ResourceType:
    """REST location of one resource kind."""

    api_prefix: str
    plural: str

    def collection_path(self, namespace: str | None) -> str:
        if namespace is None:
            return f"{self.api_prefix}/{self.plural}"
        return f"{self.api_prefix}/namespaces/{namespace}/{self.plural}"

    def item_path(self, key: ObjectKey) -> str:
        return f"{self.collection_path(key.namespace)}/{key.name}"

    def status_path(self, key: ObjectKey) -> str:
        return f"{self.item_path(key)}/status"


RESOURCE_TYPES: Final[Mapping[ResourceKind, ResourceType]] = MappingProxyType(
    {
        ResourceKind.AT: ResourceType(api_prefix=f"/apis/{AT_GROUP}/{AT_VERSION}", plural="ats"),
        # tasks are plain pods on a real cluster
        ResourceKind.TASK: ResourceType(api_prefix="/api/v1", plural="pods"),
    }
)


def _meta_from_model(model: ObjectMetaModel, *, default_namespace: str) -> ObjectMeta:
    return ObjectMeta(
        name=model.name,
        namespace=model.namespace or default_namespace,
        uid=model.uid or "",
        resource_version=model.resource_version or "",
        creation_timestamp=model.creation_timestamp,
        labels=dict(model.labels or {}),
        owner_references=tuple(
            OwnerReference(
                api_version=reference.api_version,
                kind=reference.kind,
                name=reference.name,
                uid=reference.uid,
                controller=bool(reference.controller),
                block_owner_deletion=bool(reference.block_owner_deletion),
            )
            for reference in model.owner_references or ()
        ),
    )


def _meta_to_model(meta: ObjectMeta) -> ObjectMetaModel:
    return ObjectMetaModel(
        name=meta.name,
        namespace=meta.namespace,
        uid=meta.uid or None,
        resource_version=meta.resource_version or None,
        creation_timestamp=meta.creation_timestamp,
        labels=dict(meta.labels) or None,
        owner_references=[
            OwnerReferenceModel(
                api_version=reference.api_version,
                kind=reference.kind,
                name=reference.name,
                uid=reference.uid,
                controller=reference.controller,
                block_owner_deletion=reference.block_owner_deletion,
            )
            for reference in meta.owner_references
        ]
        or None,
    )


def at_from_model(model: AtModel, *, default_namespace: str) -> At:
    return At(
        metadata=_meta_from_model(model.metadata, default_namespace=default_namespace),
        spec=AtSpec(schedule=model.spec.schedule, command=model.spec.command),
        status=AtStatus(phase=model.status.phase),
    )


def at_to_model(at: At) -> AtModel:
    return AtModel(
        api_version=AT_API_VERSION,
        kind=AT_KIND,
        metadata=_meta_to_model(at.metadata),
        spec=AtSpecModel(schedule=at.spec.schedule, command=at.spec.command),
        status=AtStatusModel(phase=at.status.phase),
    )


def _task_phase(value: str | None) -> TaskPhase:
    if value is None:
        return TaskPhase.PENDING
    try:
        return TaskPhase(value)
    except ValueError:
        return TaskPhase.UNKNOWN


def _restart_policy(value: str | None) -> RestartPolicy:
    try:
        return RestartPolicy(value or RestartPolicy.ALWAYS)
    except ValueError:
        return RestartPolicy.ALWAYS


def task_from_pod(model: PodModel, *, default_namespace: str) -> Task:
    if not model.spec.containers:
        raise ValueError(f"Pod {model.metadata.name} has no containers")
    container = model.spec.containers[0]
    status = model.status or PodStatusModel()
    return Task(
        metadata=_meta_from_model(model.metadata, default_namespace=default_namespace),
        spec=TaskSpec(
            container=Container(
                name=container.name,
                image=container.image,
                command=tuple(container.command),
            ),
            restart_policy=_restart_policy(model.spec.restart_policy),
        ),
        status=TaskStatus(
            phase=_task_phase(status.phase),
            reason=status.reason,
            message=status.message,
        ),
    )


def task_to_pod(task: Task) -> PodModel:
    """Render ``task`` for a create request; status is left to the server."""

    container = task.spec.container
    return PodModel(
        api_version="v1",
        kind="Pod",
        metadata=_meta_to_model(task.metadata),
        spec=PodSpecModel(
            containers=[
                ContainerModel(
                    name=container.name,
                    image=container.image,
                    command=list(container.command),
                )
            ],
            restart_policy=task.spec.restart_policy.value,
        ),
    )
