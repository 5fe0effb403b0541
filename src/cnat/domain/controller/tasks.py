"""Deterministic construction of the task derived from an ``At``."""

from __future__ import annotations

from typing import Final

from cnat.domain.model import (
    AT_API_VERSION,
    AT_KIND,
    At,
    Container,
    ObjectKey,
    ObjectMeta,
    OwnerReference,
    RestartPolicy,
    Task,
    TaskSpec,
)

TASK_NAME_SUFFIX: Final[str] = "-pod"
CONTAINER_NAME: Final[str] = "busybox"
CONTAINER_IMAGE: Final[str] = "busybox"


def task_key_for(at: At) -> ObjectKey:
    return ObjectKey(namespace=at.metadata.namespace, name=f"{at.metadata.name}{TASK_NAME_SUFFIX}")


def owner_reference_for(at: At) -> OwnerReference:
    """Controller reference that lets the store cascade deletes to the task."""

    return OwnerReference(
        api_version=AT_API_VERSION,
        kind=AT_KIND,
        name=at.metadata.name,
        uid=at.metadata.uid,
        controller=True,
        block_owner_deletion=True,
    )


def split_command(command: str) -> tuple[str, ...]:
    # single spaces only: "a  b" yields an empty argument, as on the wire
    return tuple(command.split(" "))


def new_task_for(at: At) -> Task:
    """Build the one-shot task for ``at``; equal inputs give equal tasks."""

    key = task_key_for(at)
    return Task(
        metadata=ObjectMeta(
            name=key.name,
            namespace=key.namespace,
            labels={"app": at.metadata.name},
            owner_references=(owner_reference_for(at),),
        ),
        spec=TaskSpec(
            container=Container(
                name=CONTAINER_NAME,
                image=CONTAINER_IMAGE,
                command=split_command(at.spec.command),
            ),
            restart_policy=RestartPolicy.ON_FAILURE,
        ),
    )
