from __future__ import annotations

from cnat.domain.controller import new_task_for, owner_reference_for, task_key_for
from cnat.domain.model import ObjectKey, RestartPolicy, TaskPhase
from tests.helpers.resources import make_at


def test_new_task_is_derived_deterministically() -> None:
    at = make_at("example", namespace="team-a", command="echo hello world", uid="uid-1")

    task = new_task_for(at)

    assert task == new_task_for(at)
    assert task.key == ObjectKey(namespace="team-a", name="example-pod")
    assert task.metadata.labels == {"app": "example"}
    assert task.spec.container.name == "busybox"
    assert task.spec.container.image == "busybox"
    assert task.spec.container.command == ("echo", "hello", "world")
    assert task.spec.restart_policy is RestartPolicy.ON_FAILURE
    assert task.status.phase is TaskPhase.PENDING


def test_owner_reference_marks_the_at_as_controller() -> None:
    at = make_at("example", uid="uid-1")

    reference = owner_reference_for(at)

    assert reference.api_version == "cnat.programming-kubernetes.info/v1alpha1"
    assert reference.kind == "At"
    assert reference.name == "example"
    assert reference.uid == "uid-1"
    assert reference.controller is True
    assert reference.block_owner_deletion is True
    assert new_task_for(at).metadata.controller_owner() == reference


def test_command_is_split_on_single_spaces() -> None:
    at = make_at(command="sh -c  true")

    assert new_task_for(at).spec.container.command == ("sh", "-c", "", "true")


def test_task_key_for_uses_the_owner_namespace() -> None:
    at = make_at("nightly", namespace="ops")

    assert task_key_for(at) == ObjectKey(namespace="ops", name="nightly-pod")
