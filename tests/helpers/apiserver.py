"""Payload builders and a scripted fake for API server tests."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import httpx

ApiPayload = dict[str, Any]

AT_PREFIX = "/apis/cnat.programming-kubernetes.info/v1alpha1"


def at_payload(
    name: str = "example",
    *,
    namespace: str | None = "team-a",
    phase: str | None = "PENDING",
    resource_version: str = "7",
) -> ApiPayload:
    metadata: ApiPayload = {
        "name": name,
        "uid": f"uid-{name}",
        "resourceVersion": resource_version,
        "creationTimestamp": "2026-10-19T11:00:00Z",
    }
    if namespace is not None:
        metadata["namespace"] = namespace
    payload: ApiPayload = {
        "apiVersion": "cnat.programming-kubernetes.info/v1alpha1",
        "kind": "At",
        "metadata": metadata,
        "spec": {"schedule": "2026-10-19T12:00:00Z", "command": "echo hello"},
    }
    if phase is not None:
        payload["status"] = {"phase": phase}
    return payload


def pod_payload(
    name: str = "example-pod",
    *,
    phase: str | None = "Running",
    restart_policy: str | None = "OnFailure",
) -> ApiPayload:
    spec: ApiPayload = {
        "containers": [{"name": "busybox", "image": "busybox", "command": ["echo", "hello"]}]
    }
    if restart_policy is not None:
        spec["restartPolicy"] = restart_policy
    payload: ApiPayload = {
        "metadata": {
            "name": name,
            "namespace": "team-a",
            "uid": f"uid-{name}",
            "resourceVersion": "3",
            "ownerReferences": [
                {
                    "apiVersion": "cnat.programming-kubernetes.info/v1alpha1",
                    "kind": "At",
                    "name": "example",
                    "uid": "uid-example",
                    "controller": True,
                    "blockOwnerDeletion": True,
                }
            ],
        },
        "spec": spec,
    }
    if phase is not None:
        payload["status"] = {"phase": phase}
    return payload


def status_payload(code: int, reason: str, message: str = "") -> ApiPayload:
    return {
        "kind": "Status",
        "apiVersion": "v1",
        "status": "Failure",
        "message": message,
        "reason": reason,
        "code": code,
    }


@dataclass
class FakeApiServer:
    """Scripted responses keyed by ``(method, path)``; records every request."""

    routes: dict[tuple[str, str], tuple[int, object]] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def respond(self, method: str, path: str, status: int = 200, body: object = None) -> None:
        self.routes[(method, path)] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json=status_payload(404, "NotFound"))
        status, body = route
        return httpx.Response(status, json=body)

    def body(self, index: int = -1) -> ApiPayload:
        return json.loads(self.requests[index].content)
