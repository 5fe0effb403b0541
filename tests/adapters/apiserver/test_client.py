from __future__ import annotations

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

import httpx
import pytest

from cnat.adapters.apiserver import ApiServerResourceClient
from cnat.adapters.http_resilience import RateLimit, ResilientClient, RetryPolicy
from cnat.config.apiserver import ApiServerConfig
from cnat.domain.controller import new_task_for
from cnat.domain.errors import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    ReconcileTimeoutError,
    TransientClientError,
)
from cnat.domain.model import AtSpec, AtStatus, ObjectKey, TaskPhase, TaskStatus
from tests.helpers.apiserver import (
    AT_PREFIX,
    FakeApiServer,
    at_payload,
    pod_payload,
    status_payload,
)
from tests.helpers.resources import make_at

if TYPE_CHECKING:
    from cnat.config.http_resilience import ResilienceConfig

KEY = ObjectKey(namespace="team-a", name="example")
AT_PATH = f"{AT_PREFIX}/namespaces/team-a/ats/example"
PODS_PATH = "/api/v1/namespaces/team-a/pods"


def test_get_at_sends_credentials_and_decodes(
    api_client: ApiServerResourceClient, api_server: FakeApiServer
) -> None:
    api_server.respond("GET", AT_PATH, body=at_payload())

    at = api_client.get_at(KEY)

    assert at.key == KEY
    assert at.status.phase == "PENDING"
    request = api_server.requests[0]
    assert request.url.host == "cluster.example"
    assert request.headers["Authorization"] == "Bearer secret"
    assert request.headers["Accept"] == "application/json"


def test_get_missing_at_raises_not_found(api_client: ApiServerResourceClient) -> None:
    with pytest.raises(NotFoundError):
        api_client.get_at(KEY)


def test_list_ats_across_namespaces(
    api_client: ApiServerResourceClient, api_server: FakeApiServer
) -> None:
    api_server.respond(
        "GET",
        f"{AT_PREFIX}/ats",
        body={"kind": "AtList", "items": [at_payload("a"), at_payload("b", namespace="other")]},
    )

    ats = api_client.list_ats(None)

    assert [str(at.key) for at in ats] == ["team-a/a", "other/b"]


def test_list_ats_in_a_namespace_fills_missing_namespaces(
    api_client: ApiServerResourceClient, api_server: FakeApiServer
) -> None:
    api_server.respond(
        "GET", f"{AT_PREFIX}/namespaces/ops/ats", body={"items": [at_payload(namespace=None)]}
    )

    (at,) = api_client.list_ats("ops")

    assert at.metadata.namespace == "ops"


def test_status_update_puts_the_observed_version(
    api_client: ApiServerResourceClient, api_server: FakeApiServer
) -> None:
    api_server.respond("PUT", f"{AT_PATH}/status", body=at_payload(phase="RUNNING", resource_version="8"))
    at = make_at(namespace="team-a", resource_version="7", phase="RUNNING")

    updated = api_client.update_at_status(at, timeout=2.5)

    body = api_server.body()
    assert body["metadata"]["resourceVersion"] == "7"
    assert body["status"] == {"phase": "RUNNING"}
    assert updated.metadata.resource_version == "8"
    assert api_server.requests[0].extensions["timeout"]["read"] == 2.5


def test_status_update_conflict(
    api_client: ApiServerResourceClient, api_server: FakeApiServer
) -> None:
    api_server.respond(
        "PUT",
        f"{AT_PATH}/status",
        status=409,
        body=status_payload(409, "Conflict", "the object has been modified"),
    )

    with pytest.raises(ConflictError, match="has been modified"):
        api_client.update_at_status(make_at(namespace="team-a", phase="RUNNING"))


def test_create_task_posts_a_pod(
    api_client: ApiServerResourceClient, api_server: FakeApiServer
) -> None:
    api_server.respond("POST", PODS_PATH, status=201, body=pod_payload(phase="Pending"))
    task = new_task_for(make_at(namespace="team-a", uid="uid-example"))

    created = api_client.create_task(task)

    body = api_server.body()
    assert body["kind"] == "Pod"
    assert body["metadata"]["ownerReferences"][0]["uid"] == "uid-example"
    assert created.status.phase is TaskPhase.PENDING
    assert created.key == task.key


def test_create_existing_task_raises_already_exists(
    api_client: ApiServerResourceClient, api_server: FakeApiServer
) -> None:
    api_server.respond("POST", PODS_PATH, status=409, body=status_payload(409, "AlreadyExists"))

    with pytest.raises(AlreadyExistsError):
        api_client.create_task(new_task_for(make_at(namespace="team-a")))


def test_server_errors_are_transient(
    api_client: ApiServerResourceClient, api_server: FakeApiServer
) -> None:
    api_server.respond("GET", AT_PATH, status=500, body=status_payload(500, "InternalError", "etcd"))

    with pytest.raises(TransientClientError, match="500"):
        api_client.get_at(KEY)


def test_malformed_payloads_are_transient(
    api_client: ApiServerResourceClient, api_server: FakeApiServer
) -> None:
    api_server.respond("GET", AT_PATH, body={"spec": {}})
    api_server.respond("GET", f"{PODS_PATH}/example-pod", body=pod_payload() | {"spec": {"containers": []}})

    with pytest.raises(TransientClientError):
        api_client.get_at(KEY)
    with pytest.raises(TransientClientError):
        api_client.get_task(ObjectKey(namespace="team-a", name="example-pod"))


def test_connection_errors_are_transient(api_config: ApiServerConfig) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = ApiServerResourceClient(
        api_config,
        client_factory=lambda resilience: ResilientClient(
            replace(resilience, retry=RetryPolicy(total=0)),
            transport=httpx.MockTransport(refuse),
        ),
    )

    with client, pytest.raises(TransientClientError, match="connection refused"):
        client.get_at(KEY)


def test_create_at_omits_status(
    api_client: ApiServerResourceClient, api_server: FakeApiServer
) -> None:
    api_server.respond("POST", f"{AT_PREFIX}/namespaces/team-a/ats", status=201, body=at_payload(phase=None))

    created = api_client.create_at(make_at(namespace="team-a", uid=""))

    assert "status" not in api_server.body()
    assert created.status == AtStatus()


def test_update_spec_replaces_the_spec_of_the_current_object(
    api_client: ApiServerResourceClient, api_server: FakeApiServer
) -> None:
    api_server.respond("GET", AT_PATH, body=at_payload())
    api_server.respond("PUT", AT_PATH, body=at_payload(resource_version="8"))

    api_client.update_at_spec(KEY, AtSpec(schedule="2030-01-01T00:00:00Z", command="date"))

    body = api_server.body()
    assert body["spec"] == {"schedule": "2030-01-01T00:00:00Z", "command": "date"}
    assert body["metadata"]["resourceVersion"] == "7"


def test_delete_at_uses_foreground_propagation(
    api_client: ApiServerResourceClient, api_server: FakeApiServer
) -> None:
    api_server.respond("DELETE", AT_PATH, body=status_payload(200, ""))

    api_client.delete_at(KEY)

    assert api_server.body()["propagationPolicy"] == "Foreground"


def test_update_task_status(api_client: ApiServerResourceClient, api_server: FakeApiServer) -> None:
    pod_path = f"{PODS_PATH}/example-pod"
    api_server.respond("GET", pod_path, body=pod_payload(phase="Running"))
    api_server.respond("PUT", f"{pod_path}/status", body=pod_payload(phase="Succeeded"))

    updated = api_client.update_task_status(
        ObjectKey(namespace="team-a", name="example-pod"), TaskStatus(phase=TaskPhase.SUCCEEDED)
    )

    assert api_server.body()["status"]["phase"] == "Succeeded"
    assert updated.status.phase is TaskPhase.SUCCEEDED


@dataclass
class FlakyServer:
    """Answers with ``statuses`` in order (the last one repeats), each after ``latency``."""

    statuses: list[int]
    latency: float = 0.0
    calls: int = 0

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        await asyncio.sleep(self.latency)
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if status == httpx.codes.OK:
            return httpx.Response(status, json=at_payload())
        return httpx.Response(status, json=status_payload(status, "ServiceUnavailable"))


def _retrying_client(config: ApiServerConfig, server: FlakyServer) -> ApiServerResourceClient:
    return ApiServerResourceClient(
        config,
        client_factory=lambda resilience: ResilientClient(
            replace(resilience, retry=RetryPolicy(total=3, backoff_factor=0.0)),
            transport=httpx.MockTransport(server.handler),
        ),
    )


def test_retries_within_the_deadline_succeed(api_config: ApiServerConfig) -> None:
    server = FlakyServer([503, 503, 200])

    with _retrying_client(api_config, server) as client:
        at = client.get_at(KEY, timeout=5.0)

    assert at.key == KEY
    assert server.calls == 3


def test_deadline_covers_retries_not_only_single_attempts(api_config: ApiServerConfig) -> None:
    server = FlakyServer([503, 503, 200], latency=0.15)
    started = time.monotonic()

    with _retrying_client(api_config, server) as client, pytest.raises(ReconcileTimeoutError):
        client.get_at(KEY, timeout=0.2)

    assert time.monotonic() - started < 1.0
    assert server.calls < 3


def test_calls_share_one_http_client_and_its_rate_limit(
    api_config: ApiServerConfig, api_server: FakeApiServer
) -> None:
    api_server.respond("GET", AT_PATH, body=at_payload())
    created: list[ResilientClient] = []

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(
            replace(
                resilience,
                retry=RetryPolicy(total=0),
                ratelimit=RateLimit(max_calls=1, per_seconds=0.2),
            ),
            transport=httpx.MockTransport(api_server.handler),
        )
        created.append(client)
        return client

    started = time.monotonic()
    with ApiServerResourceClient(api_config, client_factory=factory) as client:
        for _ in range(3):
            client.get_at(KEY)
    elapsed = time.monotonic() - started

    assert len(created) == 1
    assert len(api_server.requests) == 3
    assert elapsed >= 0.3


def test_client_can_be_used_again_after_close(
    api_client: ApiServerResourceClient, api_server: FakeApiServer
) -> None:
    api_server.respond("GET", AT_PATH, body=at_payload())

    api_client.get_at(KEY)
    api_client.close()
    api_client.close()

    assert api_client.get_at(KEY).key == KEY


def test_worker_threads_share_the_client(
    api_client: ApiServerResourceClient, api_server: FakeApiServer
) -> None:
    api_server.respond("GET", AT_PATH, body=at_payload())

    with ThreadPoolExecutor(max_workers=4) as pool:
        keys = list(pool.map(lambda _: api_client.get_at(KEY).key, range(8)))

    assert keys == [KEY] * 8
    assert len(api_server.requests) == 8
