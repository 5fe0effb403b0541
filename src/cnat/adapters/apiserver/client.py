"""HTTP resource client for a Kubernetes-style API server."""

from __future__ import annotations

import asyncio
import threading
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from cnat.adapters.http_resilience import ResilientClient
from cnat.domain.errors import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    ReconcileTimeoutError,
    TransientClientError,
)
from cnat.domain.model import ResourceKind

from .schema import AtListModel, AtModel, PodModel, StatusModel
from .translator import RESOURCE_TYPES, at_from_model, at_to_model, task_from_pod, task_to_pod

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from cnat.config.apiserver import ApiServerConfig
    from cnat.config.http_resilience import ResilienceConfig
    from cnat.domain.model import At, AtSpec, ObjectKey, Task, TaskStatus

log = getLogger(__name__)

ALREADY_EXISTS_REASON = "AlreadyExists"


def _error_status(response: httpx.Response) -> StatusModel:
    try:
        return StatusModel.model_validate(response.json())
    except (ValueError, ValidationError):
        return StatusModel(code=response.status_code, message=response.text[:200] or None)


def _raise_for_status(response: httpx.Response, kind: ResourceKind, key: ObjectKey | None) -> None:
    """Map a non-2xx response onto the resource error taxonomy."""

    if response.is_success:
        return
    status = _error_status(response)
    detail = status.message or response.reason_phrase
    if response.status_code == httpx.codes.NOT_FOUND and key is not None:
        raise NotFoundError(kind, key)
    if response.status_code == httpx.codes.CONFLICT:
        if status.reason == ALREADY_EXISTS_REASON and key is not None:
            raise AlreadyExistsError(kind, key)
        raise ConflictError(f"{kind} {key}: {detail}")
    raise TransientClientError(
        f"{response.request.method} {response.request.url.path} failed "
        f"with {response.status_code}: {detail}"
    )


class ApiServerResourceClient:
    """Resource store operations over the API server's REST interface.

    Every method is synchronous and may be called from any worker thread. The
    requests themselves run on one event loop owned by a background thread, so
    all callers share one connection pool and one rate limit. ``close()`` stops
    the loop; the next call starts a new one.
    """

    def __init__(
        self,
        config: ApiServerConfig,
        *,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: threading.Thread | None = None
        # only touched from the loop thread
        self._http: ResilientClient | None = None

    def __enter__(self) -> ApiServerResourceClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def namespace(self) -> str:
        return self._config.namespace

    def close(self) -> None:
        with self._lock:
            loop, thread = self._loop, self._loop_thread
            self._loop = self._loop_thread = None
        if loop is None or thread is None:
            return
        asyncio.run_coroutine_threadsafe(self._aclose(), loop).result()
        loop.call_soon_threadsafe(loop.stop)
        thread.join()
        loop.close()

    def get_at(self, key: ObjectKey, *, timeout: float | None = None) -> At:
        path = RESOURCE_TYPES[ResourceKind.AT].item_path(key)
        payload = self._call("GET", path, ResourceKind.AT, key, timeout=timeout)
        return self._decode_at(payload)

    def list_ats(self, namespace: str | None = None, *, timeout: float | None = None) -> list[At]:
        path = RESOURCE_TYPES[ResourceKind.AT].collection_path(namespace)
        payload = self._call("GET", path, ResourceKind.AT, None, timeout=timeout)
        try:
            listing = AtListModel.model_validate(payload)
        except ValidationError as exc:
            raise TransientClientError(f"Malformed At list: {exc}") from exc
        return [
            at_from_model(item, default_namespace=namespace or self.namespace)
            for item in listing.items
        ]

    def update_at_status(self, at: At, *, timeout: float | None = None) -> At:
        path = RESOURCE_TYPES[ResourceKind.AT].status_path(at.key)
        body = at_to_model(at).model_dump(mode="json", by_alias=True, exclude_none=True)
        payload = self._call("PUT", path, ResourceKind.AT, at.key, json=body, timeout=timeout)
        return self._decode_at(payload)

    def get_task(self, key: ObjectKey, *, timeout: float | None = None) -> Task:
        path = RESOURCE_TYPES[ResourceKind.TASK].item_path(key)
        payload = self._call("GET", path, ResourceKind.TASK, key, timeout=timeout)
        return self._decode_task(payload)

    def create_task(self, task: Task, *, timeout: float | None = None) -> Task:
        path = RESOURCE_TYPES[ResourceKind.TASK].collection_path(task.metadata.namespace)
        body = task_to_pod(task).model_dump(mode="json", by_alias=True, exclude_none=True)
        payload = self._call("POST", path, ResourceKind.TASK, task.key, json=body, timeout=timeout)
        return self._decode_task(payload)

    def create_at(self, at: At) -> At:
        path = RESOURCE_TYPES[ResourceKind.AT].collection_path(at.metadata.namespace)
        body = at_to_model(at).model_dump(mode="json", by_alias=True, exclude_none=True)
        body.pop("status", None)
        payload = self._call("POST", path, ResourceKind.AT, at.key, json=body)
        return self._decode_at(payload)

    def update_at_spec(self, key: ObjectKey, spec: AtSpec) -> At:
        current = self.get_at(key)
        body = at_to_model(current).model_dump(mode="json", by_alias=True, exclude_none=True)
        body["spec"] = {"schedule": spec.schedule, "command": spec.command}
        path = RESOURCE_TYPES[ResourceKind.AT].item_path(key)
        payload = self._call("PUT", path, ResourceKind.AT, key, json=body)
        return self._decode_at(payload)

    def delete_at(self, key: ObjectKey) -> None:
        # owned pods are removed by the server's garbage collector
        path = RESOURCE_TYPES[ResourceKind.AT].item_path(key)
        self._call(
            "DELETE",
            path,
            ResourceKind.AT,
            key,
            json={"kind": "DeleteOptions", "apiVersion": "v1", "propagationPolicy": "Foreground"},
        )

    def list_tasks(self, namespace: str | None = None) -> list[Task]:
        path = RESOURCE_TYPES[ResourceKind.TASK].collection_path(namespace)
        payload = self._call("GET", path, ResourceKind.TASK, None)
        items = payload.get("items") or []
        return [self._decode_task(item) for item in items]

    def update_task_status(self, key: ObjectKey, status: TaskStatus) -> Task:
        current = self.get_task(key)
        body = task_to_pod(current).model_dump(mode="json", by_alias=True, exclude_none=True)
        body["status"] = {
            "phase": status.phase.value,
            "reason": status.reason,
            "message": status.message,
        }
        path = RESOURCE_TYPES[ResourceKind.TASK].status_path(key)
        payload = self._call("PUT", path, ResourceKind.TASK, key, json=body)
        return self._decode_task(payload)

    def _decode_at(self, payload: dict[str, Any]) -> At:
        try:
            model = AtModel.model_validate(payload)
        except ValidationError as exc:
            raise TransientClientError(f"Malformed At payload: {exc}") from exc
        return at_from_model(model, default_namespace=self.namespace)

    def _decode_task(self, payload: dict[str, Any]) -> Task:
        try:
            return task_from_pod(PodModel.model_validate(payload), default_namespace=self.namespace)
        except (ValidationError, ValueError) as exc:
            raise TransientClientError(f"Malformed Pod payload: {exc}") from exc

    def _event_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None:
                loop = asyncio.new_event_loop()
                thread = threading.Thread(
                    target=loop.run_forever, name="cnat-apiserver", daemon=True
                )
                thread.start()
                self._loop, self._loop_thread = loop, thread
            return self._loop

    def _call(
        self,
        method: str,
        path: str,
        kind: ResourceKind,
        key: ObjectKey | None,
        *,
        json: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        future = asyncio.run_coroutine_threadsafe(
            self._request(method, path, kind, key, json=json, timeout=timeout),
            self._event_loop(),
        )
        return future.result()

    def _client(self) -> ResilientClient:
        if self._http is None:
            self._http = self._client_factory(self._resilience)
        return self._http

    async def _aclose(self) -> None:
        http, self._http = self._http, None
        if http is not None:
            await http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        kind: ResourceKind,
        key: ObjectKey | None,
        *,
        json: dict[str, Any] | None,
        timeout: float | None,
    ) -> dict[str, Any]:
        log.debug("%s %s", method, path)
        client = self._client()
        try:
            # bounds retries and backoff as well, not only each attempt
            async with asyncio.timeout(timeout):
                if timeout is None:
                    response = await client.request(method, path, json=json)
                else:
                    response = await client.request(method, path, json=json, timeout=timeout)
        except TimeoutError as exc:
            raise ReconcileTimeoutError(
                f"{method} {path} did not finish within {timeout:.3f}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise TransientClientError(f"{method} {path} failed: {exc}") from exc

        _raise_for_status(response, kind, key)
        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransientClientError(f"{method} {path} returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise TransientClientError(f"{method} {path} returned an unexpected payload")
        return payload
