"""Application orchestration entry points."""

from __future__ import annotations

from dataclasses import dataclass, replace
from logging import getLogger
from typing import TYPE_CHECKING, Final

from cnat.adapters.apiserver import ApiServerResourceClient
from cnat.adapters.local_runner import LocalTaskRunner
from cnat.adapters.sqlalchemy import SqlAlchemyResourceStore, is_started, startup
from cnat.config import get_controller_config, load_api_server_config, resolve_credentials_path
from cnat.domain.controller import Controller
from cnat.domain.model import DEFAULT_NAMESPACE, At, AtSpec, ObjectKey, ObjectMeta
from cnat.domain.schedule import parse_schedule

if TYPE_CHECKING:
    import threading
    from pathlib import Path

    from cnat.config import ControllerConfig
    from cnat.domain.model import Task
    from cnat.domain.ports import ChangeNotifier, ResourceStore

log = getLogger(__name__)

# without a change notifier, re-listing is the only way to notice new work
REMOTE_RESYNC_SECONDS: Final[float] = 30.0


@dataclass(frozen=True, slots=True)
class Backend:
    store: ResourceStore
    notifier: ChangeNotifier | None
    namespace: str

    @property
    def is_local(self) -> bool:
        return self.notifier is not None

    def close(self) -> None:
        if isinstance(self.store, ApiServerResourceClient):
            self.store.close()


def open_backend(
    *,
    credentials: str | Path | None = None,
    database_uri: str | None = None,
) -> Backend:
    """Connect to the API server named by the credentials, else the local SQL store."""

    credentials_path = resolve_credentials_path(credentials)
    if credentials_path is not None:
        api_config = load_api_server_config(credentials_path)
        log.info("Using API server %s", api_config.server)
        return Backend(
            store=ApiServerResourceClient(api_config),
            notifier=None,
            namespace=api_config.namespace,
        )

    if not is_started() or database_uri is not None:
        startup(database_uri=database_uri, force=True)
    store = SqlAlchemyResourceStore()
    return Backend(store=store, notifier=store, namespace=DEFAULT_NAMESPACE)


def run_controller(
    stop_event: threading.Event,
    *,
    backend: Backend | None = None,
    config: ControllerConfig | None = None,
    credentials: str | Path | None = None,
) -> None:
    """Run the controller (and the local task runner for a local store) until stopped."""

    effective_backend = backend or open_backend(credentials=credentials)
    effective_config = config or get_controller_config()
    if not effective_backend.is_local and effective_config.resync_seconds is None:
        effective_config = replace(effective_config, resync_seconds=REMOTE_RESYNC_SECONDS)

    controller = Controller(
        effective_backend.store,
        effective_config,
        notifier=effective_backend.notifier,
    )
    runner: LocalTaskRunner | None = None
    if effective_backend.notifier is not None:
        runner = LocalTaskRunner(
            effective_backend.store,
            effective_backend.notifier,
            max_attempts=effective_config.task_max_attempts,
        )
        runner.start()

    log.info(
        "Starting controller: workers=%s, resync=%s, local_runner=%s",
        effective_config.workers,
        effective_config.resync_seconds,
        runner is not None,
    )
    try:
        controller.run(stop_event)
    finally:
        if runner is not None:
            runner.stop()
    log.info("Controller stopped")


def list_ats(
    *,
    backend: Backend,
    namespace: str | None = None,
    all_namespaces: bool = False,
) -> list[At]:
    scope = None if all_namespaces else (namespace or backend.namespace)
    return backend.store.list_ats(scope)


def list_tasks(
    *,
    backend: Backend,
    namespace: str | None = None,
    all_namespaces: bool = False,
) -> list[Task]:
    scope = None if all_namespaces else (namespace or backend.namespace)
    return backend.store.list_tasks(scope)


def create_at(
    name: str,
    *,
    schedule: str,
    command: str,
    backend: Backend,
    namespace: str | None = None,
) -> At:
    parse_schedule(schedule)
    at = At(
        metadata=ObjectMeta(name=name, namespace=namespace or backend.namespace),
        spec=AtSpec(schedule=schedule, command=command),
    )
    return backend.store.create_at(at)


def edit_at(
    name: str,
    *,
    backend: Backend,
    schedule: str | None = None,
    command: str | None = None,
    namespace: str | None = None,
) -> At:
    if schedule is None and command is None:
        raise ValueError("Nothing to change: pass --schedule and/or --command")
    if schedule is not None:
        parse_schedule(schedule)
    key = ObjectKey(namespace=namespace or backend.namespace, name=name)
    current = backend.store.get_at(key)
    spec = AtSpec(
        schedule=current.spec.schedule if schedule is None else schedule,
        command=current.spec.command if command is None else command,
    )
    return backend.store.update_at_spec(key, spec)


def delete_at(name: str, *, backend: Backend, namespace: str | None = None) -> ObjectKey:
    key = ObjectKey(namespace=namespace or backend.namespace, name=name)
    backend.store.delete_at(key)
    return key
