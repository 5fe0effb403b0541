from __future__ import annotations

import argparse
import logging
import sys
import threading
from dataclasses import replace
from datetime import UTC, datetime
from signal import SIGINT, SIGTERM, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from cnat.app import (
    Backend,
    create_at,
    delete_at,
    edit_at,
    list_ats,
    list_tasks,
    open_backend,
    run_controller,
)
from cnat.config import ConfigurationError, configure_logging, get_controller_config
from cnat.domain.errors import NotFoundError
from cnat.domain.schedule import parse_schedule

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

    from cnat.config import ControllerConfig
    from cnat.domain.model import At, Task

log = logging.getLogger(__name__)

COLUMN_SEPARATOR = "   "


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="cnat", description="Manage and run At resources")
    parser.add_argument(
        "--credentials",
        type=str,
        default=None,
        help="TOML file with API server credentials (defaults to $CNAT_CREDENTIALS, "
        "otherwise the local store is used)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List At resources")
    scope = list_parser.add_mutually_exclusive_group()
    scope.add_argument("--namespace", "-n", type=str, help="Namespace to list")
    scope.add_argument(
        "--all-namespaces",
        "-A",
        action="store_true",
        help="List At resources across all namespaces",
    )

    create = subparsers.add_parser("create", help="Create an At resource")
    create.add_argument("name", help="Resource name")
    create.add_argument(
        "--schedule",
        required=True,
        help="UTC time to run at, formatted YYYY-MM-DDThh:mm:ssZ",
    )
    create.add_argument(
        "--command", dest="command_line", required=True, help="Command line to run"
    )
    create.add_argument("--namespace", "-n", type=str, help="Target namespace")

    edit = subparsers.add_parser("edit", help="Change the schedule or command of an At resource")
    edit.add_argument("name", help="Resource name")
    edit.add_argument("--schedule", help="New schedule, formatted YYYY-MM-DDThh:mm:ssZ")
    edit.add_argument("--command", dest="command_line", help="New command line")
    edit.add_argument("--namespace", "-n", type=str, help="Target namespace")

    delete = subparsers.add_parser("delete", help="Delete an At resource and its task")
    delete.add_argument("name", help="Resource name")
    delete.add_argument("--namespace", "-n", type=str, help="Target namespace")

    run = subparsers.add_parser("run", help="Run the controller until interrupted")
    run.add_argument("--workers", type=int, help="Number of reconcile workers")
    run.add_argument(
        "--resync-seconds",
        type=float,
        help="Re-list every At resource at this interval",
    )

    tasks_parser = subparsers.add_parser("tasks", help="List the tasks launched for At resources")
    task_scope = tasks_parser.add_mutually_exclusive_group()
    task_scope.add_argument("--namespace", "-n", type=str, help="Namespace to list")
    task_scope.add_argument(
        "--all-namespaces",
        "-A",
        action="store_true",
        help="List tasks across all namespaces",
    )

    # accept --credentials after the subcommand as well
    for subparser in (list_parser, create, edit, delete, run, tasks_parser):
        subparser.add_argument("--credentials", type=str, default=argparse.SUPPRESS)

    return parser.parse_args(list(argv))


def _validate(args: argparse.Namespace) -> None:
    if args.command == "create":
        parse_schedule(args.schedule)
    elif args.command == "edit":
        if args.schedule is None and args.command_line is None:
            raise ValueError("Nothing to change: pass --schedule and/or --command")
        if args.schedule is not None:
            parse_schedule(args.schedule)
    elif args.command == "run":
        if args.workers is not None and args.workers < 1:
            raise ValueError("--workers must be at least 1")
        if args.resync_seconds is not None and args.resync_seconds <= 0:
            raise ValueError("--resync-seconds must be positive")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def format_age(created: datetime | None, *, now: datetime) -> str:
    """Render an age the way ``kubectl get`` does (``45s``, ``12m``, ``5h``, ``3d``)."""

    if created is None:
        return "<unknown>"
    seconds = max(int((now - created).total_seconds()), 0)
    if seconds < 120:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 180:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 48:
        return f"{hours}h"
    return f"{hours // 24}d"


def _layout(headers: list[str], rows: list[list[str]]) -> str:
    widths = [len(header) for header in headers]
    for row in rows:
        widths = [max(width, len(cell)) for width, cell in zip(widths, row, strict=True)]
    lines = [
        COLUMN_SEPARATOR.join(cell.ljust(width) for cell, width in zip(line, widths, strict=True))
        .rstrip()
        for line in [headers, *rows]
    ]
    return "\n".join(lines)


def render_table(
    ats: Sequence[At],
    *,
    all_namespaces: bool = False,
    now_provider: Callable[[], datetime] = _utcnow,
) -> str:
    now = now_provider()
    headers = ["NAME", "SCHEDULE", "COMMAND", "PHASE", "AGE"]
    rows = [
        [
            at.metadata.name,
            at.spec.schedule,
            at.spec.command,
            at.status.phase,
            format_age(at.metadata.creation_timestamp, now=now),
        ]
        for at in ats
    ]
    if all_namespaces:
        headers.insert(0, "NAMESPACE")
        for row, at in zip(rows, ats, strict=True):
            row.insert(0, at.metadata.namespace)
    return _layout(headers, rows)


def render_task_table(
    tasks: Sequence[Task],
    *,
    all_namespaces: bool = False,
    now_provider: Callable[[], datetime] = _utcnow,
) -> str:
    now = now_provider()
    headers = ["NAME", "AT", "PHASE", "REASON", "AGE"]
    rows: list[list[str]] = []
    for task in tasks:
        owner = task.metadata.controller_owner()
        rows.append(
            [
                task.metadata.name,
                owner.name if owner is not None else "<none>",
                task.status.phase,
                task.status.reason or "",
                format_age(task.metadata.creation_timestamp, now=now),
            ]
        )
    if all_namespaces:
        headers.insert(0, "NAMESPACE")
        for row, task in zip(rows, tasks, strict=True):
            row.insert(0, task.metadata.namespace)
    return _layout(headers, rows)


def _controller_config(args: argparse.Namespace) -> ControllerConfig:
    config = get_controller_config()
    if args.workers is not None:
        config = replace(config, workers=args.workers)
    if args.resync_seconds is not None:
        config = replace(config, resync_seconds=args.resync_seconds)
    return config


def _run(
    args: argparse.Namespace,
    backend: Backend,
    stop_event: threading.Event,
    controller_config: ControllerConfig | None,
) -> None:
    if args.command == "list":
        ats = list_ats(
            backend=backend,
            namespace=args.namespace,
            all_namespaces=args.all_namespaces,
        )
        if not ats:
            print("No At resources found")  # noqa: T201
            return
        print(render_table(ats, all_namespaces=args.all_namespaces))  # noqa: T201
    elif args.command == "tasks":
        tasks = list_tasks(
            backend=backend,
            namespace=args.namespace,
            all_namespaces=args.all_namespaces,
        )
        if not tasks:
            print("No tasks found")  # noqa: T201
            return
        print(render_task_table(tasks, all_namespaces=args.all_namespaces))  # noqa: T201
    elif args.command == "create":
        at = create_at(
            args.name,
            schedule=args.schedule,
            command=args.command_line,
            backend=backend,
            namespace=args.namespace,
        )
        print(f"at/{at.metadata.name} created")  # noqa: T201
    elif args.command == "edit":
        at = edit_at(
            args.name,
            backend=backend,
            schedule=args.schedule,
            command=args.command_line,
            namespace=args.namespace,
        )
        print(f"at/{at.metadata.name} edited")  # noqa: T201
    elif args.command == "delete":
        key = delete_at(args.name, backend=backend, namespace=args.namespace)
        print(f"at/{key.name} deleted")  # noqa: T201
    elif args.command == "run":
        run_controller(stop_event, backend=backend, config=controller_config)
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None, *, stop_event: threading.Event | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    effective_stop = stop_event or threading.Event()
    try:
        parsed_args = _parse_args(args_list)
        _validate(parsed_args)
        controller_config = _controller_config(parsed_args) if parsed_args.command == "run" else None
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)

    if parsed_args.command == "run" and stop_event is None:
        _install_signal_handlers(effective_stop)

    try:
        backend = open_backend(credentials=parsed_args.credentials)
        try:
            _run(parsed_args, backend, effective_stop, controller_config)
        finally:
            backend.close()
    except ConfigurationError:
        log.exception("Configuration error")
        sys.exit(2)
    except NotFoundError as exc:
        log.error("%s", exc)  # noqa: TRY400
        sys.exit(1)
    except Exception:
        log.exception("Fatal error running %s", parsed_args.command)
        sys.exit(1)


def _install_signal_handlers(stop_event: threading.Event) -> None:
    def handler(signal_received: int, _frame: FrameType | None) -> None:
        log.info("Received signal %d, shutting down", signal_received)
        stop_event.set()

    signal(SIGINT, handler)
    signal(SIGTERM, handler)


if __name__ == "__main__":
    main()
