"""Shared logging helpers for cnat."""

from __future__ import annotations

import logging
import os


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger once with sensible defaults.

    Parameters mirror ``logging.basicConfig`` with a simplified contract: the level
    defaults to ``CNAT_LOG_LEVEL`` (or INFO) and the format is terse enough for CLI
    output. Pass ``force=True`` to reconfigure during tests or specialised entry points.
    """

    if level is None:
        name = os.getenv("CNAT_LOG_LEVEL", "INFO").strip().upper()
        resolved = logging.getLevelName(name)
        level = resolved if isinstance(resolved, int) else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(threadName)s] [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
