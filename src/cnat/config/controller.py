"""Controller tuning loaded from the environment."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, env_int
from .errors import ConfigurationError

DEFAULT_WORKERS = 1
DEFAULT_BACKOFF_BASE_SECONDS = 1.0
DEFAULT_BACKOFF_MAX_SECONDS = 300.0
DEFAULT_RECONCILE_TIMEOUT_SECONDS = 30.0
DEFAULT_TASK_MAX_ATTEMPTS = 3


@dataclass(frozen=True, slots=True)
class ControllerConfig:
    """Knobs for the work queue, dispatcher and local task runner.

    ``max_retries`` of ``None`` keeps retrying failing keys forever; ``resync_seconds``
    of ``None`` disables periodic re-listing.
    """

    workers: int = DEFAULT_WORKERS
    backoff_base_seconds: float = DEFAULT_BACKOFF_BASE_SECONDS
    backoff_max_seconds: float = DEFAULT_BACKOFF_MAX_SECONDS
    reconcile_timeout_seconds: float | None = DEFAULT_RECONCILE_TIMEOUT_SECONDS
    conflict_requeue_seconds: float = 0.0
    max_retries: int | None = None
    resync_seconds: float | None = None
    task_max_attempts: int = DEFAULT_TASK_MAX_ATTEMPTS

    def __post_init__(self) -> None:
        if self.workers < 1:
            raise ConfigurationError(f"workers must be >= 1, got {self.workers}")
        if self.backoff_base_seconds <= 0:
            raise ConfigurationError("backoff base must be positive")
        if self.backoff_max_seconds < self.backoff_base_seconds:
            raise ConfigurationError("backoff max must not be smaller than the base")
        if self.resync_seconds is not None and self.resync_seconds <= 0:
            raise ConfigurationError("resync period must be positive")
        if self.task_max_attempts < 1:
            raise ConfigurationError("task max attempts must be >= 1")


def get_controller_config() -> ControllerConfig:
    workers = env_int("CNAT_WORKERS", DEFAULT_WORKERS, minimum=1)
    base = env_float("CNAT_BACKOFF_BASE_SECONDS", DEFAULT_BACKOFF_BASE_SECONDS)
    maximum = env_float("CNAT_BACKOFF_MAX_SECONDS", DEFAULT_BACKOFF_MAX_SECONDS)
    attempts = env_int("CNAT_TASK_MAX_ATTEMPTS", DEFAULT_TASK_MAX_ATTEMPTS, minimum=1)
    return ControllerConfig(
        workers=workers,
        backoff_base_seconds=base,
        backoff_max_seconds=maximum,
        # zero disables the per-reconcile deadline
        reconcile_timeout_seconds=env_float(
            "CNAT_RECONCILE_TIMEOUT_SECONDS", DEFAULT_RECONCILE_TIMEOUT_SECONDS, minimum=0.0
        )
        or None,
        conflict_requeue_seconds=env_float("CNAT_CONFLICT_REQUEUE_SECONDS", 0.0, minimum=0.0),
        max_retries=env_int("CNAT_MAX_RETRIES", None, minimum=0),
        resync_seconds=env_float("CNAT_RESYNC_SECONDS", None),
        task_max_attempts=attempts,
    )
