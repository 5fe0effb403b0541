"""API server connection settings loaded from a credentials file."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig

CREDENTIALS_ENV_VAR: Final[str] = "CNAT_CREDENTIALS"
DEFAULT_NAMESPACE: Final[str] = "default"
DEFAULT_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_REQUESTS_PER_SECOND: Final[int] = 50


@dataclass(frozen=True, slots=True)
class ApiServerConfig:
    """Where the API server lives and how to authenticate against it."""

    server: str
    token: str | None = None
    namespace: str = DEFAULT_NAMESPACE
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    verify: bool | str = True
    requests_per_second: int = DEFAULT_REQUESTS_PER_SECOND

    @property
    def resilience(self) -> ResilienceConfig:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return ResilienceConfig(
            name="apiserver",
            base_url=self.server.rstrip("/"),
            timeout_seconds=self.timeout_seconds,
            ratelimit=RateLimit(max_calls=self.requests_per_second, per_seconds=1.0),
            default_headers=headers,
            verify=self.verify,
        )


def resolve_credentials_path(explicit: str | Path | None = None) -> Path | None:
    """Return the credentials file to use, or ``None`` for the local store.

    An explicit path wins over ``CNAT_CREDENTIALS``. Either one must point to an
    existing file.
    """

    candidate = explicit if explicit is not None else os.getenv(CREDENTIALS_ENV_VAR)
    if candidate is None or not str(candidate).strip():
        return None
    path = Path(candidate).expanduser()
    if not path.is_file():
        raise ConfigurationError(f"Credentials file not found: {path}")
    return path


def load_api_server_config(path: Path) -> ApiServerConfig:
    """Parse a TOML credentials file.

    Expected keys: ``server`` (required), ``token``, ``namespace``,
    ``timeout_seconds``, ``verify`` (bool or CA bundle path) and
    ``requests_per_second``.
    """

    try:
        with path.open("rb") as handle:
            document = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Invalid credentials file {path}: {exc}") from exc

    server = document.get("server")
    if not isinstance(server, str) or not server.strip():
        raise MissingConfigurationError(f"Missing configuration for: server ({path})")

    token = document.get("token")
    if token is not None and not isinstance(token, str):
        raise ConfigurationError("token must be a string")
    namespace = document.get("namespace", DEFAULT_NAMESPACE)
    if not isinstance(namespace, str) or not namespace:
        raise ConfigurationError("namespace must be a non-empty string")
    timeout = document.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)
    if not isinstance(timeout, int | float) or timeout <= 0:
        raise ConfigurationError("timeout_seconds must be a positive number")
    verify = document.get("verify", True)
    if not isinstance(verify, bool | str):
        raise ConfigurationError("verify must be a boolean or a CA bundle path")
    rate = document.get("requests_per_second", DEFAULT_REQUESTS_PER_SECOND)
    if not isinstance(rate, int) or isinstance(rate, bool) or rate < 1:
        raise ConfigurationError("requests_per_second must be a positive integer")

    return ApiServerConfig(
        server=server.strip(),
        token=token,
        namespace=namespace,
        timeout_seconds=float(timeout),
        verify=verify,
        requests_per_second=rate,
    )
