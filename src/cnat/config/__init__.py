"""Application configuration helpers."""

from __future__ import annotations

from .apiserver import (
    ApiServerConfig,
    load_api_server_config,
    resolve_credentials_path,
)
from .controller import ControllerConfig, get_controller_config
from .env import require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ApiServerConfig",
    "ConfigurationError",
    "ControllerConfig",
    "DatabaseConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "get_controller_config",
    "get_database_config",
    "get_storage_config",
    "load_api_server_config",
    "require_env_var",
    "require_env_vars",
    "resolve_credentials_path",
]
