"""SQLAlchemy adapter package for cnat."""

from __future__ import annotations

from .mappings import at_table, metadata, task_table
from .repositories import SqlAlchemyAtRepository, SqlAlchemyTaskRepository
from .store import SqlAlchemyResourceStore
from .unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyAtRepository",
    "SqlAlchemyResourceStore",
    "SqlAlchemyTaskRepository",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "at_table",
    "configured_engine",
    "is_started",
    "metadata",
    "shutdown",
    "startup",
    "task_table",
]
