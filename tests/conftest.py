from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from cnat.adapters.sqlalchemy.migrations import upgrade_head
from cnat.adapters.sqlalchemy.store import SqlAlchemyResourceStore
from cnat.adapters.sqlalchemy.unit_of_work import shutdown, startup

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_store(sqlite_engine: Engine) -> Iterator[SqlAlchemyResourceStore]:
    startup(engine=sqlite_engine, force=True)
    try:
        yield SqlAlchemyResourceStore()
    finally:
        shutdown()


@pytest.fixture
def file_store(tmp_path: Path) -> Iterator[SqlAlchemyResourceStore]:
    """Store on a database file, for tests that touch it from several threads."""

    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'cnat.db'}", future=True)
    startup(engine=engine, force=True)
    try:
        yield SqlAlchemyResourceStore()
    finally:
        shutdown()
