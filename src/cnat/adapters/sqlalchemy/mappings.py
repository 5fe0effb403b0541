"""SQLAlchemy table metadata for ``At`` resources and their tasks."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any, cast

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class StringListType(TypeDecorator[tuple[str, ...]]):
    """Ordered list of strings stored as JSON text (container commands)."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: tuple[str, ...] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(list(value))

    def process_result_value(self, value: str | None, dialect: Dialect) -> tuple[str, ...]:
        _ = dialect
        if value is None:
            return ()
        loaded = json.loads(value)
        if not isinstance(loaded, list):
            return ()
        items = cast(list[Any], loaded)
        return tuple(str(item) for item in items)


class LabelsType(TypeDecorator[dict[str, str]]):
    impl = Text
    cache_ok = True

    def process_bind_param(self, value: dict[str, str] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(dict(sorted(value.items())))

    def process_result_value(self, value: str | None, dialect: Dialect) -> dict[str, str]:
        _ = dialect
        if value is None:
            return {}
        loaded = json.loads(value)
        if not isinstance(loaded, dict):
            return {}
        items = cast(dict[Any, Any], loaded)
        return {str(key): str(item) for key, item in items.items()}


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

at_table = Table(
    "at",
    metadata,
    Column("uid", String(36), primary_key=True),
    Column("namespace", String(253), nullable=False),
    Column("name", String(253), nullable=False),
    Column("resource_version", Integer, nullable=False, default=1),
    Column("creation_timestamp", UTCDateTime(), nullable=False),
    Column("labels", LabelsType(), nullable=False),
    Column("schedule", String, nullable=False),
    Column("command", String, nullable=False),
    Column("phase", String(32), nullable=False, default=""),
    UniqueConstraint("namespace", "name"),
)

task_table = Table(
    "task",
    metadata,
    Column("uid", String(36), primary_key=True),
    Column("namespace", String(253), nullable=False),
    Column("name", String(253), nullable=False),
    Column("resource_version", Integer, nullable=False, default=1),
    Column("creation_timestamp", UTCDateTime(), nullable=False),
    Column("labels", LabelsType(), nullable=False),
    Column("owner_api_version", String, nullable=True),
    Column("owner_kind", String(63), nullable=True),
    Column("owner_name", String(253), nullable=True),
    Column(
        "owner_uid",
        String(36),
        ForeignKey("at.uid", ondelete="CASCADE"),
        nullable=True,
        index=True,
    ),
    Column("owner_controller", Boolean, nullable=False, default=False),
    Column("owner_block_deletion", Boolean, nullable=False, default=False),
    Column("container_name", String(63), nullable=False),
    Column("image", String, nullable=False),
    Column("command", StringListType(), nullable=False),
    Column("restart_policy", String(16), nullable=False),
    Column("phase", String(16), nullable=False),
    Column("reason", String, nullable=True),
    Column("message", Text, nullable=True),
    UniqueConstraint("namespace", "name"),
)
