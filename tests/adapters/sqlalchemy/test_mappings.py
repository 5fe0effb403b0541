from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone
from typing import TYPE_CHECKING

from sqlalchemy import inspect, select

from cnat.adapters.sqlalchemy.mappings import (
    LabelsType,
    StringListType,
    UTCDateTime,
    at_table,
    task_table,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine
    from sqlalchemy.orm import Session


def test_migrations_create_the_resource_tables(sqlite_engine: Engine) -> None:
    inspector = inspect(sqlite_engine)

    assert {"at", "task"} <= set(inspector.get_table_names())
    foreign_keys = inspector.get_foreign_keys("task")
    assert [fk["referred_table"] for fk in foreign_keys] == ["at"]
    assert foreign_keys[0]["constrained_columns"] == ["owner_uid"]


def test_utc_datetime_normalises_to_utc() -> None:
    column_type = UTCDateTime()
    plus_two = timezone(timedelta(hours=2))

    bound = column_type.process_bind_param(datetime(2026, 10, 19, 14, 0, tzinfo=plus_two), None)  # type: ignore[arg-type]
    naive = column_type.process_bind_param(datetime(2026, 10, 19, 12, 0), None)  # type: ignore[arg-type]
    loaded = column_type.process_result_value(datetime(2026, 10, 19, 12, 0), None)  # type: ignore[arg-type]

    expected = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)
    assert bound == expected
    assert naive == expected
    assert loaded == expected


def test_string_list_keeps_order_and_empty_arguments() -> None:
    column_type = StringListType()

    stored = column_type.process_bind_param(("sh", "", "-c"), None)  # type: ignore[arg-type]

    assert column_type.process_result_value(stored, None) == ("sh", "", "-c")  # type: ignore[arg-type]
    assert column_type.process_result_value(None, None) == ()  # type: ignore[arg-type]
    assert column_type.process_result_value('{"not": "a list"}', None) == ()  # type: ignore[arg-type]


def test_labels_round_trip_through_the_table(sqlite_session: Session) -> None:
    sqlite_session.execute(
        at_table.insert().values(
            uid="uid-1",
            namespace="default",
            name="example",
            resource_version=1,
            creation_timestamp=datetime(2026, 10, 19, tzinfo=UTC),
            labels={"team": "a", "app": "cnat"},
            schedule="2026-10-19T12:00:00Z",
            command="echo hello",
            phase="",
        )
    )

    row = sqlite_session.execute(select(at_table.c.labels, at_table.c.creation_timestamp)).one()

    assert row.labels == {"app": "cnat", "team": "a"}
    assert row.creation_timestamp == datetime(2026, 10, 19, tzinfo=UTC)
    assert LabelsType().process_result_value(None, None) == {}  # type: ignore[arg-type]


def test_task_owner_column_references_the_at_uid() -> None:
    (foreign_key,) = task_table.c.owner_uid.foreign_keys

    assert foreign_key.column is at_table.c.uid
    assert foreign_key.ondelete == "CASCADE"
