"""Create the at and task tables.

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "at",
        sa.Column("uid", sa.String(length=36), nullable=False),
        sa.Column("namespace", sa.String(length=253), nullable=False),
        sa.Column("name", sa.String(length=253), nullable=False),
        sa.Column("resource_version", sa.Integer(), nullable=False),
        sa.Column("creation_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("labels", sa.Text(), nullable=False),
        sa.Column("schedule", sa.String(), nullable=False),
        sa.Column("command", sa.String(), nullable=False),
        sa.Column("phase", sa.String(length=32), nullable=False),
        sa.PrimaryKeyConstraint("uid", name="pk_at"),
        sa.UniqueConstraint("namespace", "name", name="uq_at_namespace"),
    )
    op.create_table(
        "task",
        sa.Column("uid", sa.String(length=36), nullable=False),
        sa.Column("namespace", sa.String(length=253), nullable=False),
        sa.Column("name", sa.String(length=253), nullable=False),
        sa.Column("resource_version", sa.Integer(), nullable=False),
        sa.Column("creation_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("labels", sa.Text(), nullable=False),
        sa.Column("owner_api_version", sa.String(), nullable=True),
        sa.Column("owner_kind", sa.String(length=63), nullable=True),
        sa.Column("owner_name", sa.String(length=253), nullable=True),
        sa.Column("owner_uid", sa.String(length=36), nullable=True),
        sa.Column("owner_controller", sa.Boolean(), nullable=False),
        sa.Column("owner_block_deletion", sa.Boolean(), nullable=False),
        sa.Column("container_name", sa.String(length=63), nullable=False),
        sa.Column("image", sa.String(), nullable=False),
        sa.Column("command", sa.Text(), nullable=False),
        sa.Column("restart_policy", sa.String(length=16), nullable=False),
        sa.Column("phase", sa.String(length=16), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["owner_uid"],
            ["at.uid"],
            name="fk_task_owner_uid_at",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("uid", name="pk_task"),
        sa.UniqueConstraint("namespace", "name", name="uq_task_namespace"),
    )
    op.create_index("ix_task_owner_uid", "task", ["owner_uid"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_task_owner_uid", table_name="task")
    op.drop_table("task")
    op.drop_table("at")
