"""Runs table

Revision ID: 0001_runs
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_runs"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "runs",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("status", sa.String(length=40), nullable=False),
        sa.Column("background", sa.Text(), nullable=True),
        sa.Column("target_role", sa.String(length=255), nullable=True),
        sa.Column("selected_role_id", sa.String(length=64), nullable=True),
        sa.Column("job_description", sa.Text(), nullable=True),
        sa.Column("job_description_source", sa.String(length=32), nullable=True),
        sa.Column("phases_json", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", "user_id"),
    )
    op.create_index("ix_runs_updated_at", "runs", ["updated_at"])
    op.create_index("ix_runs_user_updated", "runs", ["user_id", "updated_at"])


def downgrade() -> None:
    op.drop_index("ix_runs_user_updated", table_name="runs")
    op.drop_index("ix_runs_updated_at", table_name="runs")
    op.drop_table("runs")
