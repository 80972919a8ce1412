"""create esg metric, formula, calculation log and record tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "esg_metrics",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("field_type", sa.String(length=32), nullable=False,
                  comment="number | text | select | multiselect | date | file"),
        sa.Column("unit", sa.String(length=32), nullable=True),
        sa.Column("frequency", sa.String(length=16), nullable=False,
                  comment="yearly | quarterly | monthly | once"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )

    op.create_table(
        "metric_formulas",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("metric_id", sa.Integer(), nullable=False),
        sa.Column("formula_type", sa.String(length=32), nullable=False,
                  comment="Root node type, mirrors formula['type'] for listing screens"),
        sa.Column("data_source", sa.String(length=64), nullable=True),
        sa.Column("formula", sa.Text(), nullable=False, comment="JSON formula tree with camelCase keys"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(["metric_id"], ["esg_metrics.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_metric_formulas_metric_active",
        "metric_formulas",
        ["metric_id", "is_active"],
        unique=False,
    )

    op.create_table(
        "calculation_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("metric_id", sa.Integer(), nullable=True,
                  comment="NULL when the requested metric code does not exist"),
        sa.Column("metric_code", sa.String(length=64), nullable=False),
        sa.Column("formula_id", sa.Integer(), nullable=True),
        sa.Column("period", sa.String(length=10), nullable=False),
        sa.Column("input_data", sa.JSON(), nullable=True),
        sa.Column("calculated_value", sa.Float(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, comment="success | error"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("execution_time_ms", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("calculated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["metric_id"], ["esg_metrics.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["formula_id"], ["metric_formulas.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_calculation_logs_metric_period",
        "calculation_logs",
        ["metric_code", "period"],
        unique=False,
    )

    op.create_table(
        "esg_records",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("metric_id", sa.Integer(), nullable=False),
        sa.Column("period", sa.String(length=10), nullable=False),
        sa.Column("value_number", sa.Float(), nullable=True),
        sa.Column("value_text", sa.Text(), nullable=True),
        sa.Column("value_json", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="draft",
                  comment="draft | submitted | approved | rejected"),
        sa.Column("remark", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["metric_id"], ["esg_metrics.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("metric_id", "period", name="uq_esg_records_metric_period"),
    )


def downgrade() -> None:
    op.drop_table("esg_records")
    op.drop_index("ix_calculation_logs_metric_period", table_name="calculation_logs")
    op.drop_table("calculation_logs")
    op.drop_index("ix_metric_formulas_metric_active", table_name="metric_formulas")
    op.drop_table("metric_formulas")
    op.drop_table("esg_metrics")
