"""
db/models/esg_metric.py

Metric catalogue, formula definitions and calculation output.

``esg_metrics`` and ``metric_formulas`` are maintained by the admin side and
only read by the calculation engine. ``calculation_logs`` is append-only and
written once per metric evaluation attempt. ``esg_records`` receives
calculated values when a caller asks for them to be saved.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, IdMixin, TimestampMixin

ESG_RECORD_UPSERT_CONSTRAINT = "uq_esg_records_metric_period"


class EsgMetric(IdMixin, TimestampMixin, Base):
    """
    One reportable ESG indicator, e.g. ``E1.1.1`` (scope 1 emissions).

    ``code`` is the stable identifier formulas use to reference each other.
    """

    __tablename__ = "esg_metrics"

    code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    field_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="number",
        comment="number | text | select | multiselect | date | file",
    )
    unit: Mapped[str | None] = mapped_column(String(32), nullable=True)
    frequency: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="yearly",
        comment="yearly | quarterly | monthly | once",
    )
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    formulas: Mapped[list[MetricFormula]] = relationship(back_populates="metric")


class MetricFormula(IdMixin, TimestampMixin, Base):
    """
    Serialized formula tree bound to one metric.

    At most one row per metric is expected to be active; when several are,
    the most recently created one wins.
    """

    __tablename__ = "metric_formulas"

    metric_id: Mapped[int] = mapped_column(
        ForeignKey("esg_metrics.id", ondelete="CASCADE"),
        nullable=False,
    )
    formula_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Root node type, mirrors formula['type'] for listing screens",
    )
    data_source: Mapped[str | None] = mapped_column(String(64), nullable=True)
    formula: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="JSON formula tree with camelCase keys",
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    metric: Mapped[EsgMetric] = relationship(back_populates="formulas")

    __table_args__ = (
        Index("ix_metric_formulas_metric_active", "metric_id", "is_active"),
    )


class CalculationLog(IdMixin, Base):
    """
    Audit trail of metric evaluations. Rows are never updated.
    """

    __tablename__ = "calculation_logs"

    metric_id: Mapped[int | None] = mapped_column(
        ForeignKey("esg_metrics.id", ondelete="SET NULL"),
        nullable=True,
        comment="NULL when the requested metric code does not exist",
    )
    metric_code: Mapped[str] = mapped_column(String(64), nullable=False)
    formula_id: Mapped[int | None] = mapped_column(
        ForeignKey("metric_formulas.id", ondelete="SET NULL"),
        nullable=True,
    )
    period: Mapped[str] = mapped_column(String(10), nullable=False)
    input_data: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    calculated_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, comment="success | error")
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    execution_time_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_calculation_logs_metric_period", "metric_code", "period"),
    )


class EsgRecord(IdMixin, TimestampMixin, Base):
    """
    Reported value of one metric for one period.

    Calculated values land here as ``draft`` rows; review and approval happen
    outside the calculation engine.
    """

    __tablename__ = "esg_records"

    metric_id: Mapped[int] = mapped_column(
        ForeignKey("esg_metrics.id", ondelete="CASCADE"),
        nullable=False,
    )
    period: Mapped[str] = mapped_column(String(10), nullable=False)
    value_number: Mapped[float | None] = mapped_column(Float, nullable=True)
    value_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    value_json: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="draft",
        comment="draft | submitted | approved | rejected",
    )
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("metric_id", "period", name=ESG_RECORD_UPSERT_CONSTRAINT),
    )
