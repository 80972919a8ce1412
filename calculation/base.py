"""
calculation/base.py

Contracts the calculation engine depends on.

The engine itself performs no I/O. It reads raw data through a
:class:`DataSourceAdapter`, formula definitions through a
:class:`FormulaSource` and writes one :class:`CalculationLogEntry` per metric
attempt into a :class:`CalculationLogSink`. Concrete SQLAlchemy-backed
implementations live under ``app/services`` and ``db/repositories``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


class DataSourceAdapter(ABC):
    """
    Read-only aggregate access to named raw data sources.

    Every aggregate is implicitly scoped to *period* when the source is keyed
    by a period column. Implementations raise
    :class:`~calculation.errors.DataSourceError` subclasses for unknown
    sources, fields and accessors, and
    :class:`~calculation.errors.StoreUnavailableError` when the store itself
    cannot be reached.
    """

    @abstractmethod
    def count(
        self,
        source: str,
        filters: Mapping[str, Any] | None = None,
        period: str | None = None,
    ) -> int:
        """Number of rows in *source* matching *filters*."""

    @abstractmethod
    def sum(
        self,
        source: str,
        field: str,
        filters: Mapping[str, Any] | None = None,
        period: str | None = None,
    ) -> float:
        """Sum of *field*; 0 when no rows match."""

    @abstractmethod
    def avg(
        self,
        source: str,
        field: str,
        filters: Mapping[str, Any] | None = None,
        period: str | None = None,
    ) -> float:
        """Average of *field*; 0 when no rows match."""

    @abstractmethod
    def maximum(
        self,
        source: str,
        field: str,
        filters: Mapping[str, Any] | None = None,
        period: str | None = None,
    ) -> float:
        """Largest value of *field*; 0 when no rows match."""

    @abstractmethod
    def lookup(self, name: str, period: str) -> float:
        """Value of the registered accessor *name* (``"carbon.scope1"``) for *period*."""


@dataclass(frozen=True)
class MetricDefinition:
    """An ESG metric together with its currently active formula."""

    metric_id: int | None
    code: str
    formula: str | Mapping[str, Any]
    formula_id: int | None = None


class FormulaSource(ABC):
    """Read access to metric metadata and active formulas."""

    @abstractmethod
    def metric_exists(self, code: str) -> bool:
        ...

    @abstractmethod
    def get_active_formula(self, code: str) -> MetricDefinition | None:
        """Active formula for *code*, or ``None`` when the metric has none."""

    @abstractmethod
    def list_active_formulas(self, prefix: str | None = None) -> list[MetricDefinition]:
        """Every active formula, optionally restricted to codes starting with *prefix*."""


@dataclass(frozen=True)
class CalculationLogEntry:
    """One metric evaluation attempt, success or failure."""

    metric_code: str
    period: str
    status: str
    execution_time_ms: int
    input_details: dict[str, Any] | None = None
    calculated_value: float | None = None
    error_message: str | None = None
    metric_id: int | None = None
    formula_id: int | None = None
    calculated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class CalculationLogSink(ABC):
    @abstractmethod
    def append(self, entry: CalculationLogEntry) -> None:
        ...


class InMemoryLogSink(CalculationLogSink):
    """Buffers log entries until the caller persists them in one transaction."""

    def __init__(self) -> None:
        self.entries: list[CalculationLogEntry] = []

    def append(self, entry: CalculationLogEntry) -> None:
        self.entries.append(entry)

    def __len__(self) -> int:
        return len(self.entries)
