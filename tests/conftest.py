"""
Shared fixtures for the calculation test suite.

Engine-level tests run against in-process fakes; repository and service
tests run against an in-memory SQLite database built from the ORM metadata.
"""

from __future__ import annotations

import json
from collections import Counter
from collections.abc import Iterator, Mapping
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

import db.models  # noqa: F401  registers every table on Base.metadata
from calculation.base import DataSourceAdapter, FormulaSource, MetricDefinition
from calculation.errors import UnknownAccessorError, UnknownDataSourceError
from db.base import Base


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeAdapter(DataSourceAdapter):
    """
    Aggregates over plain row dicts.

    Rows carrying a ``period`` key are scoped to the requested period; other
    rows always match, like the date-keyed tables of the real adapter.
    """

    def __init__(self) -> None:
        self.rows: dict[str, list[dict[str, Any]]] = {}
        self.variables: dict[str, float] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.raise_on_call: Exception | None = None

    def _matching(self, source, filters, period):
        if self.raise_on_call is not None:
            raise self.raise_on_call
        if source not in self.rows:
            raise UnknownDataSourceError(source)
        matched = []
        for row in self.rows[source]:
            if period is not None and "period" in row and row["period"] != period:
                continue
            if all(row.get(key) == value for key, value in (filters or {}).items()):
                matched.append(row)
        return matched

    def count(self, source, filters=None, period=None):
        self.calls.append(("count", source, dict(filters or {}), period))
        return len(self._matching(source, filters, period))

    def sum(self, source, field, filters=None, period=None):
        self.calls.append(("sum", source, field, dict(filters or {}), period))
        return float(sum(row.get(field) or 0 for row in self._matching(source, filters, period)))

    def avg(self, source, field, filters=None, period=None):
        self.calls.append(("avg", source, field, dict(filters or {}), period))
        values = [row.get(field) or 0 for row in self._matching(source, filters, period)]
        return sum(values) / len(values) if values else 0.0

    def maximum(self, source, field, filters=None, period=None):
        self.calls.append(("maximum", source, field, dict(filters or {}), period))
        values = [row.get(field) or 0 for row in self._matching(source, filters, period)]
        return max(values) if values else 0.0

    def lookup(self, name, period):
        self.calls.append(("lookup", name, period))
        if self.raise_on_call is not None:
            raise self.raise_on_call
        if name not in self.variables:
            raise UnknownAccessorError(name)
        return self.variables[name]


class FakeFormulaSource(FormulaSource):
    """
    In-memory formula store.

    ``metrics`` maps code -> formula (dict or JSON text); ``None`` means the
    metric exists but has no active formula.
    """

    def __init__(self, metrics: Mapping[str, Any] | None = None) -> None:
        self.metrics: dict[str, Any] = dict(metrics or {})
        self.lookups: Counter[str] = Counter()

    def metric_exists(self, code: str) -> bool:
        return code in self.metrics

    def get_active_formula(self, code: str) -> MetricDefinition | None:
        self.lookups[code] += 1
        formula = self.metrics.get(code)
        if formula is None:
            return None
        return self._definition(code, formula)

    def list_active_formulas(self, prefix: str | None = None) -> list[MetricDefinition]:
        return [
            self._definition(code, formula)
            for code, formula in self.metrics.items()
            if formula is not None and (not prefix or code.startswith(prefix))
        ]

    def _definition(self, code: str, formula: Any) -> MetricDefinition:
        index = list(self.metrics).index(code) + 1
        return MetricDefinition(
            metric_id=index,
            code=code,
            formula=formula if isinstance(formula, str) else json.dumps(formula),
            formula_id=100 + index,
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture()
def db_session() -> Iterator[Session]:
    """Fresh in-memory SQLite database with every table created."""

    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    session = Session(engine, autoflush=False, expire_on_commit=False)
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def make_formula_source():
    """Factory for :class:`FakeFormulaSource` preloaded with formulas."""

    return FakeFormulaSource
