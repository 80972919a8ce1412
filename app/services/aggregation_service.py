"""
app/services/aggregation_service.py

SQLAlchemy implementation of the calculation engine's data source adapter.

Translates logical aggregate requests (``sum`` of ``emission`` on
``carbon_emissions`` where ``scope = 1``) into single scalar queries against
the raw data tables.

Query design
------------
Every aggregate issues exactly one ``SELECT`` with ``COALESCE(..., 0)`` so an
empty match yields 0 rather than NULL. Period scoping is an equality
predicate on the source's period column; date-keyed sources are only scoped
when an accessor passes an explicit date filter.

Error handling
--------------
Connection-level failures (``OperationalError``, ``InterfaceError``,
``DisconnectionError``) raise :class:`StoreUnavailableError` and abort the
caller's run. Any other database error rolls the session back and raises
:class:`AggregateQueryError`, which the evaluator reports as a failed result
for the one formula node that issued it. Rolling back is safe because the
calculation run writes nothing until it finishes.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import Select, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.services.data_sources import (
    DATA_SOURCES,
    Contains,
    DataSourceSpec,
    StartsWith,
)
from calculation.base import DataSourceAdapter
from calculation.errors import (
    AggregateQueryError,
    UnknownAccessorError,
    UnknownDataSourceError,
)
from db.repositories.errors import CONNECTION_ERRORS, store_unavailable

logger = logging.getLogger(__name__)


class AggregationService(DataSourceAdapter):
    """
    Read-only aggregates over the raw ESG tables.

    Parameters
    ----------
    session:
        Active SQLAlchemy session. The caller controls its lifecycle.
    sources:
        Logical source registry. Defaults to :data:`DATA_SOURCES`.
    accessors:
        Named accessor registry used by custom expressions. Defaults to
        :data:`app.services.variable_accessors.ACCESSORS`.
    """

    def __init__(
        self,
        session: Session,
        *,
        sources: Mapping[str, DataSourceSpec] | None = None,
        accessors: Mapping[str, Any] | None = None,
    ) -> None:
        if accessors is None:
            from app.services.variable_accessors import ACCESSORS

            accessors = ACCESSORS
        self._session = session
        self._sources = sources if sources is not None else DATA_SOURCES
        self._accessors = accessors

    # ------------------------------------------------------------------
    # DataSourceAdapter
    # ------------------------------------------------------------------

    def count(
        self,
        source: str,
        filters: Mapping[str, Any] | None = None,
        period: str | None = None,
    ) -> int:
        spec = self.source(source)
        stmt = select(func.count()).select_from(spec.model).where(*self.conditions(spec, filters, period))
        return int(self.scalar(stmt, source=source) or 0)

    def sum(
        self,
        source: str,
        field: str,
        filters: Mapping[str, Any] | None = None,
        period: str | None = None,
    ) -> float:
        return self._aggregate("sum", source, field, filters, period)

    def avg(
        self,
        source: str,
        field: str,
        filters: Mapping[str, Any] | None = None,
        period: str | None = None,
    ) -> float:
        return self._aggregate("avg", source, field, filters, period)

    def maximum(
        self,
        source: str,
        field: str,
        filters: Mapping[str, Any] | None = None,
        period: str | None = None,
    ) -> float:
        return self._aggregate("max", source, field, filters, period)

    def lookup(self, name: str, period: str) -> float:
        accessor = self._accessors.get(name)
        if accessor is None:
            raise UnknownAccessorError(name)
        value = accessor(self, period)
        logger.debug("lookup %s period=%s -> %r", name, period, value)
        return value

    # ------------------------------------------------------------------
    # Building blocks, also used by custom accessors
    # ------------------------------------------------------------------

    def source(self, name: str) -> DataSourceSpec:
        spec = self._sources.get(name)
        if spec is None:
            raise UnknownDataSourceError(name)
        return spec

    def conditions(
        self,
        spec: DataSourceSpec,
        filters: Mapping[str, Any] | None,
        period: str | None,
    ) -> list[Any]:
        """
        WHERE clauses for *filters* plus the implicit period predicate.

        Plain values compare by equality (``None`` means IS NULL).
        :class:`StartsWith` and :class:`Contains` values become ``LIKE``
        patterns; a tuple or list of them matches any.
        """

        clauses: list[Any] = []
        for field, value in (filters or {}).items():
            clauses.append(_match(spec.column(field), value))
        if period is not None and spec.period_column is not None:
            clauses.append(spec.column(spec.period_column) == period)
        return clauses

    def scalar(self, stmt: Select[Any], *, source: str) -> Any:
        """Execute a scalar aggregate with the error translation described above."""

        try:
            return self._session.scalar(stmt)
        except CONNECTION_ERRORS as exc:
            logger.error("Data store unavailable while querying %s", source, exc_info=True)
            raise store_unavailable(exc) from exc
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.warning("Aggregate query on %s failed: %s", source, exc)
            raise AggregateQueryError(f"query on {source} failed: {exc.__class__.__name__}") from exc

    def _aggregate(
        self,
        aggregate: str,
        source: str,
        field: str,
        filters: Mapping[str, Any] | None,
        period: str | None,
    ) -> float:
        spec = self.source(source)
        column = spec.column(field)
        stmt = select(func.coalesce(getattr(func, aggregate)(column), 0)).where(*self.conditions(spec, filters, period))
        value = self.scalar(stmt, source=source)
        total = float(value) if value is not None else 0.0
        logger.debug(
            "%s(%s.%s) filters=%r period=%s -> %.4f",
            aggregate,
            source,
            field,
            dict(filters or {}),
            period,
            total,
        )
        return total


def _match(column: Any, value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return or_(*(_match(column, item) for item in value))
    if isinstance(value, StartsWith):
        return column.startswith(str(value), autoescape=True)
    if isinstance(value, Contains):
        return column.contains(str(value), autoescape=True)
    if value is None:
        return column.is_(None)
    return column == value
