"""
db/repositories/formula_repository.py

Read access to metric definitions and their active formulas.

Implements :class:`calculation.base.FormulaSource` on top of the
``esg_metrics`` and ``metric_formulas`` tables. Never writes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from calculation.base import FormulaSource, MetricDefinition
from db.models.esg_metric import EsgMetric, MetricFormula
from db.repositories.errors import CONNECTION_ERRORS, store_unavailable

logger = logging.getLogger(__name__)


class FormulaRepository(FormulaSource):
    """
    Metric and formula lookups for one session.

    When a metric has more than one active formula the most recent one
    (highest id) is used.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def metric_exists(self, code: str) -> bool:
        return self.find_metric_id(code) is not None

    def find_metric_id(self, code: str) -> int | None:
        stmt = select(EsgMetric.id).where(EsgMetric.code == code)
        return self._scalar(stmt)

    def find_metric_ids(self, codes: Iterable[str]) -> dict[str, int]:
        """Metric id by code for every code in *codes* that exists."""

        wanted = sorted(set(codes))
        if not wanted:
            return {}
        stmt = select(EsgMetric.code, EsgMetric.id).where(EsgMetric.code.in_(wanted))
        try:
            rows = self._session.execute(stmt).all()
        except CONNECTION_ERRORS as exc:
            raise store_unavailable(exc) from exc
        return {code: metric_id for code, metric_id in rows}

    def get_active_formula(self, code: str) -> MetricDefinition | None:
        stmt = (
            select(EsgMetric.id, EsgMetric.code, MetricFormula.id, MetricFormula.formula)
            .join(MetricFormula, MetricFormula.metric_id == EsgMetric.id)
            .where(EsgMetric.code == code, MetricFormula.is_active.is_(True))
            .order_by(MetricFormula.id.desc())
            .limit(1)
        )
        try:
            row = self._session.execute(stmt).first()
        except CONNECTION_ERRORS as exc:
            raise store_unavailable(exc) from exc
        if row is None:
            return None
        return _to_definition(row)

    def list_active_formulas(self, prefix: str | None = None) -> list[MetricDefinition]:
        """
        Every active formula, one per metric, in formula creation order.

        Parameters
        ----------
        prefix:
            Restrict to metric codes starting with this string, e.g. ``"E1."``.
        """

        stmt = (
            select(EsgMetric.id, EsgMetric.code, MetricFormula.id, MetricFormula.formula)
            .join(MetricFormula, MetricFormula.metric_id == EsgMetric.id)
            .where(MetricFormula.is_active.is_(True))
            .order_by(MetricFormula.id)
        )
        if prefix:
            stmt = stmt.where(EsgMetric.code.startswith(prefix, autoescape=True))
        try:
            rows = self._session.execute(stmt).all()
        except CONNECTION_ERRORS as exc:
            raise store_unavailable(exc) from exc

        by_code: dict[str, MetricDefinition] = {}
        for row in rows:
            definition = _to_definition(row)
            if definition.code in by_code:
                logger.warning(
                    "Metric %s has several active formulas; using formula_id=%s",
                    definition.code,
                    definition.formula_id,
                )
            by_code[definition.code] = definition
        logger.debug("Loaded %d active formulas prefix=%r", len(by_code), prefix)
        return list(by_code.values())

    def _scalar(self, stmt):
        try:
            return self._session.scalar(stmt)
        except CONNECTION_ERRORS as exc:
            raise store_unavailable(exc) from exc


def _to_definition(row) -> MetricDefinition:
    metric_id, code, formula_id, formula = row
    return MetricDefinition(
        metric_id=metric_id,
        code=code,
        formula=formula,
        formula_id=formula_id,
    )
