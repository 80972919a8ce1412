"""
db/repositories/calculation_log_repository.py

Persistence for calculation log entries.

The caller controls commit/rollback; this repository never commits on its own.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from calculation.base import CalculationLogEntry
from db.models.esg_metric import CalculationLog, EsgMetric

_DEFAULT_BATCH_SIZE = 500


class CalculationLogRepository:
    """
    Append-only writer for ``calculation_logs``.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def add_entries(
        self,
        entries: Sequence[CalculationLogEntry],
        *,
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> int:
        """
        Stage one ``calculation_logs`` row per entry.

        Entries without a metric id (e.g. a formula supplied by the caller)
        are matched to ``esg_metrics`` by code where possible.

        Returns
        -------
        int
            Number of rows staged.
        """
        if not entries:
            return 0

        unresolved = {entry.metric_code for entry in entries if entry.metric_id is None}
        metric_ids = self._metric_ids(unresolved)
        size = max(1, batch_size)

        for start in range(0, len(entries), size):
            chunk = entries[start : start + size]
            self._session.add_all(
                CalculationLog(
                    metric_id=entry.metric_id if entry.metric_id is not None else metric_ids.get(entry.metric_code),
                    metric_code=entry.metric_code,
                    formula_id=entry.formula_id,
                    period=entry.period,
                    input_data=entry.input_details,
                    calculated_value=entry.calculated_value,
                    status=entry.status,
                    error_message=entry.error_message,
                    execution_time_ms=entry.execution_time_ms,
                    calculated_at=entry.calculated_at,
                )
                for entry in chunk
            )
            self._session.flush()
        return len(entries)

    def list_for_metric(self, metric_code: str, period: str | None = None) -> list[CalculationLog]:
        """Logged attempts for *metric_code*, newest first."""

        stmt = select(CalculationLog).where(CalculationLog.metric_code == metric_code)
        if period is not None:
            stmt = stmt.where(CalculationLog.period == period)
        stmt = stmt.order_by(CalculationLog.calculated_at.desc(), CalculationLog.id.desc())
        return list(self._session.scalars(stmt).all())

    def _metric_ids(self, codes: set[str]) -> dict[str, int]:
        if not codes:
            return {}
        stmt = select(EsgMetric.code, EsgMetric.id).where(EsgMetric.code.in_(sorted(codes)))
        return {code: metric_id for code, metric_id in self._session.execute(stmt).all()}
