"""
app/services/calculation_service.py

Metric calculation orchestrator.

Wires the calculation engine to the database for one request or job:

    AggregationService        – raw data aggregates (data source adapter)
    FormulaRepository         – active formula lookup
    CalculationRun            – memoized, cycle-safe evaluation for one period
    CalculationLogRepository  – one ``calculation_logs`` row per attempt
    EsgRecordRepository       – optional upsert of values into ``esg_records``

Failure contract
----------------
- Malformed period         → raises InvalidPeriodError before any query
- Per-metric failures      → reported inside the batch, never raised
- Store unreachable        → raises StoreUnavailableError (rollback implied)
- Persistence failure      → raises CalculationPersistenceError after rollback

Logs are buffered in memory while the run evaluates and written together
with any saved results in a single commit at the end.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import CalculationSettings, get_calculation_settings
from app.logging_utils import log_event
from app.services.aggregation_service import AggregationService
from calculation.base import InMemoryLogSink
from calculation.errors import CalculationPersistenceError, StoreUnavailableError
from calculation.result import CalculationResult
from calculation.run import CalculationRun
from db.repositories.calculation_log_repository import CalculationLogRepository
from db.repositories.errors import CONNECTION_ERRORS, store_unavailable
from db.repositories.esg_record_repository import EsgRecordRepository
from db.repositories.formula_repository import FormulaRepository

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CalculationBatch:
    """
    Outcome of one service call.

    Attributes
    ----------
    period:
        Normalized period the batch was computed for.
    results:
        Result per metric code, in evaluation order.
    logs_written:
        Number of ``calculation_logs`` rows committed.
    saved:
        Number of ``esg_records`` rows upserted.
    elapsed_seconds:
        Wall-clock duration of evaluation plus persistence.
    """

    period: str
    results: dict[str, CalculationResult] = field(default_factory=dict)
    logs_written: int = 0
    saved: int = 0
    elapsed_seconds: float = 0.0

    @property
    def calculated(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for result in self.results.values() if result.success)

    @property
    def errors(self) -> list[str]:
        return [
            f"{code}: {result.error}"
            for code, result in self.results.items()
            if not result.success
        ]

    @property
    def failed(self) -> int:
        return len(self.errors)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": True,
            "period": self.period,
            "calculated": self.calculated,
            "successful": self.successful,
            "failed": self.failed,
            "results": {code: result.to_dict() for code, result in self.results.items()},
        }
        if self.errors:
            payload["errors"] = self.errors
        return payload


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class CalculationService:
    """
    Stateless entry point for metric calculation.

    Session-bound collaborators are created per call. The service commits
    on success and rolls back on failure.
    """

    def __init__(self, settings: CalculationSettings | None = None) -> None:
        self._settings = settings or get_calculation_settings()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def compute_one(
        self,
        *,
        period: str,
        metric_code: str,
        db: Session,
        save_results: bool = False,
    ) -> CalculationResult:
        """Calculate a single metric (and, on demand, the metrics it references)."""

        batch = self._execute(
            period=period,
            db=db,
            save_results=save_results,
            label=f"metric={metric_code}",
            action=lambda run: {metric_code: run.calculate_metric(metric_code)},
        )
        return batch.results[metric_code]

    def compute_many(
        self,
        *,
        period: str,
        metric_codes: Sequence[str],
        db: Session,
        save_results: bool = False,
    ) -> CalculationBatch:
        """Calculate the given metrics in request order, sharing one cache."""

        codes = list(dict.fromkeys(metric_codes))
        return self._execute(
            period=period,
            db=db,
            save_results=save_results,
            label=f"metrics={len(codes)}",
            action=lambda run: run.calculate_many(codes),
        )

    def compute_all(
        self,
        *,
        period: str,
        db: Session,
        save_results: bool = False,
    ) -> CalculationBatch:
        """Calculate every metric with an active formula, dependencies first."""

        return self._execute(
            period=period,
            db=db,
            save_results=save_results,
            label="all",
            action=lambda run: run.calculate_all(),
        )

    def compute_module(
        self,
        *,
        period: str,
        prefix: str,
        db: Session,
        save_results: bool = False,
    ) -> CalculationBatch:
        """Calculate every active metric whose code starts with *prefix*."""

        return self._execute(
            period=period,
            db=db,
            save_results=save_results,
            label=f"prefix={prefix}",
            action=lambda run: run.calculate_for_module_prefix(prefix),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _execute(
        self,
        *,
        period: str,
        db: Session,
        save_results: bool,
        label: str,
        action: Callable[[CalculationRun], dict[str, CalculationResult]],
    ) -> CalculationBatch:
        sink = InMemoryLogSink()
        run = CalculationRun(
            period,
            adapter=AggregationService(db),
            formulas=FormulaRepository(db),
            log_sink=sink,
            slow_metric_ms=self._settings.slow_metric_ms,
        )

        run_start = time.monotonic()
        logger.info("Calculation started period=%s %s", run.period, label)
        try:
            results = action(run)
        except StoreUnavailableError:
            db.rollback()
            logger.error(
                "Calculation aborted period=%s %s: data store unavailable",
                run.period,
                label,
                exc_info=True,
            )
            raise

        logs_written, saved = self._persist(
            db=db,
            period=run.period,
            sink=sink,
            results=results,
            save_results=save_results,
        )

        batch = CalculationBatch(
            period=run.period,
            results=results,
            logs_written=logs_written,
            saved=saved,
            elapsed_seconds=time.monotonic() - run_start,
        )
        log_event(
            logger,
            logging.INFO,
            "calculation_completed",
            period=batch.period,
            scope=label,
            calculated=batch.calculated,
            successful=batch.successful,
            failed=batch.failed,
            logs_written=batch.logs_written,
            saved=batch.saved,
            elapsed_seconds=round(batch.elapsed_seconds, 3),
        )
        return batch

    def _persist(
        self,
        *,
        db: Session,
        period: str,
        sink: InMemoryLogSink,
        results: dict[str, CalculationResult],
        save_results: bool,
    ) -> tuple[int, int]:
        """
        Write buffered logs and, when asked, successful results; then commit.

        Raises
        ------
        StoreUnavailableError
            If the connection dropped while writing.
        CalculationPersistenceError
            For any other database error. The session is rolled back first.
        """
        if not self._settings.persist_logs and not save_results:
            return 0, 0

        try:
            logs_written = 0
            if self._settings.persist_logs:
                logs_written = CalculationLogRepository(db).add_entries(sink.entries)
            saved = self._save_results(db, period, results) if save_results else 0
            db.commit()
        except StoreUnavailableError:
            db.rollback()
            raise
        except CONNECTION_ERRORS as exc:
            db.rollback()
            logger.error("Persisting calculation output failed period=%s", period, exc_info=True)
            raise store_unavailable(exc) from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Persisting calculation output failed period=%s", period, exc_info=True)
            raise CalculationPersistenceError(
                f"could not persist calculation output for period {period}: {exc}"
            ) from exc
        return logs_written, saved

    def _save_results(
        self,
        db: Session,
        period: str,
        results: dict[str, CalculationResult],
    ) -> int:
        successful = {code: result for code, result in results.items() if result.success}
        metric_ids = FormulaRepository(db).find_metric_ids(successful)
        records = EsgRecordRepository(db)
        saved = 0
        for code, result in successful.items():
            metric_id = metric_ids.get(code)
            if metric_id is None:
                logger.debug("Skipping save for unknown metric %s", code)
                continue
            if records.upsert_calculated(metric_id=metric_id, period=period, result=result):
                saved += 1
        return saved


def get_calculation_service() -> CalculationService:
    """
    Build the calculation service with current settings.
    """

    return CalculationService()
