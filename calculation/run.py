"""
calculation/run.py

One calculation pass over a single reporting period.

A :class:`CalculationRun` owns the result cache for its period. Each metric
is evaluated at most once per run: repeated requests and ``metric``
references return the identical cached result object. Every evaluation
attempt, including "metric not found" and invalid formula cases, produces
exactly one log entry.
"""

from __future__ import annotations

import logging
import time

from calculation.base import (
    CalculationLogEntry,
    CalculationLogSink,
    DataSourceAdapter,
    FormulaSource,
    InMemoryLogSink,
    MetricDefinition,
)
from calculation.dependencies import extract_dependencies, topological_sort
from calculation.errors import CalculationError, FormulaDefinitionError
from calculation.evaluator import FormulaEvaluator
from calculation.formula import FormulaConfig, parse_formula
from calculation.period import PeriodOffset, parse_period, shift_period
from calculation.result import CalculationResult

logger = logging.getLogger(__name__)

# How many nested period offsets a single request may chain, e.g. a metric
# whose formula references its own previous-year value.
MAX_PERIOD_DEPTH = 5


class CalculationRun:
    """
    Evaluate metrics for one period with memoization and cycle protection.

    Parameters
    ----------
    period:
        ``YYYY``, ``YYYY-Qn`` or ``YYYY-MM``. Validated on construction.
    adapter:
        Raw data access.
    formulas:
        Metric metadata and active formula lookup.
    log_sink:
        Receives one :class:`CalculationLogEntry` per evaluation attempt.
        Defaults to an in-memory buffer.
    slow_metric_ms:
        Evaluations slower than this are logged at WARNING.

    Raises
    ------
    InvalidPeriodError
        If *period* is malformed.
    """

    def __init__(
        self,
        period: str,
        *,
        adapter: DataSourceAdapter,
        formulas: FormulaSource,
        log_sink: CalculationLogSink | None = None,
        slow_metric_ms: int | None = None,
        _depth: int = 0,
    ) -> None:
        self.period = str(parse_period(period))
        self._adapter = adapter
        self._formulas = formulas
        self.log_sink = log_sink if log_sink is not None else InMemoryLogSink()
        self._slow_metric_ms = slow_metric_ms
        self._depth = _depth
        self._cache: dict[str, CalculationResult] = {}
        self._in_progress: set[str] = set()
        self._period_runs: dict[str, CalculationRun] = {}
        self._evaluator = FormulaEvaluator(adapter, self.period, self._resolve_reference)

    @property
    def results(self) -> dict[str, CalculationResult]:
        """Results computed so far, in evaluation order."""

        return dict(self._cache)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def calculate_metric(
        self,
        metric_code: str,
        formula: FormulaConfig | None = None,
    ) -> CalculationResult:
        """
        Result for *metric_code*, evaluating it if this run has not yet.

        When *formula* is omitted the metric's active formula is loaded from
        the formula source.
        """

        cached = self._cache.get(metric_code)
        if cached is not None:
            return cached
        return self._calculate(metric_code, formula=formula)

    def calculate_many(self, metric_codes: list[str]) -> dict[str, CalculationResult]:
        return {code: self.calculate_metric(code) for code in metric_codes}

    def calculate_all(self) -> dict[str, CalculationResult]:
        """
        Evaluate every metric with an active formula.

        Metrics are ordered so that referenced metrics are computed before the
        metrics that use them. Returns results keyed by code in that order.
        """

        definitions = self._formulas.list_active_formulas()
        return self._calculate_definitions(definitions, ordered=True)

    def calculate_for_module_prefix(self, prefix: str) -> dict[str, CalculationResult]:
        """
        Evaluate every active metric whose code starts with *prefix*.

        No global ordering is applied; referenced metrics are computed on
        demand, inside or outside the prefix.
        """

        definitions = self._formulas.list_active_formulas(prefix)
        return self._calculate_definitions(definitions, ordered=False)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _calculate_definitions(
        self,
        definitions: list[MetricDefinition],
        *,
        ordered: bool,
    ) -> dict[str, CalculationResult]:
        by_code = {definition.code: definition for definition in definitions}
        parsed: dict[str, FormulaConfig] = {}
        dependency_map: dict[str, set[str]] = {}
        for code, definition in by_code.items():
            try:
                parsed[code] = parse_formula(definition.formula)
            except FormulaDefinitionError:
                dependency_map[code] = set()
                continue
            dependency_map[code] = extract_dependencies(parsed[code])

        order = topological_sort(dependency_map) if ordered else list(by_code)
        results: dict[str, CalculationResult] = {}
        for code in order:
            definition = by_code.get(code)
            if definition is None:
                continue
            cached = self._cache.get(code)
            results[code] = cached if cached is not None else self._calculate(
                code, formula=parsed.get(code), definition=definition
            )
        return results

    def _calculate(
        self,
        metric_code: str,
        *,
        formula: FormulaConfig | None = None,
        definition: MetricDefinition | None = None,
    ) -> CalculationResult:
        started = time.perf_counter()
        self._in_progress.add(metric_code)
        try:
            if formula is None and definition is None:
                definition = self._load_definition(metric_code)
            if formula is None:
                formula = parse_formula(definition.formula)
            result = self._evaluator.evaluate(formula)
        except CalculationError as exc:
            result = CalculationResult.failure(str(exc))
        finally:
            self._in_progress.discard(metric_code)

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        self._cache[metric_code] = result
        self._record(metric_code, result, elapsed_ms, definition)
        return result

    def _load_definition(self, metric_code: str) -> MetricDefinition:
        definition = self._formulas.get_active_formula(metric_code)
        if definition is not None:
            return definition
        if not self._formulas.metric_exists(metric_code):
            raise FormulaDefinitionError(f"metric {metric_code} does not exist")
        raise FormulaDefinitionError(f"metric {metric_code} has no active formula")

    def _resolve_reference(
        self,
        metric_code: str,
        period_offset: PeriodOffset | None,
    ) -> CalculationResult:
        if period_offset is not None:
            try:
                return self._run_for(shift_period(self.period, period_offset)).calculate_metric(metric_code)
            except CalculationError as exc:
                return CalculationResult.failure(str(exc))
        if metric_code in self._in_progress:
            logger.warning(
                "Circular reference to metric %s detected period=%s",
                metric_code,
                self.period,
            )
            return CalculationResult.failure(f"circular reference to metric {metric_code}")
        return self.calculate_metric(metric_code)

    def _run_for(self, period: str) -> CalculationRun:
        run = self._period_runs.get(period)
        if run is not None:
            return run
        if self._depth >= MAX_PERIOD_DEPTH:
            raise FormulaDefinitionError(
                f"period offsets nested deeper than {MAX_PERIOD_DEPTH} levels"
            )
        run = CalculationRun(
            period,
            adapter=self._adapter,
            formulas=self._formulas,
            log_sink=self.log_sink,
            slow_metric_ms=self._slow_metric_ms,
            _depth=self._depth + 1,
        )
        self._period_runs[period] = run
        return run

    def _record(
        self,
        metric_code: str,
        result: CalculationResult,
        elapsed_ms: int,
        definition: MetricDefinition | None,
    ) -> None:
        if result.success:
            logger.debug(
                "Metric %s computed period=%s value=%r elapsed_ms=%d",
                metric_code,
                self.period,
                result.value,
                elapsed_ms,
            )
        else:
            logger.warning(
                "Metric %s failed period=%s: %s",
                metric_code,
                self.period,
                result.error,
            )
        if self._slow_metric_ms is not None and elapsed_ms > self._slow_metric_ms:
            logger.warning(
                "Slow metric %s period=%s elapsed_ms=%d threshold_ms=%d",
                metric_code,
                self.period,
                elapsed_ms,
                self._slow_metric_ms,
            )

        numeric = isinstance(result.value, (int, float)) and not isinstance(result.value, bool)
        self.log_sink.append(
            CalculationLogEntry(
                metric_code=metric_code,
                period=self.period,
                status="success" if result.success else "error",
                execution_time_ms=elapsed_ms,
                input_details=result.details,
                calculated_value=float(result.value) if result.success and numeric else None,
                error_message=result.error,
                metric_id=definition.metric_id if definition is not None else None,
                formula_id=definition.formula_id if definition is not None else None,
            )
        )
