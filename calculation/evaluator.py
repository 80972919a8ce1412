"""
calculation/evaluator.py

Recursive evaluation of a formula tree for one period.

Every handler returns a :class:`CalculationResult`. Domain errors raised by
the adapter or by period and expression helpers are converted to failed
results right where they occur; a failed sub-formula is surfaced by the
parent with a prefix naming the side that failed. Only
:class:`~calculation.errors.StoreUnavailableError` escapes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from calculation.base import DataSourceAdapter
from calculation.errors import CalculationError
from calculation.expression import evaluate_expression, substitute_placeholders
from calculation.formula import (
    FORMULA_TYPES,
    AvgFormula,
    CountFormula,
    CustomFormula,
    DifferenceFormula,
    FormulaConfig,
    MetricReferenceFormula,
    PercentageFormula,
    RatioFormula,
    SumFormula,
    WeightedAvgFormula,
    YoYRateFormula,
)
from calculation.period import PeriodOffset, shift_period
from calculation.result import CalculationResult

logger = logging.getLogger(__name__)

MetricResolver = Callable[[str, "PeriodOffset | None"], CalculationResult]

# formula type -> handler method name
_HANDLERS: dict[str, str] = {
    "count": "_evaluate_count",
    "sum": "_evaluate_sum",
    "avg": "_evaluate_avg",
    "ratio": "_evaluate_ratio",
    "percentage": "_evaluate_percentage",
    "difference": "_evaluate_difference",
    "yoy_rate": "_evaluate_yoy_rate",
    "weighted_avg": "_evaluate_weighted_avg",
    "metric": "_evaluate_metric",
    "custom": "_evaluate_custom",
}


class FormulaEvaluator:
    """
    Evaluates formula trees against one period.

    Parameters
    ----------
    adapter:
        Raw data access used by aggregate leaves and custom accessors.
    period:
        Reporting period every leaf is scoped to (before any offset).
    resolve_metric:
        Callback used by ``metric`` nodes. Receives the referenced code and
        optional period offset, returns that metric's (cached) result.
    """

    def __init__(
        self,
        adapter: DataSourceAdapter,
        period: str,
        resolve_metric: MetricResolver,
    ) -> None:
        self._adapter = adapter
        self._period = period
        self._resolve_metric = resolve_metric
        self._dispatch: dict[str, Callable[[Any], CalculationResult]] = {
            kind: getattr(self, name) for kind, name in _HANDLERS.items()
        }

    @property
    def period(self) -> str:
        return self._period

    def evaluate(self, config: FormulaConfig) -> CalculationResult:
        handler = self._dispatch.get(config.type)
        if handler is None:
            return CalculationResult.failure(f"unsupported formula type: {config.type}")
        logger.debug("Evaluating %s node period=%s", config.type, self._period)
        return handler(config)

    # ------------------------------------------------------------------
    # Aggregate leaves
    # ------------------------------------------------------------------

    def _evaluate_count(self, config: CountFormula) -> CalculationResult:
        try:
            period = shift_period(self._period, config.period_offset)
            value = self._adapter.count(config.data_source, config.filter, period)
        except CalculationError as exc:
            return CalculationResult.failure(str(exc))
        return CalculationResult.ok(
            value,
            details={"dataSource": config.data_source, "filter": dict(config.filter), "period": period},
        )

    def _evaluate_sum(self, config: SumFormula) -> CalculationResult:
        try:
            period = shift_period(self._period, config.period_offset)
            value = self._adapter.sum(config.data_source, config.field, config.filter, period)
        except CalculationError as exc:
            return CalculationResult.failure(str(exc))
        if config.multiply is not None:
            value = value * config.multiply
        details = {
            "dataSource": config.data_source,
            "field": config.field,
            "filter": dict(config.filter),
            "period": period,
        }
        if config.multiply is not None:
            details["multiply"] = config.multiply
        return CalculationResult.ok(value, details=details)

    def _evaluate_avg(self, config: AvgFormula) -> CalculationResult:
        try:
            period = shift_period(self._period, config.period_offset)
            value = self._adapter.avg(config.data_source, config.field, config.filter, period)
        except CalculationError as exc:
            return CalculationResult.failure(str(exc))
        return CalculationResult.ok(
            value,
            details={
                "dataSource": config.data_source,
                "field": config.field,
                "filter": dict(config.filter),
                "period": period,
            },
        )

    # ------------------------------------------------------------------
    # Composites
    # ------------------------------------------------------------------

    def _evaluate_pair(
        self,
        first: FormulaConfig,
        second: FormulaConfig,
        labels: tuple[str, str],
    ) -> tuple[float, float] | CalculationResult:
        left = self.evaluate(first)
        if not left.success:
            return CalculationResult.failure(f"{labels[0]} failed: {left.error}")
        right = self.evaluate(second)
        if not right.success:
            return CalculationResult.failure(f"{labels[1]} failed: {right.error}")
        return left.numeric_value, right.numeric_value

    def _evaluate_ratio(self, config: RatioFormula | PercentageFormula) -> CalculationResult:
        pair = self._evaluate_pair(config.numerator, config.denominator, ("numerator", "denominator"))
        if isinstance(pair, CalculationResult):
            return pair
        numerator, denominator = pair
        if denominator == 0:
            return CalculationResult.ok(
                0,
                details={
                    "numerator": numerator,
                    "denominator": denominator,
                    "note": "denominator is zero",
                },
            )
        return CalculationResult.ok(
            numerator / denominator,
            details={"numerator": numerator, "denominator": denominator},
        )

    def _evaluate_percentage(self, config: PercentageFormula) -> CalculationResult:
        ratio = self._evaluate_ratio(config)
        if not ratio.success:
            return ratio
        return CalculationResult.ok(ratio.numeric_value * 100, unit="%", details=ratio.details)

    def _evaluate_difference(self, config: DifferenceFormula) -> CalculationResult:
        pair = self._evaluate_pair(config.current, config.previous, ("current", "previous"))
        if isinstance(pair, CalculationResult):
            return pair
        current, previous = pair
        return CalculationResult.ok(
            current - previous,
            details={"current": current, "previous": previous},
        )

    def _evaluate_yoy_rate(self, config: YoYRateFormula) -> CalculationResult:
        pair = self._evaluate_pair(config.current, config.previous, ("current", "previous"))
        if isinstance(pair, CalculationResult):
            return pair
        current, previous = pair
        if previous == 0:
            return CalculationResult.ok(
                100 if current > 0 else 0,
                unit="%",
                details={
                    "current": current,
                    "previous": previous,
                    "note": "previous value is zero",
                },
            )
        rate = (current - previous) / abs(previous) * 100
        return CalculationResult.ok(
            round(rate, 2),
            unit="%",
            details={"current": current, "previous": previous},
        )

    def _evaluate_weighted_avg(self, config: WeightedAvgFormula) -> CalculationResult:
        weighted_total = 0.0
        total_weight = 0.0
        items: list[dict[str, float]] = []
        for item in config.weights:
            pair = self._evaluate_pair(item.value, item.weight, ("value", "weight"))
            if isinstance(pair, CalculationResult):
                return pair
            value, weight = pair
            weighted_total += value * weight
            total_weight += weight
            items.append({"value": value, "weight": weight})

        if total_weight == 0:
            return CalculationResult.ok(
                0,
                details={"items": items, "note": "total weight is zero"},
            )
        return CalculationResult.ok(
            weighted_total / total_weight,
            details={"items": items, "totalWeight": total_weight},
        )

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    def _evaluate_metric(self, config: MetricReferenceFormula) -> CalculationResult:
        return self._resolve_metric(config.metric_code, config.period_offset)

    def _evaluate_custom(self, config: CustomFormula) -> CalculationResult:
        try:
            text, variables = substitute_placeholders(
                config.expression,
                lambda name: self._adapter.lookup(name, self._period),
            )
            value = evaluate_expression(text)
        except CalculationError as exc:
            return CalculationResult.failure(str(exc))
        return CalculationResult.ok(
            value,
            details={"expression": config.expression, "variables": variables},
        )


_missing = set(FORMULA_TYPES) - set(_HANDLERS)
if _missing:
    raise RuntimeError(f"formula types without an evaluator handler: {sorted(_missing)}")
del _missing
