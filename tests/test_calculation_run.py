"""
tests/test_calculation_run.py

CalculationRun: memoization, references, cycles, ordering and logging.

Coverage
--------
- Each metric is evaluated once per run; repeats return the cached object
- Missing metric / missing formula / invalid stored formula become failures
- Exactly one log entry per evaluation attempt
- Circular references fail instead of recursing
- Cached metric references never query the adapter again
- Period offsets on metric references evaluate in a child run
- calculate_all orders dependencies first; prefix runs filter by code
"""

from __future__ import annotations

import itertools
import logging

import pytest

from calculation.base import InMemoryLogSink
from calculation.errors import InvalidPeriodError, StoreUnavailableError
from calculation.formula import parse_formula
from calculation.run import MAX_PERIOD_DEPTH, CalculationRun

_SCOPE1 = {"type": "sum", "dataSource": "carbon_emissions", "field": "emission", "filter": {"scope": 1}}
_TOTAL = {"type": "sum", "dataSource": "carbon_emissions", "field": "emission"}


@pytest.fixture()
def carbon(adapter):
    adapter.rows["carbon_emissions"] = [
        {"period": "2024", "scope": 1, "emission": 100.0},
        {"period": "2024", "scope": 2, "emission": 300.0},
        {"period": "2023", "scope": 1, "emission": 50.0},
        {"period": "2022", "scope": 1, "emission": 25.0},
    ]
    return adapter


@pytest.fixture()
def make_run(carbon, make_formula_source):
    def _make(metrics, period="2024", **kwargs) -> CalculationRun:
        return CalculationRun(period, adapter=carbon, formulas=make_formula_source(metrics), **kwargs)

    return _make


class TestConstruction:
    def test_invalid_period_raises_before_any_query(self, make_run, adapter) -> None:
        with pytest.raises(InvalidPeriodError):
            make_run({}, period="2024-13")
        assert adapter.calls == []

    def test_period_is_normalized(self, make_run, adapter) -> None:
        assert make_run({}, period=" 2024-Q1 ").period == "2024-Q1"

    def test_default_sink_is_in_memory(self, make_run, adapter) -> None:
        assert isinstance(make_run({}).log_sink, InMemoryLogSink)


class TestCalculateMetric:
    def test_success_is_logged_once(self, make_run, carbon) -> None:
        run = make_run({"E1": _SCOPE1})

        result = run.calculate_metric("E1")

        assert result.success
        assert result.value == 100.0
        [entry] = run.log_sink.entries
        assert entry.metric_code == "E1"
        assert entry.period == "2024"
        assert entry.status == "success"
        assert entry.calculated_value == 100.0
        assert entry.metric_id == 1
        assert entry.formula_id == 101
        assert entry.input_details["dataSource"] == "carbon_emissions"
        assert entry.execution_time_ms >= 0

    def test_repeated_requests_hit_cache(self, make_run, carbon) -> None:
        run = make_run({"E1": _SCOPE1})

        first = run.calculate_metric("E1")
        second = run.calculate_metric("E1")

        assert first is second
        assert len(run.log_sink) == 1
        assert run._formulas.lookups["E1"] == 1
        assert len(carbon.calls) == 1

    def test_unknown_metric(self, make_run, carbon) -> None:
        run = make_run({})
        result = run.calculate_metric("NOPE")

        assert not result.success
        assert result.error == "metric NOPE does not exist"
        [entry] = run.log_sink.entries
        assert entry.status == "error"
        assert entry.metric_id is None
        assert entry.error_message == "metric NOPE does not exist"

    def test_metric_without_active_formula(self, make_run, carbon) -> None:
        result = make_run({"E1": None}).calculate_metric("E1")
        assert result.error == "metric E1 has no active formula"

    def test_invalid_stored_formula(self, make_run, carbon) -> None:
        run = make_run({"E1": {"type": "median"}})
        result = run.calculate_metric("E1")

        assert not result.success
        assert "unsupported formula type: median" in result.error
        assert len(run.log_sink) == 1

    def test_failures_are_cached_too(self, make_run, carbon) -> None:
        run = make_run({})
        assert run.calculate_metric("NOPE") is run.calculate_metric("NOPE")
        assert len(run.log_sink) == 1

    def test_explicit_formula_skips_lookup(self, make_run, carbon) -> None:
        run = make_run({})
        result = run.calculate_metric("ADHOC", parse_formula(_TOTAL))

        assert result.value == 400.0
        assert run._formulas.lookups["ADHOC"] == 0
        assert run.log_sink.entries[0].metric_id is None

    def test_store_unavailable_propagates(self, make_run, carbon) -> None:
        carbon.raise_on_call = StoreUnavailableError("down")
        run = make_run({"E1": _SCOPE1})
        with pytest.raises(StoreUnavailableError):
            run.calculate_metric("E1")

    def test_slow_metric_warning(self, make_run, carbon, caplog, monkeypatch) -> None:
        ticks = itertools.chain([0.0, 5.0], itertools.repeat(5.0))
        monkeypatch.setattr("calculation.run.time.perf_counter", lambda: next(ticks))
        run = make_run({"E1": _SCOPE1}, slow_metric_ms=1000)

        with caplog.at_level(logging.WARNING, logger="calculation.run"):
            run.calculate_metric("E1")

        assert "Slow metric E1" in caplog.text
        assert run.log_sink.entries[0].execution_time_ms == 5000


class TestMetricReferences:
    def test_referenced_metric_is_shared(self, make_run, carbon) -> None:
        metrics = {
            "E1": _SCOPE1,
            "E_TOTAL": _TOTAL,
            "E_SHARE": {
                "type": "percentage",
                "numerator": {"type": "metric", "metricCode": "E1"},
                "denominator": {"type": "metric", "metricCode": "E_TOTAL"},
            },
        }
        run = make_run(metrics)

        share = run.calculate_metric("E_SHARE")
        scope1 = run.calculate_metric("E1")

        assert share.value == pytest.approx(25.0)
        assert scope1 is run.results["E1"]
        assert [entry.metric_code for entry in run.log_sink.entries] == ["E1", "E_TOTAL", "E_SHARE"]

    def test_cached_reference_skips_adapter(self, make_run, carbon) -> None:
        metrics = {
            "E1": _SCOPE1,
            "E1_SHARE": {
                "type": "ratio",
                "numerator": {"type": "metric", "metricCode": "E1"},
                "denominator": _TOTAL,
            },
        }
        run = make_run(metrics)

        run.calculate_metric("E1")
        calls_after_e1 = len(carbon.calls)
        result = run.calculate_metric("E1_SHARE")

        assert result.value == 0.25
        assert len(carbon.calls) == calls_after_e1 + 1
        scope1_query = ("sum", "carbon_emissions", "emission", {"scope": 1}, "2024")
        assert scope1_query not in carbon.calls[calls_after_e1:]

    def test_circular_reference_fails(self, make_run, carbon, caplog) -> None:
        metrics = {
            "A": {"type": "metric", "metricCode": "B"},
            "B": {"type": "metric", "metricCode": "A"},
        }
        run = make_run(metrics)

        with caplog.at_level(logging.WARNING, logger="calculation.run"):
            result = run.calculate_metric("A")

        assert not result.success
        assert run.results["B"].error == "circular reference to metric A"
        assert result.error == "circular reference to metric A"
        assert "Circular reference to metric A" in caplog.text
        assert len(run.log_sink) == 2

    def test_self_reference_fails(self, make_run, carbon) -> None:
        result = make_run({"A": {"type": "metric", "metricCode": "A"}}).calculate_metric("A")
        assert result.error == "circular reference to metric A"

    def test_previous_year_reference_uses_child_run(self, make_run, carbon) -> None:
        metrics = {
            "E1": _SCOPE1,
            "E1_YOY": {
                "type": "yoy_rate",
                "current": {"type": "metric", "metricCode": "E1"},
                "previous": {"type": "metric", "metricCode": "E1", "periodOffset": "previous_year"},
            },
        }
        run = make_run(metrics)

        result = run.calculate_metric("E1_YOY")

        assert result.value == 100.0
        periods = [(entry.metric_code, entry.period) for entry in run.log_sink.entries]
        assert ("E1", "2023") in periods
        assert ("E1", "2024") in periods
        assert "E1" in run.results
        assert set(run.results) == {"E1", "E1_YOY"}

    def test_metric_referencing_its_own_previous_year(self, make_run, carbon) -> None:
        metrics = {
            "GROWTH": {
                "type": "difference",
                "current": _SCOPE1,
                "previous": {"type": "metric", "metricCode": "GROWTH", "periodOffset": "previous_year"},
            },
        }
        run = make_run(metrics, period="2020")

        result = run.calculate_metric("GROWTH")

        assert not result.success
        assert f"nested deeper than {MAX_PERIOD_DEPTH} levels" in result.error

    def test_inapplicable_reference_offset(self, make_run, carbon) -> None:
        metrics = {
            "E1": _SCOPE1,
            "E1_MOM": {"type": "metric", "metricCode": "E1", "periodOffset": "previous_month"},
        }
        result = make_run(metrics).calculate_metric("E1_MOM")
        assert "does not apply" in result.error


class TestBatchOperations:
    def test_calculate_many_keeps_request_order(self, make_run, carbon) -> None:
        run = make_run({"E1": _SCOPE1, "E_TOTAL": _TOTAL})
        results = run.calculate_many(["E_TOTAL", "MISSING", "E1"])

        assert list(results) == ["E_TOTAL", "MISSING", "E1"]
        assert not results["MISSING"].success

    def test_calculate_all_orders_dependencies_first(self, make_run, carbon) -> None:
        metrics = {
            "E_SHARE": {
                "type": "ratio",
                "numerator": {"type": "metric", "metricCode": "E1"},
                "denominator": {"type": "metric", "metricCode": "E_TOTAL"},
            },
            "E1": _SCOPE1,
            "E_TOTAL": _TOTAL,
            "E_NONE": None,
        }
        run = make_run(metrics)

        results = run.calculate_all()

        assert list(results) == ["E1", "E_TOTAL", "E_SHARE"]
        assert results["E_SHARE"].value == 0.25
        assert len(run.log_sink) == 3

    def test_calculate_all_skips_references_without_definition(self, make_run, carbon) -> None:
        metrics = {"S1": {"type": "metric", "metricCode": "GHOST"}}
        run = make_run(metrics)

        results = run.calculate_all()

        assert list(results) == ["S1"]
        assert results["S1"].error == "metric GHOST does not exist"
        assert "GHOST" in run.results

    def test_calculate_all_reports_invalid_formulas(self, make_run, carbon) -> None:
        run = make_run({"BAD": {"type": "sum"}, "E1": _SCOPE1})
        results = run.calculate_all()

        assert not results["BAD"].success
        assert results["E1"].success

    def test_calculate_for_module_prefix(self, make_run, carbon) -> None:
        metrics = {
            "E1.1": _SCOPE1,
            "E1.2": {"type": "metric", "metricCode": "S1.1"},
            "S1.1": _TOTAL,
        }
        run = make_run(metrics)

        results = run.calculate_for_module_prefix("E1.")

        assert list(results) == ["E1.1", "E1.2"]
        assert results["E1.2"].value == 400.0
        assert "S1.1" in run.results

    def test_cyclic_definitions_still_return_every_metric(self, make_run, carbon) -> None:
        metrics = {
            "A": {"type": "metric", "metricCode": "B"},
            "B": {"type": "metric", "metricCode": "A"},
        }
        results = make_run(metrics).calculate_all()

        assert set(results) == {"A", "B"}
        assert not any(result.success for result in results.values())

    def test_calculate_all_resolves_three_level_chain(self, make_run, carbon) -> None:
        metrics = {
            "A": {"type": "metric", "metricCode": "B"},
            "B": {"type": "metric", "metricCode": "C"},
            "C": _SCOPE1,
        }
        run = make_run(metrics)

        results = run.calculate_all()

        assert [entry.metric_code for entry in run.log_sink.entries] == ["C", "B", "A"]
        assert [results[code].value for code in ("A", "B", "C")] == [100.0, 100.0, 100.0]
        assert len(carbon.calls) == 1

    def test_deeply_nested_expression_does_not_abort_batch(self, make_run, carbon) -> None:
        carbon.variables = {"employees.total": 100}
        metrics = {
            "DEEP": {"type": "custom", "expression": "(" * 400 + "{employees.total}" + ")" * 400},
            "OK": {"type": "custom", "expression": "{employees.total} - 5"},
        }
        run = make_run(metrics)

        results = run.calculate_all()

        assert results["DEEP"].error == "expression nested too deeply"
        assert results["OK"].value == 95
        assert len(run.log_sink) == 2
