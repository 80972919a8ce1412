"""
tests/test_formula_config.py

Formula tree parsing and validation.

Coverage
--------
- JSON text, decoded mappings and existing nodes are all accepted
- camelCase keys as stored, snake_case on input
- Unknown kinds, missing fields and empty weight lists are rejected up front
- Unknown keys are ignored
- Dependency-relevant traversal helpers
"""

from __future__ import annotations

import json

import pytest

from calculation.errors import FormulaDefinitionError
from calculation.formula import (
    FORMULA_TYPES,
    CustomFormula,
    MetricReferenceFormula,
    RatioFormula,
    SumFormula,
    WeightedAvgFormula,
    dump_formula,
    iter_children,
    parse_formula,
)


def _sum(**extra) -> dict:
    return {"type": "sum", "dataSource": "carbon_emissions", "field": "emission", **extra}


class TestParseFormula:
    def test_parses_json_text(self) -> None:
        config = parse_formula(json.dumps(_sum(filter={"scope": 1}, multiply=1000)))

        assert isinstance(config, SumFormula)
        assert config.data_source == "carbon_emissions"
        assert config.filter == {"scope": 1}
        assert config.multiply == 1000

    def test_parses_nested_composites(self) -> None:
        config = parse_formula(
            {
                "type": "ratio",
                "numerator": _sum(),
                "denominator": {"type": "metric", "metricCode": "F1", "periodOffset": "previous_year"},
            }
        )

        assert isinstance(config, RatioFormula)
        assert isinstance(config.numerator, SumFormula)
        assert isinstance(config.denominator, MetricReferenceFormula)
        assert config.denominator.period_offset == "previous_year"

    def test_accepts_snake_case_keys(self) -> None:
        config = parse_formula({"type": "metric", "metric_code": "E1"})
        assert config.metric_code == "E1"

    def test_existing_node_is_returned_unchanged(self) -> None:
        node = parse_formula(_sum())
        assert parse_formula(node) is node

    def test_unknown_keys_are_ignored(self) -> None:
        config = parse_formula(_sum(label="legacy"))
        assert isinstance(config, SumFormula)

    def test_nodes_are_immutable(self) -> None:
        config = parse_formula(_sum())
        with pytest.raises(Exception):
            config.field = "other"  # type: ignore[misc]


class TestParseFormulaErrors:
    def test_unknown_type(self) -> None:
        with pytest.raises(FormulaDefinitionError, match="unsupported formula type: median"):
            parse_formula({"type": "median", "dataSource": "x", "field": "y"})

    def test_missing_type(self) -> None:
        with pytest.raises(FormulaDefinitionError, match="missing 'type'"):
            parse_formula({"dataSource": "x"})

    def test_missing_required_field(self) -> None:
        with pytest.raises(FormulaDefinitionError, match="invalid formula: .*field"):
            parse_formula({"type": "sum", "dataSource": "carbon_emissions"})

    def test_empty_weights_rejected(self) -> None:
        with pytest.raises(FormulaDefinitionError, match="weights"):
            parse_formula({"type": "weighted_avg", "weights": []})

    def test_invalid_period_offset_rejected(self) -> None:
        with pytest.raises(FormulaDefinitionError):
            parse_formula({"type": "metric", "metricCode": "E1", "periodOffset": "next_year"})

    def test_malformed_json(self) -> None:
        with pytest.raises(FormulaDefinitionError, match="invalid formula"):
            parse_formula('{"type": "sum",')

    def test_nested_error_is_reported(self) -> None:
        with pytest.raises(FormulaDefinitionError, match="unsupported formula type: bogus"):
            parse_formula({"type": "ratio", "numerator": _sum(), "denominator": {"type": "bogus"}})


class TestHelpers:
    def test_formula_types_cover_every_kind(self) -> None:
        assert set(FORMULA_TYPES) == {
            "count",
            "sum",
            "avg",
            "ratio",
            "percentage",
            "difference",
            "yoy_rate",
            "weighted_avg",
            "metric",
            "custom",
        }

    def test_dump_uses_stored_key_names(self) -> None:
        dumped = dump_formula(parse_formula({"type": "metric", "metric_code": "E1"}))
        assert dumped == {"type": "metric", "metricCode": "E1"}

    def test_iter_children_weighted_avg(self) -> None:
        config = parse_formula(
            {
                "type": "weighted_avg",
                "weights": [
                    {"value": _sum(), "weight": {"type": "metric", "metricCode": "W"}},
                ],
            }
        )
        assert isinstance(config, WeightedAvgFormula)
        children = list(iter_children(config))
        assert [child.type for child in children] == ["sum", "metric"]

    def test_iter_children_of_leaf_is_empty(self) -> None:
        config = parse_formula({"type": "custom", "expression": "1 + 1"})
        assert isinstance(config, CustomFormula)
        assert list(iter_children(config)) == []
