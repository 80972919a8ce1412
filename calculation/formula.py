"""
calculation/formula.py

Formula configuration model.

A formula is a closed tree of typed nodes serialized as JSON with camelCase
keys. Parsing goes through a pydantic discriminated union on ``type`` so that
an unknown kind, a missing required field or an empty ``weights`` list is
rejected once, at load time, instead of surfacing as an attribute error deep
inside evaluation.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Annotated, Any, Literal, Union, get_args

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from calculation.errors import FormulaDefinitionError
from calculation.period import PeriodOffset

FilterValue = Union[str, int, float, bool, None]


class _FormulaNode(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


# ---------------------------------------------------------------------------
# Aggregate leaves
# ---------------------------------------------------------------------------


class CountFormula(_FormulaNode):
    type: Literal["count"]
    data_source: str = Field(alias="dataSource", min_length=1)
    filter: dict[str, FilterValue] = Field(default_factory=dict)
    # Accepted for compatibility with stored configs; counts are never scaled.
    multiply: float | None = None
    period_offset: PeriodOffset | None = Field(default=None, alias="periodOffset")


class SumFormula(_FormulaNode):
    type: Literal["sum"]
    data_source: str = Field(alias="dataSource", min_length=1)
    field: str = Field(min_length=1)
    filter: dict[str, FilterValue] = Field(default_factory=dict)
    multiply: float | None = None
    period_offset: PeriodOffset | None = Field(default=None, alias="periodOffset")


class AvgFormula(_FormulaNode):
    type: Literal["avg"]
    data_source: str = Field(alias="dataSource", min_length=1)
    field: str = Field(min_length=1)
    filter: dict[str, FilterValue] = Field(default_factory=dict)
    multiply: float | None = None
    period_offset: PeriodOffset | None = Field(default=None, alias="periodOffset")


# ---------------------------------------------------------------------------
# Composites
# ---------------------------------------------------------------------------


class RatioFormula(_FormulaNode):
    type: Literal["ratio"]
    numerator: FormulaConfig
    denominator: FormulaConfig


class PercentageFormula(_FormulaNode):
    type: Literal["percentage"]
    numerator: FormulaConfig
    denominator: FormulaConfig


class DifferenceFormula(_FormulaNode):
    type: Literal["difference"]
    current: FormulaConfig
    previous: FormulaConfig


class YoYRateFormula(_FormulaNode):
    type: Literal["yoy_rate"]
    current: FormulaConfig
    previous: FormulaConfig


class WeightedItem(_FormulaNode):
    value: FormulaConfig
    weight: FormulaConfig


class WeightedAvgFormula(_FormulaNode):
    type: Literal["weighted_avg"]
    weights: list[WeightedItem] = Field(min_length=1)


class MetricReferenceFormula(_FormulaNode):
    type: Literal["metric"]
    metric_code: str = Field(alias="metricCode", min_length=1)
    period_offset: PeriodOffset | None = Field(default=None, alias="periodOffset")


class CustomFormula(_FormulaNode):
    type: Literal["custom"]
    expression: str = Field(min_length=1)


FormulaConfig = Annotated[
    Union[
        CountFormula,
        SumFormula,
        AvgFormula,
        RatioFormula,
        PercentageFormula,
        DifferenceFormula,
        YoYRateFormula,
        WeightedAvgFormula,
        MetricReferenceFormula,
        CustomFormula,
    ],
    Field(discriminator="type"),
]

for _model in (
    RatioFormula,
    PercentageFormula,
    DifferenceFormula,
    YoYRateFormula,
    WeightedItem,
    WeightedAvgFormula,
):
    _model.model_rebuild()

FORMULA_MODELS: tuple[type[_FormulaNode], ...] = get_args(get_args(FormulaConfig)[0])

# Every formula kind, in declaration order. The evaluator checks its handler
# table against this at import time.
FORMULA_TYPES: tuple[str, ...] = tuple(
    get_args(model.model_fields["type"].annotation)[0] for model in FORMULA_MODELS
)

_FORMULA_ADAPTER: TypeAdapter[Any] = TypeAdapter(FormulaConfig)


def parse_formula(raw: str | bytes | Mapping[str, Any] | _FormulaNode) -> FormulaConfig:
    """
    Parse a stored formula into a typed :data:`FormulaConfig` tree.

    Parameters
    ----------
    raw:
        JSON text as stored in ``metric_formulas.formula``, an already decoded
        mapping, or an existing formula node (returned unchanged).

    Raises
    ------
    FormulaDefinitionError
        If the JSON is malformed or the tree does not validate.
    """

    if isinstance(raw, FORMULA_MODELS):
        return raw
    try:
        if isinstance(raw, (str, bytes)):
            return _FORMULA_ADAPTER.validate_json(raw)
        return _FORMULA_ADAPTER.validate_python(raw)
    except ValidationError as exc:
        raise FormulaDefinitionError(_describe_validation_error(exc)) from exc


def dump_formula(config: FormulaConfig) -> dict[str, Any]:
    """Serialize *config* back to its stored camelCase JSON shape."""

    return config.model_dump(by_alias=True, exclude_none=True)


def iter_children(config: FormulaConfig) -> Iterator[FormulaConfig]:
    """Yield the direct sub-formulas of a composite node."""

    if isinstance(config, (RatioFormula, PercentageFormula)):
        yield config.numerator
        yield config.denominator
    elif isinstance(config, (DifferenceFormula, YoYRateFormula)):
        yield config.current
        yield config.previous
    elif isinstance(config, WeightedAvgFormula):
        for item in config.weights:
            yield item.value
            yield item.weight


def _describe_validation_error(exc: ValidationError) -> str:
    messages: list[str] = []
    for error in exc.errors():
        if error["type"] == "union_tag_invalid":
            messages.append(f"unsupported formula type: {error['ctx']['tag']}")
            continue
        if error["type"] == "union_tag_not_found":
            messages.append("formula node is missing 'type'")
            continue
        location = ".".join(str(part) for part in error["loc"])
        if location:
            messages.append(f"{location}: {error['msg']}")
        else:
            messages.append(error["msg"])
    return "invalid formula: " + "; ".join(messages)
