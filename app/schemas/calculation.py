"""
app/schemas/calculation.py

Request and response schemas for metric calculation endpoints.

Field names follow the JSON contract of the calculation API (camelCase);
snake_case names are accepted on input as well.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CalculateRequest(BaseModel):
    """
    Body of ``POST /esg/calculate``.

    With ``metricCodes`` only those metrics are calculated, with
    ``modulePrefix`` every active metric under that prefix, otherwise every
    metric that has an active formula.
    """

    model_config = ConfigDict(populate_by_name=True)

    period: str = Field(..., min_length=1, examples=["2024", "2024-Q1", "2024-05"])
    metric_codes: list[str] | None = Field(default=None, alias="metricCodes")
    module_prefix: str | None = Field(default=None, alias="modulePrefix", min_length=1)
    save_results: bool | None = Field(default=None, alias="saveResults")


class CalculationResultResponse(BaseModel):
    success: bool
    value: Any = None
    unit: str | None = None
    details: dict[str, Any] | None = None
    error: str | None = None


class CalculationBatchResponse(BaseModel):
    """
    API response model for one calculation batch.
    """

    success: bool = True
    period: str
    calculated: int = Field(..., ge=0)
    successful: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    results: dict[str, CalculationResultResponse] = Field(default_factory=dict)
    errors: list[str] | None = None


class PredefinedFormulaResponse(BaseModel):
    name: str
    type: str
    formula: dict[str, Any]
