"""
app/schemas package marker.
"""

from app.schemas.calculation import (
    CalculateRequest,
    CalculationBatchResponse,
    CalculationResultResponse,
    PredefinedFormulaResponse,
)

__all__ = [
    "CalculateRequest",
    "CalculationBatchResponse",
    "CalculationResultResponse",
    "PredefinedFormulaResponse",
]
