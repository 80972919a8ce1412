"""
app/services package marker.
"""

from app.services.aggregation_service import AggregationService
from app.services.calculation_service import (
    CalculationBatch,
    CalculationService,
    get_calculation_service,
)

__all__ = [
    "AggregationService",
    "CalculationBatch",
    "CalculationService",
    "get_calculation_service",
]
