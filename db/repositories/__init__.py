"""
Repository layer exports.
"""

from db.repositories.calculation_log_repository import CalculationLogRepository
from db.repositories.errors import CONNECTION_ERRORS, store_unavailable
from db.repositories.esg_record_repository import EsgRecordRepository
from db.repositories.formula_repository import FormulaRepository

__all__ = [
    "CalculationLogRepository",
    "EsgRecordRepository",
    "FormulaRepository",
    "CONNECTION_ERRORS",
    "store_unavailable",
]
