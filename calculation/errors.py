"""
calculation/errors.py

Exception hierarchy for the metric calculation engine.

Everything derived from :class:`CalculationError` is a per-metric condition:
the engine turns it into a failed :class:`~calculation.result.CalculationResult`
at the point where it is raised and keeps going. :class:`StoreUnavailableError`
is the only exception meant to abort a whole batch.
"""

from __future__ import annotations


class CalculationError(Exception):
    """Base class for failures that are reported inside a result."""


class FormulaDefinitionError(CalculationError):
    """Raised when a stored formula cannot be parsed or is structurally invalid."""


class InvalidPeriodError(CalculationError):
    """Raised for a period string that is not YYYY, YYYY-Qn or YYYY-MM."""


class ExpressionError(CalculationError):
    """Raised when a custom arithmetic expression cannot be evaluated."""


class DataSourceError(CalculationError):
    """Base class for aggregate and lookup failures in the data source adapter."""


class UnknownDataSourceError(DataSourceError):
    def __init__(self, source: str) -> None:
        super().__init__(f"unknown data source: {source}")
        self.source = source


class UnknownFieldError(DataSourceError):
    def __init__(self, source: str, field: str) -> None:
        super().__init__(f"unknown field {field!r} on data source {source}")
        self.source = source
        self.field = field


class UnknownAccessorError(DataSourceError):
    def __init__(self, name: str) -> None:
        super().__init__(f"unknown variable: {name}")
        self.name = name


class AggregateQueryError(DataSourceError):
    """Raised when a single aggregate query fails for a non-connection reason."""


class StoreUnavailableError(RuntimeError):
    """
    Raised when the backing store cannot be reached at all.

    Not a :class:`CalculationError`: it propagates out of the run so the
    caller can abort the batch instead of recording hundreds of identical
    per-metric failures.
    """


class CalculationPersistenceError(RuntimeError):
    """Raised when calculation logs or results could not be written."""
