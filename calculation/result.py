"""
calculation/result.py

Outcome of evaluating one formula node or one metric.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CalculationResult:
    """
    Immutable evaluation outcome.

    ``success=False`` always carries ``error``. Successful results may carry
    ``details`` describing the inputs (numerator, denominator, weights,
    substituted variables) so a logged value can be audited later.
    """

    success: bool
    value: Any = None
    unit: str | None = None
    details: dict[str, Any] | None = None
    error: str | None = None

    @classmethod
    def ok(
        cls,
        value: Any,
        *,
        unit: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> CalculationResult:
        return cls(success=True, value=value, unit=unit, details=details)

    @classmethod
    def failure(cls, error: str) -> CalculationResult:
        return cls(success=False, error=error or "calculation failed")

    @property
    def numeric_value(self) -> float:
        """``value`` coerced to a number; absent or non-numeric values count as 0."""

        return to_number(self.value)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        for key in ("value", "unit", "details", "error"):
            item = getattr(self, key)
            if item is not None:
                payload[key] = item
        return payload


def to_number(value: Any) -> float:
    """Coerce an aggregate or sub-result value to a number (``None`` -> 0)."""

    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return number if not math.isnan(number) else 0
