"""
calculation/period.py

Reporting period helpers.

A period is an opaque string in one of three shapes: ``YYYY`` (annual),
``YYYY-Qn`` (quarterly) or ``YYYY-MM`` (monthly). The engine only ever needs
to validate a period, shift it backwards, and turn it into the row-level
prefixes used to scope date-keyed raw tables.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

from calculation.errors import InvalidPeriodError

PeriodOffset = Literal["previous_year", "previous_quarter", "previous_month"]

_PERIOD_RE = re.compile(r"^(?P<year>\d{4})(?:-(?:Q(?P<quarter>[1-4])|(?P<month>0[1-9]|1[0-2])))?$")


@dataclass(frozen=True)
class Period:
    """Parsed form of a period string."""

    year: int
    quarter: int | None = None
    month: int | None = None

    @property
    def kind(self) -> str:
        if self.quarter is not None:
            return "quarter"
        if self.month is not None:
            return "month"
        return "year"

    def __str__(self) -> str:
        if self.quarter is not None:
            return f"{self.year:04d}-Q{self.quarter}"
        if self.month is not None:
            return f"{self.year:04d}-{self.month:02d}"
        return f"{self.year:04d}"


def parse_period(value: str) -> Period:
    """
    Parse *value* into a :class:`Period`.

    Raises
    ------
    InvalidPeriodError
        If *value* is not ``YYYY``, ``YYYY-Qn`` or ``YYYY-MM``.
    """

    match = _PERIOD_RE.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise InvalidPeriodError(
            f"invalid period {value!r}: expected YYYY, YYYY-Qn or YYYY-MM"
        )
    quarter = match.group("quarter")
    month = match.group("month")
    return Period(
        year=int(match.group("year")),
        quarter=int(quarter) if quarter else None,
        month=int(month) if month else None,
    )


def previous_period(period: str) -> str:
    """
    Same period one year earlier.

    ``2024-Q3 -> 2023-Q3``, ``2024-05 -> 2023-05``, ``2024 -> 2023``.
    """

    parsed = parse_period(period)
    return str(Period(parsed.year - 1, parsed.quarter, parsed.month))


def shift_period(period: str, offset: PeriodOffset | None) -> str:
    """
    Apply a period offset.

    ``previous_quarter`` accepts quarterly and monthly periods (a month moves
    back three months); ``previous_month`` accepts monthly periods only. An
    offset that does not fit the shape of *period* raises
    :class:`InvalidPeriodError`.
    """

    if offset is None:
        return str(parse_period(period))
    if offset == "previous_year":
        return previous_period(period)

    parsed = parse_period(period)
    if offset == "previous_quarter":
        if parsed.quarter is not None:
            if parsed.quarter == 1:
                return str(Period(parsed.year - 1, quarter=4))
            return str(Period(parsed.year, quarter=parsed.quarter - 1))
        if parsed.month is not None:
            return _shift_months(parsed, 3)
    elif offset == "previous_month":
        if parsed.month is not None:
            return _shift_months(parsed, 1)
    else:
        raise InvalidPeriodError(f"unsupported period offset: {offset}")

    raise InvalidPeriodError(
        f"period offset {offset} does not apply to {parsed.kind} period {period}"
    )


def _shift_months(parsed: Period, months: int) -> str:
    index = parsed.year * 12 + (parsed.month - 1) - months
    return str(Period(index // 12, month=index % 12 + 1))


def date_prefixes(period: str) -> tuple[str, ...]:
    """
    ISO date prefixes covering *period*.

    Used to scope tables keyed by a ``YYYY-MM-DD`` text date rather than a
    period column: a year maps to ``("2024",)``, a month to ``("2024-05",)``
    and a quarter to its three months.
    """

    parsed = parse_period(period)
    if parsed.quarter is not None:
        first = (parsed.quarter - 1) * 3 + 1
        return tuple(f"{parsed.year:04d}-{m:02d}" for m in range(first, first + 3))
    return (str(parsed),)
