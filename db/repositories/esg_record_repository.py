"""
db/repositories/esg_record_repository.py

Persistence of calculated metric values into ``esg_records``.

All methods are transaction-safe. The caller controls commit/rollback;
this repository never commits on its own.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from calculation.result import CalculationResult
from db.models.esg_metric import EsgRecord

_CONFLICT_COLUMNS = ("metric_id", "period")


class EsgRecordRepository:
    """
    Writes calculated results as ``draft`` records.

    Upsert semantics: a second save for the same ``(metric_id, period)``
    overwrites the values in place instead of inserting a duplicate. The
    conflict is resolved by the database in a single statement, so two
    concurrent runs for the same period cannot both insert.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def upsert_calculated(
        self,
        *,
        metric_id: int,
        period: str,
        result: CalculationResult,
    ) -> bool:
        """
        Upsert one calculated value.

        Parameters
        ----------
        metric_id:
            Target metric.
        period:
            Period the value was calculated for.
        result:
            Evaluation outcome. Failed results and results without a value
            are skipped.

        Returns
        -------
        bool
            ``True`` when a row was written.
        """
        if not result.success or result.value is None:
            return False

        values = _record_values(metric_id, period, result)
        insert = _insert_for(self._session)
        stmt = insert(EsgRecord).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(_CONFLICT_COLUMNS),
            set_={
                "value_number": stmt.excluded.value_number,
                "value_text": stmt.excluded.value_text,
                "value_json": stmt.excluded.value_json,
                "status": stmt.excluded.status,
                "updated_at": _now_utc(),
            },
        )
        self._session.execute(stmt)
        return True


# ---------------------------------------------------------------------------
# Module-level helpers (no business logic)
# ---------------------------------------------------------------------------


def _record_values(metric_id: int, period: str, result: CalculationResult) -> dict[str, Any]:
    value = result.value
    is_number = isinstance(value, (int, float)) and not isinstance(value, bool)
    return {
        "metric_id": metric_id,
        "period": period,
        "value_number": float(value) if is_number else None,
        "value_text": value if isinstance(value, str) else None,
        "value_json": {
            "calculated": True,
            "calculatedAt": _now_utc().isoformat(),
            "details": result.details,
        },
        "status": "draft",
    }


def _insert_for(session: Session) -> Any:
    """Dialect-specific ``INSERT`` supporting ``ON CONFLICT``."""

    if session.get_bind().dialect.name == "sqlite":
        return sqlite.insert
    return postgresql.insert


def _now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)
