"""
tests/test_repositories.py

Formula lookup, calculation log and ESG record persistence on SQLite.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from calculation.base import CalculationLogEntry
from calculation.result import CalculationResult
from db.models import CalculationLog, EsgMetric, EsgRecord, MetricFormula
from db.repositories import CalculationLogRepository, EsgRecordRepository, FormulaRepository


def _metric(session, code: str, *formulas: tuple[dict, bool]) -> EsgMetric:
    metric = EsgMetric(code=code, name=code)
    session.add(metric)
    session.flush()
    for formula, active in formulas:
        session.add(
            MetricFormula(
                metric_id=metric.id,
                formula_type=formula["type"],
                formula=json.dumps(formula),
                is_active=active,
            )
        )
        session.flush()
    return metric


_COUNT = {"type": "count", "dataSource": "employees"}
_SUM = {"type": "sum", "dataSource": "carbon_emissions", "field": "emission"}


# ---------------------------------------------------------------------------
# FormulaRepository
# ---------------------------------------------------------------------------


class TestFormulaRepository:
    def test_metric_exists(self, db_session) -> None:
        _metric(db_session, "E1")
        repo = FormulaRepository(db_session)

        assert repo.metric_exists("E1")
        assert not repo.metric_exists("E2")

    def test_latest_active_formula_wins(self, db_session) -> None:
        metric = _metric(db_session, "E1", (_COUNT, True), (_SUM, True), ({"type": "avg"}, False))

        definition = FormulaRepository(db_session).get_active_formula("E1")

        assert definition is not None
        assert definition.metric_id == metric.id
        assert json.loads(definition.formula) == _SUM

    def test_metric_without_active_formula(self, db_session) -> None:
        _metric(db_session, "E1", (_COUNT, False))
        assert FormulaRepository(db_session).get_active_formula("E1") is None

    def test_list_active_formulas_one_per_metric(self, db_session, caplog) -> None:
        _metric(db_session, "E1", (_COUNT, True), (_SUM, True))
        _metric(db_session, "S1", (_COUNT, True))
        _metric(db_session, "G1", (_COUNT, False))

        definitions = FormulaRepository(db_session).list_active_formulas()

        assert [d.code for d in definitions] == ["E1", "S1"]
        assert json.loads(definitions[0].formula) == _SUM
        assert "several active formulas" in caplog.text

    def test_prefix_filter_is_literal(self, db_session) -> None:
        _metric(db_session, "E_1", (_COUNT, True))
        _metric(db_session, "EX1", (_COUNT, True))
        _metric(db_session, "S1", (_COUNT, True))

        repo = FormulaRepository(db_session)

        assert [d.code for d in repo.list_active_formulas("E_")] == ["E_1"]
        assert [d.code for d in repo.list_active_formulas("E")] == ["E_1", "EX1"]

    def test_find_metric_ids(self, db_session) -> None:
        e1 = _metric(db_session, "E1")
        assert FormulaRepository(db_session).find_metric_ids(["E1", "missing"]) == {"E1": e1.id}
        assert FormulaRepository(db_session).find_metric_ids([]) == {}


# ---------------------------------------------------------------------------
# CalculationLogRepository
# ---------------------------------------------------------------------------


class TestCalculationLogRepository:
    def test_add_entries_resolves_metric_ids_by_code(self, db_session) -> None:
        metric = _metric(db_session, "E1")
        entries = [
            CalculationLogEntry(
                metric_code="E1",
                period="2024",
                status="success",
                execution_time_ms=3,
                input_details={"dataSource": "employees"},
                calculated_value=12.0,
            ),
            CalculationLogEntry(
                metric_code="GHOST",
                period="2024",
                status="error",
                execution_time_ms=0,
                error_message="metric GHOST does not exist",
            ),
        ]

        written = CalculationLogRepository(db_session).add_entries(entries, batch_size=1)
        db_session.commit()

        assert written == 2
        rows = db_session.scalars(select(CalculationLog).order_by(CalculationLog.id)).all()
        assert [(row.metric_code, row.metric_id, row.status) for row in rows] == [
            ("E1", metric.id, "success"),
            ("GHOST", None, "error"),
        ]
        assert rows[0].input_data == {"dataSource": "employees"}
        assert rows[1].error_message == "metric GHOST does not exist"

    def test_add_no_entries(self, db_session) -> None:
        assert CalculationLogRepository(db_session).add_entries([]) == 0

    def test_list_for_metric_newest_first(self, db_session) -> None:
        now = datetime.now(timezone.utc)
        repo = CalculationLogRepository(db_session)
        repo.add_entries(
            [
                CalculationLogEntry("E1", "2023", "success", 1, calculated_at=now - timedelta(days=1)),
                CalculationLogEntry("E1", "2024", "success", 1, calculated_at=now),
                CalculationLogEntry("S1", "2024", "success", 1, calculated_at=now),
            ]
        )
        db_session.commit()

        assert [row.period for row in repo.list_for_metric("E1")] == ["2024", "2023"]
        assert [row.period for row in repo.list_for_metric("E1", "2023")] == ["2023"]


# ---------------------------------------------------------------------------
# EsgRecordRepository
# ---------------------------------------------------------------------------


class TestEsgRecordRepository:
    def test_upsert_inserts_then_overwrites(self, db_session) -> None:
        metric = _metric(db_session, "E1")
        repo = EsgRecordRepository(db_session)

        assert repo.upsert_calculated(
            metric_id=metric.id,
            period="2024",
            result=CalculationResult.ok(10.0, details={"numerator": 1}),
        )
        assert repo.upsert_calculated(metric_id=metric.id, period="2024", result=CalculationResult.ok(12.5))
        db_session.commit()

        count = db_session.scalar(select(func.count()).select_from(EsgRecord))
        record = db_session.scalars(select(EsgRecord)).one()
        assert count == 1
        assert record.value_number == 12.5
        assert record.status == "draft"
        assert record.value_json["calculated"] is True
        assert "calculatedAt" in record.value_json

    def test_periods_are_separate_records(self, db_session) -> None:
        metric = _metric(db_session, "E1")
        repo = EsgRecordRepository(db_session)
        repo.upsert_calculated(metric_id=metric.id, period="2023", result=CalculationResult.ok(1))
        repo.upsert_calculated(metric_id=metric.id, period="2024", result=CalculationResult.ok(2))
        db_session.commit()

        assert db_session.scalar(select(func.count()).select_from(EsgRecord)) == 2

    @pytest.mark.parametrize(
        "result",
        [CalculationResult.failure("boom"), CalculationResult.ok(None)],
    )
    def test_failed_or_empty_results_are_skipped(self, db_session, result) -> None:
        metric = _metric(db_session, "E1")
        assert not EsgRecordRepository(db_session).upsert_calculated(
            metric_id=metric.id,
            period="2024",
            result=result,
        )
        assert db_session.scalar(select(func.count()).select_from(EsgRecord)) == 0
