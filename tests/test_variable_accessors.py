"""
tests/test_variable_accessors.py

Named custom-expression variables resolved against SQLite.
"""

from __future__ import annotations

import pytest

from app.services.aggregation_service import AggregationService
from app.services.variable_accessors import ACCESSORS
from db.models import (
    BoardMember,
    Employee,
    EmployeeWorkTime,
    NoiseRecord,
    Shareholder,
    TrainingRecord,
    WasteWaterRecord,
)


@pytest.fixture()
def service(db_session) -> AggregationService:
    return AggregationService(db_session)


def test_every_accessor_resolves_on_an_empty_database(service) -> None:
    for name in ACCESSORS:
        value = service.lookup(name, "2024-Q1")
        assert value == 0, name


def test_headcount_accessors_ignore_period(db_session, service) -> None:
    db_session.add_all(
        [
            Employee(employee_no="1", name="a", gender="female", status="active", is_minority=True),
            Employee(employee_no="2", name="b", gender="male", status="active"),
            Employee(employee_no="3", name="c", gender="female", status="resigned"),
        ]
    )
    db_session.commit()

    assert service.lookup("employees.total", "1990") == 2
    assert service.lookup("employees.female", "2024") == 1
    assert service.lookup("employees.minority", "2024") == 1
    assert service.lookup("employees.resigned", "2024") == 1


class TestDateScopedAccessors:
    @pytest.fixture(autouse=True)
    def _training(self, db_session) -> None:
        db_session.add_all(
            [
                TrainingRecord(training_type="safety", training_name="a", training_date="2024-02-10", duration=4.0),
                TrainingRecord(training_type="general", training_name="b", training_date="2024-05-01", duration=6.0),
                TrainingRecord(training_type="general", training_name="c", training_date="2023-03-01", duration=10.0),
            ]
        )
        db_session.commit()

    def test_year(self, service) -> None:
        assert service.lookup("training.totalHours", "2024") == 10.0

    def test_quarter_covers_its_three_months(self, service) -> None:
        assert service.lookup("training.totalHours", "2024-Q1") == 4.0
        assert service.lookup("training.totalHours", "2024-Q2") == 6.0

    def test_month(self, service) -> None:
        assert service.lookup("training.totalHours", "2024-05") == 6.0
        assert service.lookup("training.totalSessions", "2024-05") == 1

    def test_filter_combined_with_date_scope(self, service) -> None:
        assert service.lookup("training.safetyTrainingHours", "2024") == 4.0


def test_noise_maximum(db_session, service) -> None:
    db_session.add_all(
        [
            NoiseRecord(record_date="2024-01-05", location="north", decibel_level=55.0, is_compliant=True),
            NoiseRecord(record_date="2024-07-05", location="south", decibel_level=71.0, is_compliant=False),
            NoiseRecord(record_date="2023-07-05", location="south", decibel_level=90.0, is_compliant=False),
        ]
    )
    db_session.commit()

    assert service.lookup("noise.maxLevel", "2024") == 71.0
    assert service.lookup("noise.avgLevel", "2024") == 63.0
    assert service.lookup("noise.exceedCount", "2024") == 1


def test_waste_water_pollutant_load(db_session, service) -> None:
    db_session.add_all(
        [
            WasteWaterRecord(period="2024", discharge_type="industrial", pollutant_type="COD", concentration=10.0, volume=2.0),
            WasteWaterRecord(period="2024", discharge_type="industrial", pollutant_type="COD", concentration=5.0, volume=4.0),
            WasteWaterRecord(period="2023", discharge_type="industrial", pollutant_type="COD", concentration=99.0, volume=1.0),
            WasteWaterRecord(
                period="2024", discharge_type="domestic", pollutant_type="ammonia_nitrogen", concentration=2.0, volume=3.0
            ),
        ]
    )
    db_session.commit()

    assert service.lookup("wasteWater.codAmount", "2024") == 40.0
    assert service.lookup("wasteWater.ammoniaAmount", "2024") == 6.0
    assert service.lookup("wasteWater.totalDischarge", "2024") == 9.0


def test_average_work_hours(db_session, service) -> None:
    db_session.add_all(
        [
            EmployeeWorkTime(period="2024-05", regular_hours=160.0, overtime_hours=10.0),
            EmployeeWorkTime(period="2024-05", regular_hours=150.0, overtime_hours=0.0),
            EmployeeWorkTime(period="2024-04", regular_hours=100.0, overtime_hours=0.0),
        ]
    )
    db_session.commit()

    assert service.lookup("workTime.avgWorkHoursPerEmployee", "2024-05") == 160.0


def test_board_average_age(db_session, service) -> None:
    db_session.add_all(
        [
            BoardMember(name="a", birth_year=1970, position="chair", status="active"),
            BoardMember(name="b", birth_year=1980, position="director", status="active"),
            BoardMember(name="c", birth_year=1940, position="director", status="retired"),
        ]
    )
    db_session.commit()

    assert service.lookup("board.avgAge", "2024") == 49.0
    assert service.lookup("board.avgAge", "2024-Q3") == 49.0


def test_top_ten_shareholders(db_session, service) -> None:
    db_session.add_all(
        [Shareholder(name=f"holder-{ratio}", share_ratio=float(ratio), status="active") for ratio in range(1, 13)]
        + [Shareholder(name="former", share_ratio=50.0, status="exited")]
    )
    db_session.commit()

    assert service.lookup("shareholders.topTenSharesRatio", "2024") == 75.0
    assert service.lookup("shareholders.total", "2024") == 12
