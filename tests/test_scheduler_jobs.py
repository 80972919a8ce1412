"""
tests/test_scheduler_jobs.py

Daily recomputation job and scheduler registration.
"""

from __future__ import annotations

import json
from contextlib import contextmanager

import pytest

from app.config import SchedulerSettings
from app.scheduler import jobs
from app.services.calculation_service import CalculationBatch
from calculation.errors import InvalidPeriodError, StoreUnavailableError


class _RecordingService:
    def __init__(self, failures: dict[str, Exception] | None = None) -> None:
        self.failures = failures or {}
        self.periods: list[str] = []

    def compute_all(self, *, period, db, save_results):
        self.periods.append(period)
        assert save_results is True
        if period in self.failures:
            raise self.failures[period]
        return CalculationBatch(period=period)


@pytest.fixture()
def sessions(monkeypatch) -> list[str]:
    opened: list[str] = []

    @contextmanager
    def _scope():
        opened.append("session")
        yield object()

    monkeypatch.setattr(jobs, "_session_scope", _scope)
    return opened


def _settings(monkeypatch, **kwargs) -> None:
    monkeypatch.setattr(jobs, "get_scheduler_settings", lambda: SchedulerSettings(**kwargs))


def test_each_period_runs_in_its_own_session(monkeypatch, sessions) -> None:
    _settings(monkeypatch, periods=("2024", "2024-Q4"))
    service = _RecordingService()

    jobs.run_daily_metric_calculation(service)

    assert service.periods == ["2024", "2024-Q4"]
    assert len(sessions) == 2


def test_failed_period_does_not_stop_the_job(monkeypatch, sessions, caplog) -> None:
    _settings(monkeypatch, periods=("bad", "2023", "2024"))
    service = _RecordingService(
        failures={
            "bad": InvalidPeriodError("invalid period 'bad'"),
            "2023": StoreUnavailableError("down"),
        }
    )

    jobs.run_daily_metric_calculation(service)

    assert service.periods == ["bad", "2023", "2024"]
    assert "skipping invalid period" in caplog.text
    failure = next(r for r in caplog.records if "scheduled_calculation_failed" in r.getMessage())
    assert json.loads(failure.getMessage()) == {
        "event": "scheduled_calculation_failed",
        "job": "daily_metric_calculation",
        "period": "2023",
        "error_type": "StoreUnavailableError",
        "error": "down",
    }


def test_defaults_to_current_year(monkeypatch, sessions) -> None:
    _settings(monkeypatch)
    service = _RecordingService()

    jobs.run_daily_metric_calculation(service)

    assert len(service.periods) == 1
    assert len(service.periods[0]) == 4


def test_build_scheduler_registers_daily_job(monkeypatch) -> None:
    _settings(monkeypatch, calc_hour_utc=5)

    scheduler = jobs.build_scheduler()
    job = scheduler.get_job("daily_metric_calculation")

    assert job is not None
    assert job.max_instances == 1
    assert job.coalesce is True
    assert "hour='5'" in str(job.trigger)
