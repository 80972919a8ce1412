"""
tests/test_config.py

Environment-driven settings.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app import config


@pytest.fixture(autouse=True)
def _fresh_settings():
    config.get_calculation_settings.cache_clear()
    config.get_scheduler_settings.cache_clear()
    yield
    config.get_calculation_settings.cache_clear()
    config.get_scheduler_settings.cache_clear()


def test_calculation_defaults(monkeypatch) -> None:
    for name in ("CALC_LOG_PERSIST", "CALC_SAVE_RESULTS_DEFAULT", "CALC_SLOW_METRIC_MS"):
        monkeypatch.delenv(name, raising=False)

    settings = config.get_calculation_settings()

    assert settings.persist_logs is True
    assert settings.save_results_default is False
    assert settings.slow_metric_ms == 2000


def test_calculation_from_env(monkeypatch) -> None:
    monkeypatch.setenv("CALC_LOG_PERSIST", "off")
    monkeypatch.setenv("CALC_SAVE_RESULTS_DEFAULT", "yes")
    monkeypatch.setenv("CALC_SLOW_METRIC_MS", "not-a-number")

    settings = config.get_calculation_settings()

    assert settings.persist_logs is False
    assert settings.save_results_default is True
    assert settings.slow_metric_ms == 2000


def test_scheduler_from_env(monkeypatch) -> None:
    monkeypatch.setenv("SCHEDULER_ENABLED", "false")
    monkeypatch.setenv("SCHEDULER_PERIODS", " 2024, ,2024-Q4 ")
    monkeypatch.setenv("SCHEDULER_CALC_HOUR_UTC", "30")

    settings = config.get_scheduler_settings()

    assert settings.enabled is False
    assert settings.periods == ("2024", "2024-Q4")
    assert settings.calc_hour_utc == 23


def test_resolved_periods_fall_back_to_current_year() -> None:
    now = datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert config.SchedulerSettings().resolved_periods(now) == ("2026",)
    assert config.SchedulerSettings(periods=("2024",)).resolved_periods(now) == ("2024",)
