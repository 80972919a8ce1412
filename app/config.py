"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_list_env(name: str) -> tuple[str, ...]:
    """
    Read a comma-separated list; blank items are dropped.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return ()
    return tuple(item.strip() for item in raw_value.split(",") if item.strip())


@dataclass(frozen=True)
class CalculationSettings:
    """
    Runtime settings for metric calculation runs.
    """

    persist_logs: bool = True
    save_results_default: bool = False
    slow_metric_ms: int = 2000


@dataclass(frozen=True)
class SchedulerSettings:
    """
    Settings for the periodic recomputation job.

    ``periods`` falls back to the current calendar year when unset.
    """

    enabled: bool = True
    periods: tuple[str, ...] = ()
    calc_hour_utc: int = 2

    def resolved_periods(self, now: datetime | None = None) -> tuple[str, ...]:
        if self.periods:
            return self.periods
        current = now or datetime.now(tz=timezone.utc)
        return (f"{current.year:04d}",)


@lru_cache(maxsize=1)
def get_calculation_settings() -> CalculationSettings:
    """
    Return cached calculation settings from environment variables.
    """

    return CalculationSettings(
        persist_logs=_get_bool_env("CALC_LOG_PERSIST", True),
        save_results_default=_get_bool_env("CALC_SAVE_RESULTS_DEFAULT", False),
        slow_metric_ms=max(1, _get_int_env("CALC_SLOW_METRIC_MS", 2000)),
    )


@lru_cache(maxsize=1)
def get_scheduler_settings() -> SchedulerSettings:
    """
    Return cached scheduler settings from environment variables.
    """

    return SchedulerSettings(
        enabled=_get_bool_env("SCHEDULER_ENABLED", True),
        periods=_get_list_env("SCHEDULER_PERIODS"),
        calc_hour_utc=min(23, max(0, _get_int_env("SCHEDULER_CALC_HOUR_UTC", 2))),
    )
