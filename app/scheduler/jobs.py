"""
app/scheduler/jobs.py

APScheduler-based batch scheduler for periodic metric recomputation.

Periods
-------
Resolved at job runtime from ``SCHEDULER_PERIODS`` (comma-separated, e.g.
``2024,2024-Q4``). When unset, the current calendar year is recomputed.

Schedule (all times UTC)
--------------------------
  daily_metric_calculation: SCHEDULER_CALC_HOUR_UTC:00 every day (default 02:00)

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import get_scheduler_settings
from app.logging_utils import error_fields, log_event
from app.services.calculation_service import CalculationService
from calculation.errors import (
    CalculationPersistenceError,
    InvalidPeriodError,
    StoreUnavailableError,
)
from db.session import session_scope

logger = logging.getLogger(__name__)

_session_scope = session_scope


# ---------------------------------------------------------------------------
# Job: Daily metric recomputation
# ---------------------------------------------------------------------------


def run_daily_metric_calculation(service: CalculationService | None = None) -> None:
    """
    Recompute every active metric for each configured period and save results.

    Each period runs in its own session. CalculationService commits
    internally; a failure for one period is logged and the next one runs.
    """
    settings = get_scheduler_settings()
    periods = settings.resolved_periods()
    service = service or CalculationService()
    logger.info("Scheduler: daily_metric_calculation starting periods=%s", ",".join(periods))

    for period in periods:
        with _session_scope() as db:
            try:
                batch = service.compute_all(period=period, db=db, save_results=True)
            except InvalidPeriodError as exc:
                logger.warning("Scheduler: skipping invalid period %r: %s", period, exc)
                continue
            except (StoreUnavailableError, CalculationPersistenceError) as exc:
                log_event(
                    logger,
                    logging.ERROR,
                    "scheduled_calculation_failed",
                    job="daily_metric_calculation",
                    period=period,
                    **error_fields(exc),
                )
                continue
            logger.info(
                "Scheduler: daily_metric_calculation period=%s calculated=%d "
                "failed=%d saved=%d",
                batch.period,
                batch.calculated,
                batch.failed,
                batch.saved,
            )

    logger.info("Scheduler: daily_metric_calculation complete")


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler() -> BackgroundScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    The caller must call ``.start()`` and ``.shutdown(wait=True)`` at the
    appropriate lifecycle points.
    """
    settings = get_scheduler_settings()
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        run_daily_metric_calculation,
        trigger="cron",
        hour=settings.calc_hour_utc,
        minute=0,
        id="daily_metric_calculation",
        name="Daily ESG metric recomputation",
        replace_existing=True,
        misfire_grace_time=3600,
        max_instances=1,
        coalesce=True,
    )

    return scheduler
