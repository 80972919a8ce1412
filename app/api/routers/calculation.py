"""
app/api/routers/calculation.py

Metric calculation endpoints.

Per-metric failures are returned inside the payload with HTTP 200; only
request-level problems (bad period) and infrastructure failures map to
error statuses.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.config import get_calculation_settings
from app.schemas.calculation import (
    CalculateRequest,
    CalculationBatchResponse,
    PredefinedFormulaResponse,
)
from app.services.calculation_service import (
    CalculationBatch,
    CalculationService,
    get_calculation_service,
)
from calculation.errors import (
    CalculationPersistenceError,
    InvalidPeriodError,
    StoreUnavailableError,
)
from calculation.predefined import list_predefined
from db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/esg", tags=["calculation"])


@router.post(
    "/calculate",
    response_model=CalculationBatchResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
)
def calculate(
    body: CalculateRequest,
    db: Session = Depends(get_db),
    service: CalculationService = Depends(get_calculation_service),
) -> CalculationBatchResponse:
    """
    Calculate metrics for one period.

    Raises HTTP 400 for a malformed period.
    Raises HTTP 503 when the database is unreachable.
    Raises HTTP 500 when results or logs cannot be persisted.
    """
    save_results = body.save_results
    if save_results is None:
        save_results = get_calculation_settings().save_results_default

    try:
        if body.metric_codes:
            batch = service.compute_many(
                period=body.period,
                metric_codes=body.metric_codes,
                db=db,
                save_results=save_results,
            )
        elif body.module_prefix:
            batch = service.compute_module(
                period=body.period,
                prefix=body.module_prefix,
                db=db,
                save_results=save_results,
            )
        else:
            batch = service.compute_all(period=body.period, db=db, save_results=save_results)
    except InvalidPeriodError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data store unavailable.",
        ) from exc
    except CalculationPersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to persist calculation results.",
        ) from exc

    logger.info(
        "Calculated period=%s calculated=%d failed=%d saved=%d",
        batch.period,
        batch.calculated,
        batch.failed,
        batch.saved,
    )
    return _to_response(batch)


@router.get("/formulas/predefined", response_model=list[PredefinedFormulaResponse])
def predefined_formulas() -> list[PredefinedFormulaResponse]:
    """
    List the built-in formula catalogue.
    """

    return [PredefinedFormulaResponse(**entry) for entry in list_predefined()]


def _to_response(batch: CalculationBatch) -> CalculationBatchResponse:
    return CalculationBatchResponse.model_validate(batch.to_dict())
