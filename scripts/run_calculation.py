"""
Run metric calculation for one period from the CLI.
"""

from __future__ import annotations

import argparse
import json
import logging
import os

from app.services.calculation_service import CalculationService
from calculation.errors import (
    CalculationPersistenceError,
    InvalidPeriodError,
    StoreUnavailableError,
)
from db.session import SessionLocal


def main(argv: list[str] | None = None) -> int:
    """
    Exit codes: 0 when every metric succeeded, 1 when any metric failed,
    2 on a bad period or when the store could not be read or written.
    """
    parser = argparse.ArgumentParser(description="Calculate ESG metrics for one period.")
    parser.add_argument("--period", required=True, help="YYYY, YYYY-Qn or YYYY-MM.")
    parser.add_argument(
        "--metric",
        dest="metrics",
        action="append",
        default=[],
        help="Metric code to calculate. Repeat for several; omit for all active metrics.",
    )
    parser.add_argument(
        "--module-prefix",
        dest="module_prefix",
        default=None,
        help="Calculate every active metric whose code starts with this prefix.",
    )
    parser.add_argument("--save", action="store_true", help="Upsert successful values into esg_records.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    service = CalculationService()
    with SessionLocal() as db:
        try:
            if args.metrics:
                batch = service.compute_many(
                    period=args.period, metric_codes=args.metrics, db=db, save_results=args.save
                )
            elif args.module_prefix:
                batch = service.compute_module(
                    period=args.period, prefix=args.module_prefix, db=db, save_results=args.save
                )
            else:
                batch = service.compute_all(period=args.period, db=db, save_results=args.save)
        except InvalidPeriodError as exc:
            parser.error(str(exc))
        except (StoreUnavailableError, CalculationPersistenceError) as exc:
            logging.getLogger(__name__).error("Calculation aborted: %s", exc)
            return 2

    print(json.dumps(batch.to_dict(), indent=2, ensure_ascii=False, default=str))
    return 0 if batch.failed == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
