#!/usr/bin/env python3
"""
Game Insights — Model Training

Trains the retention predictor and the revenue forecaster from CSV exports
and saves both snapshots into the configured store (STORAGE_TYPE / DB_PATH),
where the API picks them up on its next startup.

Usage:
    python scripts/train_models.py --cohorts data/cohorts.csv --revenue data/revenue.csv
    python scripts/train_models.py --revenue data/revenue.csv --forecast-days 14

Cohort CSV: cohort_date,size,day,retention (long) or cohort_date,size,d1,d7,... (wide)
Revenue CSV: date,revenue,dau[,new_users,payers]
"""

import argparse
import sys
from pathlib import Path

import structlog

sys.path.insert(0, str(Path(__file__).parent.parent))

from gameinsights.services import get_prediction_service
from gameinsights.utils.data_loader import load_cohorts, load_revenue
from gameinsights.utils.logging import configure_logging

logger = structlog.get_logger()


def main():
    parser = argparse.ArgumentParser(description="Train retention and revenue models from CSV files")
    parser.add_argument("--cohorts", type=str, default=None, help="Cohort retention CSV")
    parser.add_argument("--revenue", type=str, default=None, help="Daily revenue CSV")
    parser.add_argument(
        "--forecast-days",
        type=int,
        default=7,
        help="Days of revenue forecast to print after training (0 to skip)",
    )
    parser.add_argument("--log-level", type=str, default=None, help="Override LOG_LEVEL (debug, info, warning)")
    args = parser.parse_args()

    if not args.cohorts and not args.revenue:
        parser.error("pass --cohorts and/or --revenue")

    configure_logging(args.log_level)
    service = get_prediction_service()
    service.initialize()

    cohorts = load_cohorts(args.cohorts) if args.cohorts else None
    revenue = load_revenue(args.revenue) if args.revenue else None

    print("\n" + "=" * 60)
    print("Game Insights — Model Training")
    print("=" * 60)

    outcomes = service.train(cohorts=cohorts, revenue=revenue)
    for outcome in outcomes:
        if outcome.trained and outcome.metrics:
            m = outcome.metrics
            r2 = f"{m.r2:.3f}" if m.r2 is not None else "n/a"
            print(f"  [OK] {outcome.model}: MSE={m.mse:.6f} MAE={m.mae:.6f} R2={r2} ({m.data_points_used} rows)")
            if outcome.error:
                print(f"       not saved: {outcome.error}")
        else:
            print(f"  [SKIP] {outcome.model}: {outcome.error}")

    if service.revenue.is_trained and args.forecast_days > 0:
        print(f"\n  Revenue forecast, next {args.forecast_days} days:")
        for forecast in service.revenue.forecast(args.forecast_days, include_breakdown=False):
            print(
                f"    {forecast.date}  {forecast.value:>12,.2f}  "
                f"(confidence {forecast.confidence:.2f}, {forecast.trend.value})"
            )

    print("=" * 60 + "\n")

    if not any(o.trained for o in outcomes):
        sys.exit(1)


if __name__ == "__main__":
    main()
