"""
CSV loaders for model training data.

Cohort retention is accepted in two layouts:

- long: one row per (cohort, day) with columns cohort_date, size, day, retention
- wide: one row per cohort with columns cohort_date, size, d0, d1, d7, ...

Daily revenue needs date, revenue and dau columns; new_users and payers are
optional and default to 0.
"""

import re
from pathlib import Path
from typing import Union

import pandas as pd
import structlog

from gameinsights.models.retention import CohortRecord
from gameinsights.models.revenue import RevenueDataPoint

logger = structlog.get_logger()

_WIDE_DAY_COLUMN = re.compile(r"^d(\d+)$")

PathLike = Union[str, Path]


def cohorts_from_frame(df: pd.DataFrame) -> list[CohortRecord]:
    """Build cohort records from a long or wide retention frame."""
    missing = {"cohort_date", "size"} - set(df.columns)
    if missing:
        raise ValueError(f"Cohort data missing columns: {sorted(missing)}")

    df = df.copy()
    df["cohort_date"] = pd.to_datetime(df["cohort_date"]).dt.date

    if {"day", "retention"} <= set(df.columns):
        df = df.dropna(subset=["day", "retention"])
        cohorts = []
        for (cohort_date, size), group in df.groupby(["cohort_date", "size"], sort=True):
            retention = {int(d): float(r) for d, r in zip(group["day"], group["retention"])}
            cohorts.append(
                CohortRecord(cohort_date=cohort_date, size=int(size), retention_by_day=retention)
            )
        return cohorts

    day_columns = {
        col: int(m.group(1)) for col in df.columns if (m := _WIDE_DAY_COLUMN.match(str(col)))
    }
    if not day_columns:
        raise ValueError("Cohort data needs day/retention columns or d<N> columns")

    cohorts = []
    for row in df.sort_values("cohort_date").itertuples(index=False):
        values = row._asdict()
        retention = {
            day: float(values[col]) for col, day in day_columns.items() if pd.notna(values[col])
        }
        cohorts.append(
            CohortRecord(
                cohort_date=values["cohort_date"],
                size=int(values["size"]),
                retention_by_day=retention,
            )
        )
    return cohorts


def revenue_from_frame(df: pd.DataFrame) -> list[RevenueDataPoint]:
    """Build daily revenue points from a frame sorted into date order."""
    missing = {"date", "revenue", "dau"} - set(df.columns)
    if missing:
        raise ValueError(f"Revenue data missing columns: {sorted(missing)}")

    df = df.copy()
    df["date"] = pd.to_datetime(df["date"]).dt.date
    for col in ("new_users", "payers"):
        if col not in df.columns:
            df[col] = 0.0
    df = df.fillna(0.0).sort_values("date")

    return [
        RevenueDataPoint(
            date=row.date,
            revenue=float(row.revenue),
            dau=float(row.dau),
            new_users=float(row.new_users),
            payers=float(row.payers),
        )
        for row in df.itertuples(index=False)
    ]


def load_cohorts(path: PathLike) -> list[CohortRecord]:
    cohorts = cohorts_from_frame(pd.read_csv(path))
    logger.info("cohorts_loaded", path=str(path), cohorts=len(cohorts))
    return cohorts


def load_revenue(path: PathLike) -> list[RevenueDataPoint]:
    points = revenue_from_frame(pd.read_csv(path))
    logger.info("revenue_loaded", path=str(path), days=len(points))
    return points
