"""Loading and normalisation of raw test and mortality records.

Test records arrive as JSON (the public test registry export) or CSV with
``collectedDate``, ``reportedDate``, ``result`` and, optionally,
``createdAt``, ``ageRange`` and ``patientCity`` columns.  Dates are
month/day/year strings.  Mortality data is a CSV with one row per day.

Nothing here reads the system clock: the evaluation date that bounds valid
collection dates is always passed in by the caller.
"""
from __future__ import annotations

import logging
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Dict

import pandas as pd

from ..smoothing.aggregate import NEGATIVE, OTHER, POSITIVE

logger = logging.getLogger(__name__)

DATE_FORMAT = "%m/%d/%Y"
DATETIME_FORMAT = "%m/%d/%Y %H:%M"

AGE_LEVELS = [
    "0 to 9",
    "10 to 19",
    "20 to 29",
    "30 to 39",
    "40 to 49",
    "50 to 59",
    "60 to 69",
    "70 to 79",
    "80 to 89",
    "90 to 99",
    "100 to 109",
    "110 to 119",
    "120 to 129",
]

CITY_FIXES: Dict[str, str] = {
    "Loiza": "Loíza",
    "Rio Grande": "Río Grande",
}

REQUIRED_TEST_COLUMNS = ("collectedDate", "reportedDate", "result")

FIRST_DAY = date(2020, 3, 12)
EARLIEST_VALID = date(2020, 1, 1)
IMPUTATION_LAG_DAYS = 2


class DateCleaningPolicy(str, Enum):
    """What to do with missing or implausible collection dates."""

    IMPUTE_FROM_REPORTED = "impute_from_reported"
    DROP_INCONSISTENT = "drop_inconsistent"


def _is_csv(source: str | Path) -> bool:
    return str(source).split("?")[0].lower().endswith(".csv")


def load_records(source: str | Path) -> pd.DataFrame:
    """Read a JSON or CSV table from a local path or URL."""

    if _is_csv(source):
        df = pd.read_csv(source)
    else:
        df = pd.read_json(source, orient="records", dtype=False, convert_dates=False)
    logger.info("loaded %d records from %s", len(df), source)
    return df


def classify_result(value: Any) -> str:
    """Map a free-text result to ``positive``, ``negative`` or ``other``."""

    if value is None or (isinstance(value, float) and pd.isna(value)):
        return OTHER
    text = str(value).lower()
    if "positive" in text:
        return POSITIVE
    if "negative" in text or text == "not detected":
        return NEGATIVE
    return OTHER


def _parse(series: pd.Series, fmt: str) -> pd.Series:
    return pd.to_datetime(series, format=fmt, errors="coerce")


def _optional(raw: pd.DataFrame, column: str) -> pd.Series:
    if column in raw.columns:
        return raw[column]
    return pd.Series([None] * len(raw), index=raw.index, dtype=object)


def normalise_test_records(
    raw: pd.DataFrame,
    *,
    evaluation_date: date,
    policy: DateCleaningPolicy = DateCleaningPolicy.IMPUTE_FROM_REPORTED,
    earliest_valid: date = EARLIEST_VALID,
    imputation_lag_days: int = IMPUTATION_LAG_DAYS,
) -> pd.DataFrame:
    """Return cleaned test records with a single analysis ``date`` column.

    Parameters
    ----------
    raw:
        Records as loaded by :func:`load_records`.
    evaluation_date:
        Latest acceptable collection date.
    policy:
        ``IMPUTE_FROM_REPORTED`` replaces a missing or out-of-window collection
        date with the reported date minus ``imputation_lag_days``;
        ``DROP_INCONSISTENT`` drops such rows.  Rows still outside
        ``[earliest_valid, evaluation_date]`` are dropped in both cases.
    """

    missing = [col for col in REQUIRED_TEST_COLUMNS if col not in raw.columns]
    if missing:
        raise ValueError(f"test records are missing columns: {missing}")

    policy = DateCleaningPolicy(policy)
    df = pd.DataFrame(
        {
            "collected_date": _parse(raw["collectedDate"], DATE_FORMAT),
            "reported_date": _parse(raw["reportedDate"], DATE_FORMAT),
            "created_at": _parse(_optional(raw, "createdAt"), DATETIME_FORMAT),
            "result": raw["result"].map(classify_result),
        }
    )
    age = _optional(raw, "ageRange")
    age = age.where(age != "N/A")
    df["age_range"] = pd.Categorical(age, categories=AGE_LEVELS, ordered=True)
    city = _optional(raw, "patientCity").replace(CITY_FIXES)
    df["city"] = city.astype("category")

    lo = pd.Timestamp(earliest_valid)
    hi = pd.Timestamp(evaluation_date)

    def in_window(s: pd.Series) -> pd.Series:
        return s.notna() & (s >= lo) & (s <= hi)

    if policy is DateCleaningPolicy.IMPUTE_FROM_REPORTED:
        fallback = df["reported_date"] - pd.Timedelta(days=imputation_lag_days)
        dates = df["collected_date"].fillna(fallback)
        dates = dates.where(in_window(dates), fallback)
    else:
        dates = df["collected_date"]
    df["date"] = dates
    keep = in_window(df["date"])
    dropped = int((~keep).sum())
    if dropped:
        logger.warning("dropping %d records with unusable dates (%s)", dropped, policy.value)
    df = df[keep].sort_values(["date", "reported_date"], kind="mergesort")
    return df.reset_index(drop=True)[
        ["date", "collected_date", "reported_date", "created_at", "result", "city", "age_range"]
    ]


def filter_first_day(records: pd.DataFrame, first_day: date = FIRST_DAY) -> pd.DataFrame:
    """Keep records on or after ``first_day``."""

    return records[records["date"] >= pd.Timestamp(first_day)].reset_index(drop=True)


def load_mortality(
    source: str | Path,
    *,
    first_day: date = FIRST_DAY,
    date_column: str = "Fecha",
    count_column: str = "IncMueSalud",
) -> pd.DataFrame:
    """Load daily mortality counts, exposing them as ``date`` and ``count``."""

    df = load_records(source)
    for col in (date_column, count_column):
        if col not in df.columns:
            raise ValueError(f"mortality data is missing column {col!r}")
    df["date"] = _parse(df[date_column], DATE_FORMAT)
    df["count"] = pd.to_numeric(df[count_column], errors="coerce")
    df = df[df["date"].notna()]
    df = filter_first_day(df, first_day)
    return df.sort_values("date").reset_index(drop=True)
