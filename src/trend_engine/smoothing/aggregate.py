"""Collapse per-record observations into daily series."""
from __future__ import annotations

from typing import List

import pandas as pd

from .weekday import weekdays_of

POSITIVE = "positive"
NEGATIVE = "negative"
OTHER = "other"
NOT_REPORTED = "No reportado"


def _with_weekday(df: pd.DataFrame) -> pd.DataFrame:
    df["weekday"] = [int(w) for w in weekdays_of(df["date"])]
    return df


def _empty(records: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
    # keep the datetime dtype of ``date`` so empty series still join on it
    dates = pd.to_datetime(records["date"]).iloc[:0].reset_index(drop=True)
    out = pd.DataFrame({"date": dates})
    for col in columns[1:]:
        out[col] = pd.Series(dtype=float if col == "rate" else "int64")
    return out


def daily_test_counts(records: pd.DataFrame) -> pd.DataFrame:
    """Return one row per date with ``positives``, ``tests`` and ``rate``.

    Only ``positive`` and ``negative`` results count as trials.  A date whose
    records are all ``other`` is kept with zero tests and an undefined rate.
    """

    columns = ["date", "positives", "tests", "rate", "weekday"]
    if records.empty:
        return _empty(records, columns)
    result = records["result"]
    frame = pd.DataFrame(
        {
            "date": records["date"].to_numpy(),
            "positives": (result == POSITIVE).astype(int).to_numpy(),
            "tests": result.isin([POSITIVE, NEGATIVE]).astype(int).to_numpy(),
        }
    )
    daily = frame.groupby("date", sort=True)[["positives", "tests"]].sum().reset_index()
    daily["rate"] = daily["positives"] / daily["tests"].where(daily["tests"] > 0)
    return _with_weekday(daily)[columns]


def daily_event_counts(records: pd.DataFrame, value_column: str = "count") -> pd.DataFrame:
    """Sum ``value_column`` per date into a ``count`` column."""

    columns = ["date", "count", "weekday"]
    if records.empty:
        return _empty(records, columns)
    values = pd.to_numeric(records[value_column], errors="coerce")
    if values.isna().any():
        raise ValueError(f"column {value_column!r} has missing or non-numeric values")
    if (values < 0).any():
        raise ValueError(f"column {value_column!r} has negative counts")
    frame = pd.DataFrame({"date": records["date"].to_numpy(), "count": values.to_numpy()})
    daily = frame.groupby("date", sort=True)["count"].sum().reset_index()
    daily["count"] = daily["count"].round().astype(int)
    return _with_weekday(daily)[columns]


def stratified_test_counts(
    records: pd.DataFrame, strata: List[str] | None = None
) -> pd.DataFrame:
    """Positives and tests per date and stratum, keeping empty strata.

    Every combination of the dates present and the stratum levels appears,
    with zero counts where no tests were recorded.  Missing labels are
    grouped under ``"No reportado"``.
    """

    strata = strata or ["city", "age_range"]
    valid = records[records["result"].isin([POSITIVE, NEGATIVE])].copy()
    keys: List[str] = ["date", *strata]
    for col in strata:
        series = valid[col]
        if isinstance(series.dtype, pd.CategoricalDtype):
            if NOT_REPORTED not in series.cat.categories:
                series = series.cat.add_categories([NOT_REPORTED])
            valid[col] = series.fillna(NOT_REPORTED)
        else:
            valid[col] = series.fillna(NOT_REPORTED).astype("category")
    valid["date"] = pd.Categorical(valid["date"], categories=sorted(valid["date"].unique()))
    valid["positives"] = (valid["result"] == POSITIVE).astype(int)
    valid["tests"] = 1
    out = (
        valid.groupby(keys, observed=False)[["positives", "tests"]]
        .sum()
        .reset_index()
    )
    out["date"] = pd.to_datetime(out["date"].astype(object))
    return out


__all__ = [
    "POSITIVE",
    "NEGATIVE",
    "OTHER",
    "NOT_REPORTED",
    "daily_test_counts",
    "daily_event_counts",
    "stratified_test_counts",
]
