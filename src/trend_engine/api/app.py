"""Read-only helpers over the latest snapshot and their FastAPI wrappers.

The synchronous helpers keep the test suite light-weight while the
FastAPI application exposes the same data over HTTP to the dashboard.
"""
from __future__ import annotations

import math
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
from fastapi import FastAPI, HTTPException, Query

from ..config import get_settings
from ..io import artifacts
from ..smoothing.runner import MODEL_TABLES, STRATA_TABLE
from ..smoothing.uncertainty import DEFAULT_ALPHA, confidence_band
from . import schemas

# observed value shown next to each model's band
OBSERVED_COLUMNS = {"positivity": "rate", "mortality": "count"}


def _out_dir(out_dir: str | Path | None) -> Path:
    return Path(out_dir) if out_dir is not None else Path(get_settings().artifacts_dir)


def _parse_date(value: str | None, field: str) -> date | None:
    if value in (None, ""):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"Invalid date for {field}: {value}") from exc


def _clean(value: Any) -> Any:
    if isinstance(value, pd.Timestamp):
        return value.date().isoformat()
    if isinstance(value, float) and math.isnan(value):
        return None
    if value is pd.NA or value is pd.NaT:
        return None
    return value


def _serialise(df: pd.DataFrame) -> List[Dict[str, Any]]:
    return [{k: _clean(v) for k, v in row.items()} for row in df.to_dict(orient="records")]


def snapshot_info(out_dir: str | Path | None = None) -> Dict[str, Any]:
    """Return the metadata of the current snapshot."""

    return artifacts.read_snapshot_metadata(_out_dir(out_dir))


def trend_rows(
    name: str,
    alpha: float | None = None,
    start: str | None = None,
    end: str | None = None,
    out_dir: str | Path | None = None,
) -> List[Dict[str, Any]]:
    """Return the observed series with its fitted curve and confidence band."""

    if name not in MODEL_TABLES:
        raise ValueError(f"Unknown model: {name}")
    root = _out_dir(out_dir)
    meta = artifacts.read_snapshot_metadata(root)
    model = meta.get("models", {}).get(name)
    if model is None:
        raise FileNotFoundError(f"model {name!r} is not part of the snapshot")
    if alpha is None:
        alpha = float(meta.get("band_alpha", DEFAULT_ALPHA))
    if not 0 < alpha < 1:
        raise ValueError("alpha must be in (0, 1)")
    df = artifacts.read_snapshot_table(root, MODEL_TABLES[name])
    lo = _parse_date(start, "start")
    hi = _parse_date(end, "end")
    if lo is not None:
        df = df[df["date"] >= pd.Timestamp(lo)]
    if hi is not None:
        df = df[df["date"] <= pd.Timestamp(hi)]
    observed = OBSERVED_COLUMNS[name]
    cols = ["date", observed, "fit", "se"]
    band = confidence_band(df[cols].reset_index(drop=True), model["family"], alpha)
    return _serialise(band.rename(columns={observed: "observed"}))


def strata_rows(
    city: str | None = None,
    age_range: str | None = None,
    out_dir: str | Path | None = None,
) -> List[Dict[str, Any]]:
    """Return daily positives and tests per city and age range."""

    df = artifacts.read_snapshot_table(_out_dir(out_dir), STRATA_TABLE)
    for col in ("city", "age_range"):
        df[col] = df[col].astype(str)
    if city:
        df = df[df["city"] == city]
    if age_range:
        df = df[df["age_range"] == age_range]
    return _serialise(df.reset_index(drop=True))


fastapi_app = FastAPI(title="Trend Engine API", version="0.1.0")


@fastapi_app.get('/snapshot', response_model=schemas.SnapshotResponse)
def snapshot_endpoint() -> schemas.SnapshotResponse:
    """Return the metadata of the latest snapshot."""

    try:
        return schemas.SnapshotResponse(metadata=snapshot_info())
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def _trend_endpoint(name: str, alpha, start, end) -> schemas.RowsResponse:
    try:
        rows = trend_rows(name, alpha=alpha, start=start, end=end)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return schemas.RowsResponse(rows=rows)


@fastapi_app.get('/trends/positivity', response_model=schemas.RowsResponse)
def positivity_endpoint(
    alpha: Optional[float] = Query(None, gt=0.0, lt=1.0),
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None, alias="to"),
) -> schemas.RowsResponse:
    """Smoothed test positivity with its confidence band."""

    return _trend_endpoint("positivity", alpha, from_, to)


@fastapi_app.get('/trends/mortality', response_model=schemas.RowsResponse)
def mortality_endpoint(
    alpha: Optional[float] = Query(None, gt=0.0, lt=1.0),
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None, alias="to"),
) -> schemas.RowsResponse:
    """Smoothed daily deaths with its confidence band."""

    return _trend_endpoint("mortality", alpha, from_, to)


@fastapi_app.get('/strata', response_model=schemas.RowsResponse)
def strata_endpoint(
    city: Optional[str] = None,
    age_range: Optional[str] = None,
) -> schemas.RowsResponse:
    """Return daily test counts by city and age range."""

    try:
        return schemas.RowsResponse(rows=strata_rows(city=city, age_range=age_range))
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


app = fastapi_app
