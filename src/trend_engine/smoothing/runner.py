from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd

from ..api.schemas import TrendModelSpec, TrendSpec
from ..core.dataset import (
    filter_first_day,
    load_mortality,
    load_records,
    normalise_test_records,
)
from ..errors import TrendEngineError
from ..io import artifacts
from .aggregate import daily_event_counts, daily_test_counts, stratified_test_counts
from .design import DesignMatrix, build_trend_design, to_numeric_axis
from .fitter import Family, FitResult, fit_quasi_glm
from .splines import select_knots
from .uncertainty import curve_prediction
from .weekday import N_LEVELS, weekdays_of

logger = logging.getLogger(__name__)

TESTS_TABLE = "tests"
STRATA_TABLE = "tests_by_strata"
MORTALITY_TABLE = "hosp_mort"
ALL_TESTS_TABLE = "all_tests"

# model name -> snapshot table holding its fitted series
MODEL_TABLES = {"positivity": TESTS_TABLE, "mortality": MORTALITY_TABLE}


@dataclass(eq=False)
class TrendFit:
    """A fitted model and its curve joined onto the daily observations."""

    observations: pd.DataFrame
    design: DesignMatrix
    fit: FitResult
    knots: np.ndarray

    def diagnostics(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "family": self.fit.family.value,
            "n_rows": self.fit.n_rows,
            "n_knots": int(len(self.knots)),
            "knots": [float(k) for k in self.knots],
            "dispersion": self.fit.dispersion,
            "iterations": self.fit.iterations,
        }


@dataclass
class TrendRunResult:
    stamp: datetime
    evaluation_date: date
    tables: Dict[str, pd.DataFrame] = field(default_factory=dict)
    models: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    out_dir: Path | None = None

    @property
    def failed(self) -> bool:
        """True when no model produced a curve."""

        return not any(m.get("status") == "ok" for m in self.models.values())

    def metadata(self, band_alpha: float) -> Dict[str, Any]:
        return {
            "stamp": self.stamp.isoformat(),
            "evaluation_date": self.evaluation_date.isoformat(),
            "band_alpha": band_alpha,
            "models": self.models,
        }


def fit_trend(daily: pd.DataFrame, model: TrendModelSpec) -> TrendFit:
    """Fit one smoothing model to an aggregated daily series.

    ``daily`` holds one row per date in ascending order: ``positives`` and
    ``tests`` for the quasibinomial family, ``count`` for the quasipoisson
    family.  The returned observations are ``daily`` unchanged plus ``fit``
    and ``se`` on the linear-predictor scale.
    """

    family = Family(model.family)
    dates = list(daily["date"])
    x = to_numeric_axis(dates)
    knots = select_knots(x, model.knot_policy, model.knots_per_30_days)
    design = build_trend_design(dates, knots=knots)
    seen = set(weekdays_of(dates))
    if len(seen) < N_LEVELS:
        logger.warning(
            "%s series covers only %d of %d weekdays", family.value, len(seen), N_LEVELS
        )
    if family is Family.QUASIBINOMIAL:
        fit = fit_quasi_glm(
            design,
            family,
            successes=daily["positives"],
            trials=daily["tests"],
            max_iterations=model.max_iterations,
            tol=model.tolerance,
        )
    else:
        fit = fit_quasi_glm(
            design,
            family,
            counts=daily["count"],
            max_iterations=model.max_iterations,
            tol=model.tolerance,
        )
    predictions = curve_prediction(design, fit, dates)
    out = daily.reset_index(drop=True).copy()
    out["fit"] = predictions["fit"].to_numpy()
    out["se"] = predictions["se"].to_numpy()
    return TrendFit(observations=out, design=design, fit=fit, knots=knots)


def _run_model(
    name: str, daily: pd.DataFrame, model: TrendModelSpec
) -> Tuple[pd.DataFrame, Dict[str, Any]]:
    try:
        result = fit_trend(daily, model)
    except TrendEngineError as exc:
        logger.error("%s model failed: %s", name, exc)
        failed = daily.reset_index(drop=True).copy()
        failed["fit"] = np.nan
        failed["se"] = np.nan
        return failed, {"status": "failed", "family": Family(model.family).value, "error": str(exc)}
    return result.observations, result.diagnostics()


def run_trends(
    spec: TrendSpec,
    *,
    evaluation_date: date | None = None,
    stamp: datetime | None = None,
) -> TrendRunResult:
    """Load the configured sources, fit both models and write the snapshot.

    Each model runs independently: a :class:`TrendEngineError` in one is
    logged and recorded in the result while the other still runs.
    """

    data = spec.data
    as_of = evaluation_date or data.evaluation_date
    if as_of is None:
        raise ValueError("an evaluation date is required")
    if not data.tests_source and not data.mortality_source:
        raise ValueError("at least one of tests_source or mortality_source is required")
    result = TrendRunResult(stamp=stamp or datetime.now(timezone.utc), evaluation_date=as_of)

    if data.tests_source:
        all_tests = normalise_test_records(
            load_records(data.tests_source),
            evaluation_date=as_of,
            policy=data.date_policy,
            earliest_valid=data.earliest_valid,
            imputation_lag_days=data.imputation_lag_days,
        )
        tests = filter_first_day(all_tests, data.first_day)
        table, summary = _run_model("positivity", daily_test_counts(tests), spec.positivity)
        result.tables[TESTS_TABLE] = table
        result.tables[STRATA_TABLE] = stratified_test_counts(tests)
        result.tables[ALL_TESTS_TABLE] = all_tests
        result.models["positivity"] = summary

    if data.mortality_source:
        mortality = load_mortality(
            data.mortality_source,
            first_day=data.first_day,
            date_column=data.mortality_date_column,
            count_column=data.mortality_count_column,
        )
        reported = mortality.dropna(subset=["count"])
        if len(reported) < len(mortality):
            logger.warning("dropping %d days without a mortality count", len(mortality) - len(reported))
        table, summary = _run_model("mortality", daily_event_counts(reported), spec.mortality)
        if mortality["date"].is_unique:
            # keep the source columns when the file already has one row per day
            table = mortality.merge(table[["date", "weekday", "fit", "se"]], on="date", how="left")
        result.tables[MORTALITY_TABLE] = table
        result.models["mortality"] = summary

    if spec.artifacts.out_dir:
        result.out_dir = artifacts.write_snapshot(
            spec.artifacts.out_dir, result.tables, result.metadata(spec.band_alpha)
        )
        logger.info("snapshot written to %s", result.out_dir)
    return result


__all__ = [
    "MODEL_TABLES",
    "TrendFit",
    "TrendRunResult",
    "fit_trend",
    "run_trends",
]
