"""Run specification and API response models."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..core.dataset import (
    EARLIEST_VALID,
    FIRST_DAY,
    IMPUTATION_LAG_DAYS,
    DateCleaningPolicy,
)
from ..smoothing.fitter import MAX_ITERATIONS, TOLERANCE, Family
from ..smoothing.splines import KnotPolicy
from ..smoothing.uncertainty import DEFAULT_ALPHA


@dataclass
class SnapshotResponse:
    metadata: Dict[str, Any]


@dataclass
class RowsResponse:
    rows: List[Dict[str, Any]]


class TrendDataSpec(BaseModel):
    """Where the raw records come from and how their dates are cleaned."""

    tests_source: Optional[str] = None
    mortality_source: Optional[str] = None
    first_day: date = FIRST_DAY
    earliest_valid: date = EARLIEST_VALID
    evaluation_date: Optional[date] = None
    date_policy: DateCleaningPolicy = DateCleaningPolicy.IMPUTE_FROM_REPORTED
    imputation_lag_days: int = Field(IMPUTATION_LAG_DAYS, ge=0)
    mortality_date_column: str = "Fecha"
    mortality_count_column: str = "IncMueSalud"


class TrendModelSpec(BaseModel):
    """Family and knot placement for one smoothing model."""

    family: Family
    knot_policy: KnotPolicy
    knots_per_30_days: float = Field(..., gt=0)
    max_iterations: int = Field(MAX_ITERATIONS, ge=1)
    tolerance: float = Field(TOLERANCE, gt=0)


def positivity_model() -> TrendModelSpec:
    return TrendModelSpec(
        family=Family.QUASIBINOMIAL,
        knot_policy=KnotPolicy.TRIMMED_QUANTILES,
        knots_per_30_days=3.0,
    )


def mortality_model() -> TrendModelSpec:
    return TrendModelSpec(
        family=Family.QUASIPOISSON,
        knot_policy=KnotPolicy.DF,
        knots_per_30_days=1.0,
    )


class ArtifactsSpec(BaseModel):
    """Configuration describing where to persist the snapshot."""

    out_dir: str | None = None


class TrendSpec(BaseModel):
    """Top-level specification for a trend run."""

    data: TrendDataSpec = Field(default_factory=TrendDataSpec)
    positivity: TrendModelSpec = Field(default_factory=positivity_model)
    mortality: TrendModelSpec = Field(default_factory=mortality_model)
    band_alpha: float = Field(DEFAULT_ALPHA, gt=0, lt=1)
    artifacts: ArtifactsSpec = Field(default_factory=ArtifactsSpec)


__all__ = [
    "SnapshotResponse",
    "RowsResponse",
    "TrendDataSpec",
    "TrendModelSpec",
    "ArtifactsSpec",
    "TrendSpec",
    "positivity_model",
    "mortality_model",
]
