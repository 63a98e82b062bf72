"""Quasi-likelihood GLM fitting with a dispersion floor."""
from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence, Tuple

import numpy as np
import statsmodels.api as sm
from statsmodels.tools.sm_exceptions import ConvergenceWarning

from ..errors import InsufficientDataError, NonConvergenceError, UndefinedRateWarning
from .design import DesignMatrix

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 100
TOLERANCE = 1e-8


class Family(str, Enum):
    """Supported regression families."""

    QUASIBINOMIAL = "quasibinomial"
    QUASIPOISSON = "quasipoisson"

    def sm_family(self) -> sm.families.Family:
        if self is Family.QUASIBINOMIAL:
            return sm.families.Binomial()
        return sm.families.Poisson()


@dataclass(frozen=True, eq=False)
class FitResult:
    coefficients: np.ndarray
    unscaled_covariance: np.ndarray
    scaled_covariance: np.ndarray
    dispersion: float
    family: Family
    n_rows: int
    iterations: int
    converged: bool = True
    aliased: Tuple[str, ...] = ()


def _identifiable_columns(X: np.ndarray, candidates: Sequence[int]) -> List[int]:
    """Indices of the columns of ``X`` left after dropping aliased ``candidates``.

    Columns outside ``candidates`` are always kept.  Each candidate, in column
    order, is kept only when it raises the rank of the kept set.
    """

    if X.shape[0] == 0:
        return list(range(X.shape[1]))
    candidates = sorted(int(j) for j in candidates)
    kept = [j for j in range(X.shape[1]) if j not in candidates]
    rank = int(np.linalg.matrix_rank(X[:, kept])) if kept else 0
    for j in candidates:
        trial = sorted(kept + [j])
        trial_rank = int(np.linalg.matrix_rank(X[:, trial]))
        if trial_rank > rank:
            kept, rank = trial, trial_rank
    return kept


def _rate_response(successes: np.ndarray, trials: np.ndarray) -> np.ndarray:
    if np.any(successes < 0) or np.any(trials < successes):
        raise ValueError("rate response needs 0 <= successes <= trials")
    return np.column_stack([successes, trials - successes])


def fit_quasi_glm(
    design: DesignMatrix,
    family: Family,
    *,
    successes=None,
    trials=None,
    counts=None,
    max_iterations: int = MAX_ITERATIONS,
    tol: float = TOLERANCE,
) -> FitResult:
    """Fit ``response ~ -1 + design`` by IRLS and scale the covariance.

    Parameters
    ----------
    design:
        Assembled design matrix; no intercept is added.
    family:
        ``QUASIBINOMIAL`` takes ``successes`` and ``trials``;
        ``QUASIPOISSON`` takes ``counts``.
    max_iterations, tol:
        IRLS iteration budget and deviance tolerance.

    The dispersion is the Pearson chi-square over the residual degrees of
    freedom; the reported covariance is the unscaled covariance times
    ``max(1, dispersion)``.
    """

    family = Family(family)
    X = design.matrix
    if family is Family.QUASIBINOMIAL:
        if successes is None or trials is None:
            raise ValueError("quasibinomial fit needs successes and trials")
        successes = np.asarray(successes, dtype=float)
        trials = np.asarray(trials, dtype=float)
        endog = _rate_response(successes, trials)
        keep = trials > 0
        if not keep.all():
            n_zero = int((~keep).sum())
            logger.warning("excluding %d zero-trial rows from the %s fit", n_zero, family.value)
            warnings.warn(
                f"{n_zero} rows have zero trials and an undefined rate",
                UndefinedRateWarning,
                stacklevel=2,
            )
        endog, X = endog[keep], X[keep]
    else:
        if counts is None:
            raise ValueError("quasipoisson fit needs counts")
        endog = np.asarray(counts, dtype=float)
        if np.any(endog < 0):
            raise ValueError("counts must be non-negative")

    kept = _identifiable_columns(X, design.nuisance_indices)
    aliased = tuple(design.column_names[j] for j in range(design.n_columns) if j not in kept)
    if aliased:
        logger.warning(
            "dropping aliased columns from the %s fit: %s", family.value, ", ".join(aliased)
        )
    X = X[:, kept]

    n_rows, n_params = X.shape
    if n_rows <= n_params:
        raise InsufficientDataError(
            n_rows, design.n_knots, f"need more than {n_params} rows to estimate dispersion"
        )

    model = sm.GLM(endog, X, family=family.sm_family())
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        res = model.fit(method="IRLS", maxiter=max_iterations, tol=tol, scale="X2")
    iterations = int(res.fit_history.get("iteration", max_iterations))
    if not res.converged:
        raise NonConvergenceError(family.value, n_rows, iterations)

    dispersion = float(res.pearson_chi2 / res.df_resid)
    # aliased columns get a zero coefficient and zero covariance
    coefficients = np.zeros(design.n_columns)
    coefficients[kept] = np.asarray(res.params, dtype=float)
    unscaled = np.zeros((design.n_columns, design.n_columns))
    unscaled[np.ix_(kept, kept)] = np.asarray(res.normalized_cov_params, dtype=float)
    scaled = unscaled * max(1.0, dispersion)
    logger.info(
        "%s fit: %d rows, %d columns, %d knots, dispersion=%.3f, iterations=%d",
        family.value,
        n_rows,
        n_params,
        design.n_knots,
        dispersion,
        iterations,
    )
    return FitResult(
        coefficients=coefficients,
        unscaled_covariance=unscaled,
        scaled_covariance=scaled,
        dispersion=dispersion,
        family=family,
        n_rows=n_rows,
        iterations=iterations,
        converged=True,
        aliased=aliased,
    )


__all__ = ["Family", "FitResult", "fit_quasi_glm"]
