"""Curve extraction and pointwise standard errors."""
from __future__ import annotations

from statistics import NormalDist
from typing import Sequence

import numpy as np
import pandas as pd
from scipy.special import expit

from .design import DesignMatrix
from .fitter import Family, FitResult

DEFAULT_ALPHA = 0.01


def curve_prediction(design: DesignMatrix, fit: FitResult, dates: Sequence) -> pd.DataFrame:
    """Return ``date``, ``fit`` and ``se`` for the curve columns only.

    ``fit = Xc @ beta_c`` and ``se = sqrt(diag(Xc @ S_c @ Xc.T))`` where
    ``S_c`` is the curve block of the dispersion-scaled covariance.  The
    diagonal is formed row by row so the ``n x n`` product is never built.
    """

    idx = design.curve_indices
    Xc = design.matrix[:, idx]
    beta = fit.coefficients[idx]
    cov = fit.scaled_covariance[np.ix_(idx, idx)]
    linear = Xc @ beta
    variance = np.einsum("ij,ij->i", Xc @ cov, Xc)
    se = np.sqrt(np.clip(variance, 0.0, None))
    return pd.DataFrame({"date": list(dates), "fit": linear, "se": se})


def inverse_link(family: Family, eta):
    """Apply the family's inverse link (expit or exp)."""

    eta = np.asarray(eta, dtype=float)
    if Family(family) is Family.QUASIBINOMIAL:
        return expit(eta)
    return np.exp(eta)


def confidence_band(
    predictions: pd.DataFrame, family: Family, alpha: float = DEFAULT_ALPHA
) -> pd.DataFrame:
    """Add ``estimate``, ``lower`` and ``upper`` on the response scale."""

    if not 0 < alpha < 1:
        raise ValueError("alpha must be in (0, 1)")
    z = NormalDist().inv_cdf(1 - alpha / 2)
    out = predictions.copy()
    out["estimate"] = inverse_link(family, out["fit"])
    out["lower"] = inverse_link(family, out["fit"] - z * out["se"])
    out["upper"] = inverse_link(family, out["fit"] + z * out["se"])
    return out


__all__ = ["curve_prediction", "confidence_band", "inverse_link", "DEFAULT_ALPHA"]
