"""Natural cubic spline basis and knot placement rules."""
from __future__ import annotations

from enum import Enum
from typing import Sequence, Tuple

import numpy as np
from scipy.interpolate import BSpline

from ..errors import InsufficientDataError

DEGREE = 3


class KnotPolicy(str, Enum):
    """How interior knots are chosen from the time axis."""

    TRIMMED_QUANTILES = "trimmed_quantiles"
    DF = "df"


def _target_df(n: int, knots_per_30_days: float) -> int:
    # round() is half-to-even, matching R's round
    return int(round(knots_per_30_days * n / 30))


def trimmed_quantile_knots(x: Sequence[float], knots_per_30_days: float = 3.0) -> np.ndarray:
    """Return quantile knots without the boundaries and the most recent knot.

    ``df = round(knots_per_30_days * n / 30)`` and ``nknots = df - 1``.  The
    ``nknots + 2`` equally spaced quantile levels in ``[0, 1]`` lose their
    first, second-to-last and last entries; the remaining levels are mapped to
    quantiles of ``x``.  Dropping the second-to-last candidate keeps the
    basis stable where the latest days are still sparsely reported.
    """

    x = np.asarray(x, dtype=float)
    n = len(x)
    nknots = _target_df(n, knots_per_30_days) - 1
    if nknots < 1:
        raise InsufficientDataError(n, max(nknots, 0), "knot rule needs df >= 2")
    levels = np.linspace(0.0, 1.0, nknots + 2)
    levels = np.delete(levels, [0, nknots, nknots + 1])
    return np.quantile(x, levels)


def quantile_knots(x: Sequence[float], df: int) -> np.ndarray:
    """Return ``df - 1`` interior knots at equally spaced quantiles of ``x``."""

    x = np.asarray(x, dtype=float)
    if df < 1:
        raise InsufficientDataError(len(x), max(df - 1, 0), "knot rule needs df >= 1")
    if len(x) == 0:
        return np.array([])
    levels = np.linspace(0.0, 1.0, df + 1)[1:-1]
    return np.quantile(x, levels)


def df_quantile_knots(x: Sequence[float], knots_per_30_days: float = 1.0) -> np.ndarray:
    """Knots for ``df = round(knots_per_30_days * n / 30)``."""

    return quantile_knots(x, _target_df(len(x), knots_per_30_days))


def select_knots(
    x: Sequence[float], policy: KnotPolicy, knots_per_30_days: float
) -> np.ndarray:
    """Dispatch to the knot rule named by ``policy``."""

    if policy == KnotPolicy.TRIMMED_QUANTILES:
        return trimmed_quantile_knots(x, knots_per_30_days)
    if policy == KnotPolicy.DF:
        return df_quantile_knots(x, knots_per_30_days)
    raise ValueError(f"unknown knot policy: {policy}")


class NaturalSplineBasis:
    """Natural cubic spline basis without an intercept column.

    The cubic B-spline basis on the augmented knot vector is reduced by
    dropping its first function and projecting onto the null space of the
    second derivative at both boundary knots, so every column is linear
    beyond the boundaries.  The basis has ``len(knots) + 1`` columns.
    """

    def __init__(self, knots: Sequence[float], boundary_knots: Tuple[float, float]) -> None:
        lo, hi = float(boundary_knots[0]), float(boundary_knots[1])
        if not lo < hi:
            raise ValueError("boundary knots must satisfy lo < hi")
        knots = np.asarray(knots, dtype=float).ravel()
        if knots.size and np.any(np.diff(knots) <= 0):
            raise ValueError("knots must be strictly increasing")
        if knots.size and (knots[0] <= lo or knots[-1] >= hi):
            raise ValueError("knots must lie strictly inside the boundary knots")
        self.knots = knots
        self.boundary_knots = (lo, hi)
        self._augmented = np.concatenate(
            [np.repeat(lo, DEGREE + 1), knots, np.repeat(hi, DEGREE + 1)]
        )
        n_raw = len(self._augmented) - DEGREE - 1
        self._bspline = BSpline(self._augmented, np.eye(n_raw), DEGREE, extrapolate=True)
        const = self._bspline.derivative(2)(np.array([lo, hi]))[:, 1:]
        q, _ = np.linalg.qr(const.T, mode="complete")
        self._projection = q[:, 2:]

    @property
    def n_columns(self) -> int:
        return self._projection.shape[1]

    def _evaluate(self, x: np.ndarray, nu: int = 0) -> np.ndarray:
        spline = self._bspline if nu == 0 else self._bspline.derivative(nu)
        return spline(x)[:, 1:] @ self._projection

    def transform(self, x: Sequence[float]) -> np.ndarray:
        """Evaluate the basis at ``x``; outside the boundaries it is linear."""

        x = np.asarray(x, dtype=float).ravel()
        lo, hi = self.boundary_knots
        out = np.empty((len(x), self.n_columns))
        inside = (x >= lo) & (x <= hi)
        if inside.any():
            out[inside] = self._evaluate(x[inside])
        for edge, mask in ((lo, x < lo), (hi, x > hi)):
            if mask.any():
                at = np.array([edge])
                value = self._evaluate(at)
                slope = self._evaluate(at, nu=1)
                out[mask] = value + (x[mask] - edge)[:, None] * slope
        return out


def natural_spline_basis(
    x: Sequence[float],
    *,
    knots: Sequence[float] | None = None,
    df: int | None = None,
) -> Tuple[np.ndarray, NaturalSplineBasis]:
    """Build a natural spline basis over the range of ``x`` and evaluate it.

    Either explicit interior ``knots`` or a target ``df`` (``df - 1`` knots at
    equally spaced quantiles) must be given.  Raises
    :class:`InsufficientDataError` when ``x`` cannot support the knot count.
    """

    x = np.asarray(x, dtype=float).ravel()
    n = len(x)
    if knots is None:
        if df is None:
            raise ValueError("either knots or df is required")
        knots = quantile_knots(x, df)
    knots = np.asarray(knots, dtype=float).ravel()
    if n < len(knots) + 2:
        raise InsufficientDataError(n, len(knots))
    lo, hi = float(np.min(x)), float(np.max(x))
    if lo == hi:
        raise InsufficientDataError(n, len(knots), "time axis has no spread")
    basis = NaturalSplineBasis(knots, (lo, hi))
    return basis.transform(x), basis


__all__ = [
    "KnotPolicy",
    "NaturalSplineBasis",
    "df_quantile_knots",
    "natural_spline_basis",
    "quantile_knots",
    "select_knots",
    "trimmed_quantile_knots",
]
