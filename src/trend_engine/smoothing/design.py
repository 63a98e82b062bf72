"""Design matrix assembly from named column blocks."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np
import pandas as pd

from .splines import NaturalSplineBasis, natural_spline_basis
from .weekday import CONTRAST_NAMES, encode_weekdays, weekdays_of

EPOCH = pd.Timestamp("1970-01-01")

SPLINE_BLOCK = "spline"
BASELINE_BLOCK = "baseline"
WEEKDAY_BLOCK = "weekday"
CURVE_BLOCKS = (SPLINE_BLOCK, BASELINE_BLOCK)


def to_numeric_axis(dates: Iterable) -> np.ndarray:
    """Return days since 1970-01-01 for each date."""

    stamps = pd.to_datetime(pd.Series(list(dates)))
    return ((stamps - EPOCH).dt.days).to_numpy(dtype=float)


@dataclass(frozen=True, eq=False)
class DesignMatrix:
    """Regression matrix plus the column range of each named block."""

    matrix: np.ndarray
    blocks: Dict[str, slice]
    column_names: List[str]
    curve_blocks: Tuple[str, ...] = CURVE_BLOCKS
    n_knots: int = 0
    spline: NaturalSplineBasis | None = field(default=None, repr=False)

    @property
    def n_rows(self) -> int:
        return self.matrix.shape[0]

    @property
    def n_columns(self) -> int:
        return self.matrix.shape[1]

    def block(self, name: str) -> np.ndarray:
        return self.matrix[:, self.blocks[name]]

    def indices(self, names: Sequence[str]) -> np.ndarray:
        parts = [np.arange(self.n_columns)[self.blocks[name]] for name in names]
        return np.concatenate(parts) if parts else np.array([], dtype=int)

    @property
    def curve_indices(self) -> np.ndarray:
        return self.indices(self.curve_blocks)

    @property
    def nuisance_indices(self) -> np.ndarray:
        others = [name for name in self.blocks if name not in self.curve_blocks]
        return self.indices(others)


def assemble_design(
    blocks: Sequence[Tuple[str, np.ndarray, Sequence[str]]],
    curve_blocks: Sequence[str] = CURVE_BLOCKS,
    *,
    n_knots: int = 0,
    spline: NaturalSplineBasis | None = None,
) -> DesignMatrix:
    """Concatenate ``(name, matrix, column_names)`` blocks column-wise."""

    if not blocks:
        raise ValueError("at least one block is required")
    n_rows = {np.asarray(m).shape[0] for _, m, _ in blocks}
    if len(n_rows) != 1:
        raise ValueError(f"blocks disagree on row count: {sorted(n_rows)}")
    slices: Dict[str, slice] = {}
    names: List[str] = []
    start = 0
    for name, mat, cols in blocks:
        if name in slices:
            raise ValueError(f"duplicate block name: {name}")
        width = np.asarray(mat).shape[1]
        if len(cols) != width:
            raise ValueError(f"block {name} has {width} columns but {len(cols)} names")
        slices[name] = slice(start, start + width)
        names.extend(cols)
        start += width
    missing = [name for name in curve_blocks if name not in slices]
    if missing:
        raise ValueError(f"unknown curve blocks: {missing}")
    matrix = np.hstack([np.asarray(m, dtype=float) for _, m, _ in blocks])
    return DesignMatrix(
        matrix=matrix,
        blocks=slices,
        column_names=names,
        curve_blocks=tuple(curve_blocks),
        n_knots=n_knots,
        spline=spline,
    )


def build_trend_design(
    dates: Sequence,
    *,
    knots: Sequence[float] | None = None,
    df: int | None = None,
) -> DesignMatrix:
    """Spline, average-weekday baseline and weekday contrast blocks for ``dates``.

    The baseline column carries the level that the sum-to-zero weekday coding
    leaves free; together with the spline block it forms the reported curve.
    """

    x = to_numeric_axis(dates)
    spline_matrix, basis = natural_spline_basis(x, knots=knots, df=df)
    weekday_matrix = encode_weekdays(weekdays_of(dates))
    spline_names = [f"ns{i + 1}" for i in range(basis.n_columns)]
    return assemble_design(
        [
            (SPLINE_BLOCK, spline_matrix, spline_names),
            (BASELINE_BLOCK, np.ones((len(x), 1)), ["baseline"]),
            (WEEKDAY_BLOCK, weekday_matrix, CONTRAST_NAMES),
        ],
        n_knots=len(basis.knots),
        spline=basis,
    )
