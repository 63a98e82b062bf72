"""Error types for trend runs."""
from __future__ import annotations


class TrendEngineError(Exception):
    """Base exception for a failed model run."""


class InsufficientDataError(TrendEngineError):
    """Too few observations for the requested knot count."""

    def __init__(self, n_rows: int, n_knots: int, detail: str | None = None) -> None:
        self.n_rows = n_rows
        self.n_knots = n_knots
        message = (
            f"insufficient data for requested knot count: "
            f"{n_rows} rows, {n_knots} interior knots"
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class NonConvergenceError(TrendEngineError):
    """The IRLS solver did not converge within its iteration budget."""

    def __init__(self, family: str, n_rows: int, iterations: int) -> None:
        self.family = family
        self.n_rows = n_rows
        self.iterations = iterations
        super().__init__(
            f"{family} fit did not converge after {iterations} iterations "
            f"({n_rows} rows)"
        )


class UndefinedRateWarning(UserWarning):
    """A day with zero trials has no defined rate."""
