"""Day-of-week effect coding."""
from __future__ import annotations

from datetime import date
from enum import IntEnum
from typing import Iterable

import numpy as np
import pandas as pd


class Weekday(IntEnum):
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def of(cls, day: date) -> "Weekday":
        """Return the weekday of ``day`` (Sunday-first numbering)."""

        return cls(day.isoweekday() % 7)


N_LEVELS = len(Weekday)

# Sum-to-zero coding: the first six levels map to unit vectors and Saturday to
# all -1, so every column sums to zero over a full week.
WEEKDAY_CONTRASTS = np.vstack([np.eye(N_LEVELS - 1), -np.ones((1, N_LEVELS - 1))])

CONTRAST_NAMES = [f"wd_{day.name.lower()}" for day in list(Weekday)[:-1]]


def weekdays_of(dates: Iterable) -> list[Weekday]:
    """Map calendar dates (or timestamps) to :class:`Weekday` values."""

    return [Weekday.of(pd.Timestamp(d).date()) for d in dates]


def encode_weekdays(labels: Iterable[Weekday | int]) -> np.ndarray:
    """Return the ``n x 6`` sum-to-zero contrast block for ``labels``."""

    idx = np.fromiter((int(Weekday(label)) for label in labels), dtype=int)
    return WEEKDAY_CONTRASTS[idx]
