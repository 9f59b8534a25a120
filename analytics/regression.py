"""Least-squares trend fitting for spend series."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import numpy as np

__all__ = ["LinearFit", "fit_linear_trend"]


@dataclass(frozen=True)
class LinearFit:
    slope: float
    intercept: float

    def predict(self, x: float) -> float:
        """Evaluate the line at ``x``; spend is never forecast below zero."""

        return max(0.0, self.slope * x + self.intercept)


def fit_linear_trend(values: Iterable[float]) -> LinearFit:
    """Fit ``y = slope * x + intercept`` over ``values`` indexed ``0..n-1``.

    Uses the closed-form normal equations. When the system is singular
    (``n < 2``) the fit degrades to a flat line through the mean, or zero
    for an empty series.
    """

    y = np.asarray(list(values), dtype=float)
    n = float(len(y))
    if n == 0:
        return LinearFit(0.0, 0.0)

    x = np.arange(len(y), dtype=float)
    sum_x = float(x.sum())
    sum_y = float(y.sum())
    sum_xy = float((x * y).sum())
    sum_xx = float((x * x).sum())

    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        return LinearFit(0.0, sum_y / n)

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    return LinearFit(float(slope), float(intercept))
