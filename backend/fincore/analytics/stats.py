"""
Shared numeric primitives for forecasting and anomaly detection.

Everything here is pure: no IO, no tenant awareness. Degenerate input
(empty series, zero variance) collapses to 0 instead of raising or
producing NaN.
"""

from __future__ import annotations

import statistics
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Iterable, List, Sequence, TypeVar

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


@dataclass(frozen=True)
class RegressionModel:
    slope: float
    intercept: float
    r_squared: float


ZERO_MODEL = RegressionModel(slope=0.0, intercept=0.0, r_squared=0.0)


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return float(statistics.fmean(values))


def variance(values: Sequence[float]) -> float:
    # population variance (divide by n)
    if not values:
        return 0.0
    return float(statistics.pvariance(values))


def stddev(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return float(statistics.pstdev(values))


def zscore(value: float, mu: float, sigma: float) -> float:
    if sigma == 0:
        return 0.0
    return (value - mu) / sigma


def day_offsets(points: Sequence) -> List[float]:
    """Whole-day offsets of each point's `date` from the first point's date."""
    if not points:
        return []
    first = points[0].date
    return [float((p.date - first).days) for p in points]


def linear_regression(points: Sequence) -> RegressionModel:
    """
    Least-squares fit of `amount` against day offset from the first point.

    `points` are objects with `date` and `amount`, sorted oldest -> newest.
    """
    n = len(points)
    if n < 2:
        return ZERO_MODEL

    x = day_offsets(points)
    y = [float(p.amount) for p in points]
    x_mean = mean(x)
    y_mean = mean(y)

    num = sum((x[i] - x_mean) * (y[i] - y_mean) for i in range(n))
    den = sum((x[i] - x_mean) ** 2 for i in range(n))
    if den == 0:
        return ZERO_MODEL

    slope = num / den
    intercept = y_mean - slope * x_mean

    ss_res = sum((y[i] - (slope * x[i] + intercept)) ** 2 for i in range(n))
    ss_tot = sum((yi - y_mean) ** 2 for yi in y)
    r_squared = 1 - (ss_res / ss_tot) if ss_tot != 0 else 0.0

    return RegressionModel(
        slope=slope,
        intercept=intercept,
        r_squared=clamp(r_squared, 0.0, 1.0),
    )


def group_by(items: Iterable[T], key_fn: Callable[[T], K]) -> Dict[K, List[T]]:
    # dicts keep insertion order, so groups come out in encounter order
    groups: Dict[K, List[T]] = {}
    for item in items:
        groups.setdefault(key_fn(item), []).append(item)
    return groups


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
