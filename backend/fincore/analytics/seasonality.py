from __future__ import annotations

from typing import Dict, List, Sequence

from backend.fincore.analytics.stats import group_by, mean

# date.weekday(): Monday == 0
WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
NEUTRAL_FACTOR = 1.0

SeasonalFactors = Dict[int, float]


def weekday_factors(points: Sequence) -> SeasonalFactors:
    """
    Multiplicative day-of-week factors: weekday average / overall average.

    Weekdays never seen in history stay neutral, and so does everything
    when the overall average is zero.
    """
    factors: SeasonalFactors = {day: NEUTRAL_FACTOR for day in range(7)}
    if not points:
        return factors

    overall = mean([float(p.amount) for p in points])
    if overall == 0:
        return factors

    for day, group in group_by(points, lambda p: p.date.weekday()).items():
        factors[day] = mean([float(p.amount) for p in group]) / overall
    return factors


def observed_weekday_factors(points: Sequence) -> Dict[str, float]:
    """Factors keyed by weekday name, limited to weekdays present in history."""
    factors = weekday_factors(points)
    observed: List[int] = sorted({p.date.weekday() for p in points})
    return {WEEKDAY_NAMES[day]: factors[day] for day in observed}
