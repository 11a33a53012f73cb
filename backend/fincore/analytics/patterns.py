from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from backend.fincore.analytics.seasonality import observed_weekday_factors
from backend.fincore.analytics.stats import mean, stddev


@dataclass(frozen=True)
class CashFlowPatterns:
    avg_daily_flow: float
    volatility: float
    positive_days: int
    negative_days: int
    longest_positive_streak: int
    longest_negative_streak: int
    seasonality: Dict[str, float]


def cash_flow_patterns(points: Sequence) -> CashFlowPatterns:
    if not points:
        return CashFlowPatterns(0.0, 0.0, 0, 0, 0, 0, {})

    amounts = [float(p.amount) for p in points]

    positive_days = 0
    negative_days = 0
    longest_positive = 0
    longest_negative = 0
    streak = 0
    streak_sign: Optional[str] = None

    # zero days neither extend nor break a streak
    for amount in amounts:
        if amount > 0:
            positive_days += 1
            streak = streak + 1 if streak_sign == "positive" else 1
            streak_sign = "positive"
            longest_positive = max(longest_positive, streak)
        elif amount < 0:
            negative_days += 1
            streak = streak + 1 if streak_sign == "negative" else 1
            streak_sign = "negative"
            longest_negative = max(longest_negative, streak)

    return CashFlowPatterns(
        avg_daily_flow=mean(amounts),
        volatility=stddev(amounts),
        positive_days=positive_days,
        negative_days=negative_days,
        longest_positive_streak=longest_positive,
        longest_negative_streak=longest_negative,
        seasonality=observed_weekday_factors(points),
    )
