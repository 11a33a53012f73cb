from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Sequence

from backend.fincore.analytics.stats import mean


@dataclass(frozen=True)
class ForecastEvaluation:
    log_id: str
    window_start: date
    window_end: date
    predicted_total: float
    actual_total: float

    @property
    def absolute_error(self) -> float:
        return abs(self.predicted_total - self.actual_total)

    @property
    def percent_error(self) -> float:
        if self.actual_total == 0:
            return 0.0
        return self.absolute_error / abs(self.actual_total) * 100


@dataclass(frozen=True)
class ForecastAccuracy:
    accuracy: float
    mae: float
    mape: float
    evaluations: int
    details: List[ForecastEvaluation] = field(default_factory=list)


def score_accuracy(evaluations: Sequence[ForecastEvaluation]) -> ForecastAccuracy:
    if not evaluations:
        return ForecastAccuracy(accuracy=0.0, mae=0.0, mape=0.0, evaluations=0)

    mae = mean([e.absolute_error for e in evaluations])
    mape = mean([e.percent_error for e in evaluations])
    return ForecastAccuracy(
        accuracy=max(0.0, 1 - mape / 100),
        mae=mae,
        mape=mape,
        evaluations=len(evaluations),
        details=list(evaluations),
    )
