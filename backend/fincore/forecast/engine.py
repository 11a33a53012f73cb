"""
Cash flow forecasting.

Model:
- trend: least-squares line over the daily net cash flow history, with x
  measured in days from the FIRST historical point (the line is never
  re-anchored at the forecast boundary)
- seasonality: multiplicative day-of-week factor
- uncertainty: 95% band from the historical standard deviation

Everything in this module is pure; loading history and writing the
prediction log happen in `services.forecast_service`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Literal, Sequence

from backend.fincore.analytics.seasonality import NEUTRAL_FACTOR, weekday_factors
from backend.fincore.analytics.stats import RegressionModel, clamp, linear_regression, mean, stddev
from backend.fincore.errors import InsufficientHistoryError

Trend = Literal["increasing", "decreasing", "stable"]
Risk = Literal["low", "medium", "high"]

MIN_HISTORY_POINTS = 14
MIN_HISTORY_DAYS = 90
HISTORY_MULTIPLIER = 3

Z_95 = 1.96

# empirically chosen, no derivation behind them
TREND_SLOPE_THRESHOLD = 100.0       # currency units per day
HIGH_RISK_NEGATIVE_SHARE = 0.5
MEDIUM_RISK_NEGATIVE_SHARE = 0.2
LOW_CONFIDENCE_THRESHOLD = 0.5

MULTI_PERIOD_HORIZONS = (30, 60, 90)
SCENARIO_HORIZON_DAYS = 90


@dataclass(frozen=True)
class ForecastPoint:
    date: date
    predicted: float
    lower_bound: float
    upper_bound: float
    confidence: float


@dataclass(frozen=True)
class ForecastSummary:
    expected_total: float
    trend: Trend
    risk: Risk
    confidence: float


@dataclass(frozen=True)
class ForecastReport:
    period_days: int
    points: List[ForecastPoint]
    summary: ForecastSummary
    recommendations: List[str]
    history_points: int = 0
    model: RegressionModel = field(default_factory=lambda: RegressionModel(0.0, 0.0, 0.0))

    @property
    def period(self) -> str:
        return f"{self.period_days}d"


def history_window_days(horizon_days: int) -> int:
    return max(horizon_days * HISTORY_MULTIPLIER, MIN_HISTORY_DAYS)


def classify_trend(slope: float) -> Trend:
    if slope > TREND_SLOPE_THRESHOLD:
        return "increasing"
    if slope < -TREND_SLOPE_THRESHOLD:
        return "decreasing"
    return "stable"


def classify_risk(points: Sequence[ForecastPoint], horizon_days: int) -> Risk:
    negative_days = sum(1 for p in points if p.predicted < 0)
    if negative_days > horizon_days * HIGH_RISK_NEGATIVE_SHARE:
        return "high"
    if negative_days > horizon_days * MEDIUM_RISK_NEGATIVE_SHARE:
        return "medium"
    return "low"


def recommendations_for(risk: Risk, trend: Trend, confidence: float) -> List[str]:
    recs: List[str] = []

    if risk == "high":
        recs.append("High risk of negative cash flow detected")
        recs.append("Consider accelerating receivables collection")
        recs.append("Review and postpone non-essential expenses")
    elif risk == "medium":
        recs.append("Monitor cash flow closely over the next few weeks")
        recs.append("Ensure timely invoice payments")

    if trend == "decreasing":
        recs.append("Declining cash flow trend detected")
        recs.append("Review revenue streams and cost structure")
    elif trend == "increasing":
        recs.append("Positive cash flow trend - consider investing surplus")

    if confidence < LOW_CONFIDENCE_THRESHOLD:
        recs.append("Low forecast confidence due to volatile historical data")
        recs.append("Consider additional data sources for accuracy")

    return recs


def confidence_band(confidence: float) -> str:
    if confidence > 0.7:
        return "HIGH"
    if confidence > 0.5:
        return "MEDIUM"
    return "LOW"


def build_forecast(history: Sequence, horizon_days: int) -> ForecastReport:
    """
    Project `horizon_days` calendar days after the last historical point.

    `history` is a date-sorted sequence of CashFlowPoint-like objects.
    Raises InsufficientHistoryError below MIN_HISTORY_POINTS.
    """
    if horizon_days < 1:
        raise ValueError("horizon_days must be >= 1")
    if len(history) < MIN_HISTORY_POINTS:
        raise InsufficientHistoryError(points=len(history), required=MIN_HISTORY_POINTS)

    model = linear_regression(history)
    factors = weekday_factors(history)
    sigma = stddev([float(p.amount) for p in history])
    margin = Z_95 * sigma * math.sqrt(1 + 1 / len(history))
    confidence = clamp(model.r_squared, 0.0, 1.0)

    first_date = history[0].date
    last_date = history[-1].date

    points: List[ForecastPoint] = []
    for i in range(1, horizon_days + 1):
        forecast_date = last_date + timedelta(days=i)
        x = (forecast_date - first_date).days
        base = model.slope * x + model.intercept
        predicted = base * factors.get(forecast_date.weekday(), NEUTRAL_FACTOR)
        points.append(
            ForecastPoint(
                date=forecast_date,
                predicted=predicted,
                lower_bound=predicted - margin,
                upper_bound=predicted + margin,
                confidence=confidence,
            )
        )

    avg_confidence = mean([p.confidence for p in points])
    trend = classify_trend(model.slope)
    risk = classify_risk(points, horizon_days)

    return ForecastReport(
        period_days=horizon_days,
        points=points,
        summary=ForecastSummary(
            expected_total=sum(p.predicted for p in points),
            trend=trend,
            risk=risk,
            confidence=avg_confidence,
        ),
        recommendations=recommendations_for(risk, trend, avg_confidence),
        history_points=len(history),
        model=model,
    )


def report_as_dict(report: ForecastReport) -> dict:
    return {
        "period": report.period,
        "period_days": report.period_days,
        "points": [
            {
                "date": p.date.isoformat(),
                "predicted": p.predicted,
                "lower_bound": p.lower_bound,
                "upper_bound": p.upper_bound,
                "confidence": p.confidence,
            }
            for p in report.points
        ],
        "summary": {
            "expected_total": report.summary.expected_total,
            "trend": report.summary.trend,
            "risk": report.summary.risk,
            "confidence": report.summary.confidence,
        },
        "recommendations": list(report.recommendations),
        "history_points": report.history_points,
    }
