from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime
from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backend.fincore import config
from backend.fincore.db import get_db
from backend.fincore.errors import InsufficientHistoryError
from backend.fincore.forecast.engine import MULTI_PERIOD_HORIZONS, ForecastReport, report_as_dict
from backend.fincore.forecast.scenarios import Scenario
from backend.fincore.services import forecast_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/forecasts", tags=["forecasts"])


class ForecastPointOut(BaseModel):
    date: str
    predicted: float
    lower_bound: float
    upper_bound: float
    confidence: float


class ForecastSummaryOut(BaseModel):
    expected_total: float
    trend: Literal["increasing", "decreasing", "stable"]
    risk: Literal["low", "medium", "high"]
    confidence: float


class ForecastOut(BaseModel):
    period: str
    period_days: int
    points: List[ForecastPointOut]
    summary: ForecastSummaryOut
    recommendations: List[str]
    history_points: int


class MultiPeriodForecastOut(BaseModel):
    forecasts: Dict[str, ForecastOut]
    generated_at: datetime


class ScenarioIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    revenue_change_pct: float = Field(default=0.0, ge=-100, le=1000)
    expense_change_pct: float = Field(default=0.0, ge=-1000, le=100)


class ScenarioAnalysisIn(BaseModel):
    scenarios: List[ScenarioIn] = Field(..., min_length=1)


class ScenarioResultOut(BaseModel):
    scenario: str
    total_cash_flow: float
    negative_days: int
    impact: float
    impact_pct: float


class ScenarioAnalysisOut(BaseModel):
    base_total: float
    scenarios: List[ScenarioResultOut]


class ForecastAccuracyOut(BaseModel):
    accuracy: float
    mae: float
    mape: float
    evaluations: int


class CashFlowPatternsOut(BaseModel):
    avg_daily_flow: float
    volatility: float
    positive_days: int
    negative_days: int
    longest_positive_streak: int
    longest_negative_streak: int
    seasonality: Dict[str, float]


def _forecast_out(report: ForecastReport) -> ForecastOut:
    return ForecastOut(**report_as_dict(report))


def _insufficient_history(tenant_id: str, exc: InsufficientHistoryError) -> HTTPException:
    logger.warning("forecast rejected tenant=%s: %s", tenant_id, exc)
    return HTTPException(status_code=422, detail=str(exc))


@router.get("/{tenant_id}", response_model=ForecastOut)
def forecast(
    tenant_id: str,
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
) -> ForecastOut:
    try:
        report = forecast_service.forecast_cash_flow(db, tenant_id, days)
    except InsufficientHistoryError as exc:
        raise _insufficient_history(tenant_id, exc) from exc
    return _forecast_out(report)


@router.get("/{tenant_id}/multi-period", response_model=MultiPeriodForecastOut)
def multi_period_forecast(tenant_id: str, db: Session = Depends(get_db)) -> MultiPeriodForecastOut:
    try:
        result = forecast_service.generate_multi_period_forecast(db, tenant_id)
    except InsufficientHistoryError as exc:
        raise _insufficient_history(tenant_id, exc) from exc
    return MultiPeriodForecastOut(
        forecasts={f"{h}d": _forecast_out(result[f"{h}d"]) for h in MULTI_PERIOD_HORIZONS},
        generated_at=result["generated_at"],
    )


@router.post("/{tenant_id}/scenarios", response_model=ScenarioAnalysisOut)
def scenario_analysis(
    tenant_id: str,
    req: ScenarioAnalysisIn,
    db: Session = Depends(get_db),
) -> ScenarioAnalysisOut:
    scenarios = [
        Scenario(
            name=s.name,
            revenue_change_pct=s.revenue_change_pct,
            expense_change_pct=s.expense_change_pct,
        )
        for s in req.scenarios
    ]
    try:
        analysis = forecast_service.run_scenario_analysis(db, tenant_id, scenarios)
    except InsufficientHistoryError as exc:
        raise _insufficient_history(tenant_id, exc) from exc
    return ScenarioAnalysisOut(**asdict(analysis))


@router.get("/{tenant_id}/accuracy", response_model=ForecastAccuracyOut)
def forecast_accuracy(
    tenant_id: str,
    days: Optional[int] = Query(None, ge=1, le=365),
    db: Session = Depends(get_db),
) -> ForecastAccuracyOut:
    result = forecast_service.get_forecast_accuracy(
        db, tenant_id, days if days is not None else config.forecast_accuracy_days()
    )
    return ForecastAccuracyOut(
        accuracy=result.accuracy,
        mae=result.mae,
        mape=result.mape,
        evaluations=result.evaluations,
    )


@router.get("/{tenant_id}/patterns", response_model=CashFlowPatternsOut)
def cash_flow_patterns(tenant_id: str, db: Session = Depends(get_db)) -> CashFlowPatternsOut:
    return CashFlowPatternsOut(**asdict(forecast_service.analyze_cash_flow_patterns(db, tenant_id)))
