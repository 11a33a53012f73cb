from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from backend.fincore.analytics.cash_flow import cash_flow_between, historical_cash_flow
from backend.fincore.analytics.patterns import CashFlowPatterns, cash_flow_patterns
from backend.fincore.forecast.accuracy import ForecastAccuracy, ForecastEvaluation, score_accuracy
from backend.fincore.forecast.engine import (
    MULTI_PERIOD_HORIZONS,
    SCENARIO_HORIZON_DAYS,
    ForecastReport,
    build_forecast,
    history_window_days,
)
from backend.fincore.forecast.scenarios import Scenario, ScenarioAnalysis, apply_scenarios
from backend.fincore.records import AsOf, RecordStore, as_of_date
from backend.fincore.services import prediction_log_service
from backend.fincore.services.record_store import SqlRecordStore

logger = logging.getLogger(__name__)

PATTERN_WINDOW_DAYS = 180


def _store(db: Session, store: Optional[RecordStore]) -> RecordStore:
    return store if store is not None else SqlRecordStore(db)


def forecast_cash_flow(
    db: Session,
    tenant_id: str,
    horizon_days: int = 30,
    *,
    store: Optional[RecordStore] = None,
    as_of: AsOf = None,
) -> ForecastReport:
    window_days = history_window_days(horizon_days)
    history = historical_cash_flow(_store(db, store), tenant_id, window_days, as_of=as_of)

    report = build_forecast(history, horizon_days)

    prediction_log_service.log_forecast(db, tenant_id, report, history_window_days=window_days)
    db.commit()

    logger.info(
        "forecast tenant=%s horizon=%s history_points=%s trend=%s risk=%s",
        tenant_id,
        horizon_days,
        report.history_points,
        report.summary.trend,
        report.summary.risk,
    )
    return report


def generate_multi_period_forecast(
    db: Session,
    tenant_id: str,
    *,
    store: Optional[RecordStore] = None,
    as_of: AsOf = None,
) -> Dict[str, Any]:
    # one full run per horizon; each pulls its own history window
    result: Dict[str, Any] = {}
    for horizon in MULTI_PERIOD_HORIZONS:
        result[f"{horizon}d"] = forecast_cash_flow(db, tenant_id, horizon, store=store, as_of=as_of)
    result["generated_at"] = datetime.now(timezone.utc)
    return result


def run_scenario_analysis(
    db: Session,
    tenant_id: str,
    scenarios: Sequence[Scenario],
    *,
    store: Optional[RecordStore] = None,
    as_of: AsOf = None,
) -> ScenarioAnalysis:
    base = forecast_cash_flow(db, tenant_id, SCENARIO_HORIZON_DAYS, store=store, as_of=as_of)
    return apply_scenarios(base, scenarios)


def get_forecast_accuracy(
    db: Session,
    tenant_id: str,
    days: int = 30,
    *,
    store: Optional[RecordStore] = None,
    as_of: AsOf = None,
) -> ForecastAccuracy:
    """
    Replay logged forecasts older than `days` against what actually happened
    in the `days` after each was made.

    Longer forecasts are scored on their first `days` only, with the logged
    total pro-rated to that span, so every scored window has fully elapsed.
    """
    record_store = _store(db, store)
    cutoff = datetime.combine(as_of_date(as_of) - timedelta(days=days), time.max)
    logs = prediction_log_service.logs_created_before(db, tenant_id, cutoff)

    evaluations: List[ForecastEvaluation] = []
    for log in logs:
        horizon = max(int((log.input_summary or {}).get("forecast_days") or days), 1)
        scored_days = min(horizon, days)
        total_forecast = float((log.prediction_summary or {}).get("total_forecast") or 0.0)

        window_start = log.created_at.date() + timedelta(days=1)
        window_end = log.created_at.date() + timedelta(days=scored_days)
        actual = cash_flow_between(record_store, tenant_id, window_start, window_end)
        evaluations.append(
            ForecastEvaluation(
                log_id=log.id,
                window_start=window_start,
                window_end=window_end,
                predicted_total=total_forecast * scored_days / horizon,
                actual_total=sum(p.amount for p in actual),
            )
        )

    accuracy = score_accuracy(evaluations)
    logger.info(
        "forecast accuracy tenant=%s evaluations=%s mape=%.2f",
        tenant_id,
        accuracy.evaluations,
        accuracy.mape,
    )
    return accuracy


def analyze_cash_flow_patterns(
    db: Session,
    tenant_id: str,
    *,
    store: Optional[RecordStore] = None,
    as_of: AsOf = None,
) -> CashFlowPatterns:
    history = historical_cash_flow(_store(db, store), tenant_id, PATTERN_WINDOW_DAYS, as_of=as_of)
    return cash_flow_patterns(history)
