from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.fincore.forecast.engine import ForecastReport, confidence_band
from backend.fincore.models import PredictionLog

ACCURACY_SAMPLE_LIMIT = 10


def log_forecast(
    db: Session,
    tenant_id: str,
    report: ForecastReport,
    *,
    history_window_days: int,
) -> PredictionLog:
    confidence = report.summary.confidence
    row = PredictionLog(
        tenant_id=tenant_id,
        input_summary={
            "historical_points": report.history_points,
            "history_window_days": history_window_days,
            "forecast_days": report.period_days,
            "first_forecast_date": report.points[0].date.isoformat() if report.points else None,
        },
        prediction_summary={
            "total_forecast": report.summary.expected_total,
            "trend": report.summary.trend,
            "risk": report.summary.risk,
        },
        confidence_band=confidence_band(confidence),
        confidence_score=confidence,
        created_at=datetime.now(timezone.utc).replace(tzinfo=None),
    )
    db.add(row)
    db.flush()
    return row


def logs_created_before(
    db: Session,
    tenant_id: str,
    cutoff: datetime,
    limit: int = ACCURACY_SAMPLE_LIMIT,
) -> List[PredictionLog]:
    stmt = (
        select(PredictionLog)
        .where(PredictionLog.tenant_id == tenant_id, PredictionLog.created_at <= cutoff)
        .order_by(PredictionLog.created_at.desc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())
