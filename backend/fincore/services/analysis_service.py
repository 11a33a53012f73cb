from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from backend.fincore.errors import InsufficientHistoryError
from backend.fincore.forecast.engine import MULTI_PERIOD_HORIZONS, report_as_dict
from backend.fincore.records import AsOf, RecordStore
from backend.fincore.services import anomaly_service, forecast_service

logger = logging.getLogger(__name__)


def run_full_analysis(
    db: Session,
    tenant_id: str,
    *,
    store: Optional[RecordStore] = None,
    as_of: AsOf = None,
) -> Dict[str, Any]:
    """
    Anomaly suite plus the 30/60/90-day forecasts in one report.

    Thin history only blanks the forecast half; the anomaly run still goes
    through. Any other failure propagates.
    """
    anomalies = anomaly_service.run_all_anomaly_checks(db, tenant_id, store=store, as_of=as_of)

    forecasts: Optional[Dict[str, Any]] = None
    forecast_error: Optional[str] = None
    try:
        multi = forecast_service.generate_multi_period_forecast(db, tenant_id, store=store, as_of=as_of)
    except InsufficientHistoryError as exc:
        logger.warning("full analysis tenant=%s skipped forecasts: %s", tenant_id, exc)
        forecast_error = str(exc)
    else:
        forecasts = {f"{h}d": report_as_dict(multi[f"{h}d"]) for h in MULTI_PERIOD_HORIZONS}

    return {
        "tenant_id": tenant_id,
        "anomalies": anomalies,
        "forecasts": forecasts,
        "forecast_error": forecast_error,
        "generated_at": datetime.now(timezone.utc),
    }
