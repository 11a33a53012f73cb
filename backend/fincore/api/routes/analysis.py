from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.fincore.api.routes.anomalies import AnomalyRunOut
from backend.fincore.api.routes.forecasts import ForecastOut
from backend.fincore.db import get_db
from backend.fincore.services import analysis_service

router = APIRouter(prefix="/api/analysis", tags=["analysis"])


class FullAnalysisOut(BaseModel):
    tenant_id: str
    anomalies: AnomalyRunOut
    forecasts: Optional[Dict[str, ForecastOut]]
    forecast_error: Optional[str]
    generated_at: datetime


@router.post("/{tenant_id}/run", response_model=FullAnalysisOut)
def run_full_analysis(tenant_id: str, db: Session = Depends(get_db)) -> FullAnalysisOut:
    return FullAnalysisOut(**analysis_service.run_full_analysis(db, tenant_id))
