from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backend.fincore import config
from backend.fincore.anomalies.types import AnomalyType, Severity
from backend.fincore.db import get_db
from backend.fincore.errors import NotFoundError
from backend.fincore.services import anomaly_service

router = APIRouter(prefix="/api/anomalies", tags=["anomalies"])


class AnomalyOut(BaseModel):
    id: str
    tenant_id: str
    type: AnomalyType
    severity: Severity
    resource: str
    resource_id: str
    title: str
    description: str
    detected_value: Dict[str, Any]
    expected_value: Dict[str, Any]
    confidence: float
    is_resolved: bool
    resolved_by: Optional[str]
    resolved_at: Optional[str]
    resolution_note: Optional[str]
    created_at: Optional[str]


class AnomalyRunOut(BaseModel):
    total_anomalies: int
    by_check: Dict[str, List[Dict[str, Any]]]
    severity_summary: Dict[str, int]


class AnomalyResolveIn(BaseModel):
    resolved_by: str = Field(..., min_length=1, max_length=120)
    note: Optional[str] = Field(default=None, max_length=2000)


class AnomalyTrendDayOut(BaseModel):
    date: str
    total: int
    by_type: Dict[str, int]


class AnomalyTrendsOut(BaseModel):
    trends: List[AnomalyTrendDayOut]
    total_detected: int
    totals_by_type: Dict[str, int]


@router.post("/{tenant_id}/run", response_model=AnomalyRunOut)
def run_checks(tenant_id: str, db: Session = Depends(get_db)) -> AnomalyRunOut:
    return AnomalyRunOut(**anomaly_service.run_all_anomaly_checks(db, tenant_id))


@router.get("/{tenant_id}", response_model=List[AnomalyOut])
def list_unresolved(
    tenant_id: str,
    limit: Optional[int] = Query(None, ge=1, le=500),
    db: Session = Depends(get_db),
) -> List[AnomalyOut]:
    rows = anomaly_service.list_unresolved_anomalies(
        db, tenant_id, limit if limit is not None else config.anomaly_list_limit()
    )
    return [AnomalyOut(**row) for row in rows]


@router.get("/{tenant_id}/search", response_model=List[AnomalyOut])
def search(
    tenant_id: str,
    severity: Optional[Severity] = None,
    type: Optional[AnomalyType] = None,
    resolved: Optional[bool] = None,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
) -> List[AnomalyOut]:
    rows = anomaly_service.search_anomalies(
        db,
        tenant_id,
        severity=severity,
        anomaly_type=type,
        is_resolved=resolved,
        limit=limit,
    )
    return [AnomalyOut(**row) for row in rows]


@router.post("/records/{anomaly_id}/resolve", response_model=AnomalyOut)
def resolve(
    anomaly_id: str,
    req: AnomalyResolveIn,
    db: Session = Depends(get_db),
) -> AnomalyOut:
    try:
        row = anomaly_service.resolve_anomaly(db, anomaly_id, req.resolved_by, req.note)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail="anomaly not found") from exc
    return AnomalyOut(**row)


@router.get("/{tenant_id}/trends", response_model=AnomalyTrendsOut)
def trends(
    tenant_id: str,
    days: Optional[int] = Query(None, ge=1, le=365),
    db: Session = Depends(get_db),
) -> AnomalyTrendsOut:
    result = anomaly_service.get_anomaly_trends(
        db, tenant_id, days if days is not None else config.anomaly_trend_days()
    )
    return AnomalyTrendsOut(**result)
