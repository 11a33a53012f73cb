from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from backend.fincore.anomalies.types import (
    SEVERITY_RANK,
    AnomalyFinding,
    AnomalyType,
    Severity,
    load_payloads,
    payload_as_dict,
)
from backend.fincore.errors import NotFoundError
from backend.fincore.models import AnomalyRecord
from backend.fincore.records import AsOf, window_bounds

DEFAULT_LIST_LIMIT = 50


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _severity_rank():
    return case(SEVERITY_RANK, value=AnomalyRecord.severity, else_=-1)


def serialize_anomaly(row: AnomalyRecord) -> Dict[str, Any]:
    detected, expected = load_payloads(row.type, row.detected_value, row.expected_value)
    return {
        "id": row.id,
        "tenant_id": row.tenant_id,
        "type": row.type,
        "severity": row.severity,
        "resource": row.resource,
        "resource_id": row.resource_id,
        "title": row.title,
        "description": row.description,
        "detected_value": payload_as_dict(detected),
        "expected_value": payload_as_dict(expected),
        "confidence": row.confidence,
        "is_resolved": row.is_resolved,
        "resolved_by": row.resolved_by,
        "resolved_at": row.resolved_at.isoformat() if row.resolved_at else None,
        "resolution_note": row.resolution_note,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


def create(db: Session, finding: AnomalyFinding) -> AnomalyRecord:
    row = AnomalyRecord(
        tenant_id=finding.tenant_id,
        type=finding.type.value,
        severity=finding.severity.value,
        resource=finding.resource,
        resource_id=finding.resource_id,
        title=finding.title,
        description=finding.description,
        detected_value=payload_as_dict(finding.detected_value),
        expected_value=payload_as_dict(finding.expected_value),
        confidence=finding.confidence,
        is_resolved=False,
        created_at=_now(),
    )
    db.add(row)
    db.flush()
    return row


def list_unresolved(db: Session, tenant_id: str, limit: int = DEFAULT_LIST_LIMIT) -> List[AnomalyRecord]:
    stmt = (
        select(AnomalyRecord)
        .where(AnomalyRecord.tenant_id == tenant_id, AnomalyRecord.is_resolved.is_(False))
        .order_by(_severity_rank().desc(), AnomalyRecord.created_at.desc(), AnomalyRecord.id.desc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


def query(
    db: Session,
    tenant_id: str,
    *,
    severity: Optional[Severity] = None,
    anomaly_type: Optional[AnomalyType] = None,
    is_resolved: Optional[bool] = None,
    limit: int = DEFAULT_LIST_LIMIT,
) -> List[AnomalyRecord]:
    stmt = select(AnomalyRecord).where(AnomalyRecord.tenant_id == tenant_id)
    if severity is not None:
        stmt = stmt.where(AnomalyRecord.severity == Severity(severity).value)
    if anomaly_type is not None:
        stmt = stmt.where(AnomalyRecord.type == AnomalyType(anomaly_type).value)
    if is_resolved is not None:
        stmt = stmt.where(AnomalyRecord.is_resolved.is_(is_resolved))
    stmt = stmt.order_by(
        _severity_rank().desc(), AnomalyRecord.created_at.desc(), AnomalyRecord.id.desc()
    ).limit(limit)
    return list(db.execute(stmt).scalars().all())


def resolve(db: Session, anomaly_id: str, resolved_by: str, note: Optional[str] = None) -> AnomalyRecord:
    """
    One-way detected -> resolved transition.

    The first write is conditional on `is_resolved` still being false, so
    concurrent resolvers cannot both flip it; a repeat resolve only
    re-stamps who/when/why.
    """
    now = _now()
    stamp = {"resolved_by": resolved_by, "resolved_at": now, "resolution_note": note}

    result = db.execute(
        update(AnomalyRecord)
        .where(AnomalyRecord.id == anomaly_id, AnomalyRecord.is_resolved.is_(False))
        .values(is_resolved=True, **stamp)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        if db.get(AnomalyRecord, anomaly_id) is None:
            raise NotFoundError("anomaly", anomaly_id)
        db.execute(
            update(AnomalyRecord)
            .where(AnomalyRecord.id == anomaly_id)
            .values(**stamp)
            .execution_options(synchronize_session="fetch")
        )

    db.commit()
    row = db.get(AnomalyRecord, anomaly_id)
    db.refresh(row)
    return row


def count_by_severity(db: Session, tenant_id: str, severity: Severity) -> int:
    stmt = select(func.count(AnomalyRecord.id)).where(
        AnomalyRecord.tenant_id == tenant_id,
        AnomalyRecord.severity == Severity(severity).value,
        AnomalyRecord.is_resolved.is_(False),
    )
    return int(db.execute(stmt).scalar_one())


def severity_summary(db: Session, tenant_id: str) -> Dict[str, int]:
    return {
        sev.value.lower(): count_by_severity(db, tenant_id, sev)
        for sev in (Severity.CRITICAL, Severity.URGENT, Severity.WARNING, Severity.INFO)
    }


def trend(db: Session, tenant_id: str, days: int = 30, *, as_of: AsOf = None) -> Dict[str, Any]:
    """Findings created in the last `days` days, bucketed by day and by type."""
    start, end = window_bounds(as_of, days)
    rows = db.execute(
        select(AnomalyRecord)
        .where(
            AnomalyRecord.tenant_id == tenant_id,
            AnomalyRecord.created_at >= start,
            AnomalyRecord.created_at <= end,
        )
        .order_by(AnomalyRecord.created_at.asc())
    ).scalars().all()

    by_day: Dict[date, Dict[str, Any]] = {}
    totals_by_type: Dict[str, int] = {}
    for row in rows:
        day_key = row.created_at.date()
        bucket = by_day.setdefault(day_key, {"date": day_key.isoformat(), "total": 0, "by_type": {}})
        bucket["total"] += 1
        bucket["by_type"][row.type] = bucket["by_type"].get(row.type, 0) + 1
        totals_by_type[row.type] = totals_by_type.get(row.type, 0) + 1

    return {
        "trends": list(by_day.values()),
        "total_detected": len(rows),
        "totals_by_type": totals_by_type,
    }
