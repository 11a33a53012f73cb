from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from functools import partial
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from backend.fincore.anomalies import detectors
from backend.fincore.anomalies.types import AnomalyFinding, AnomalyType, Severity, finding_as_dict
from backend.fincore.records import AsOf, RecordStore, as_of_date, day_bounds, window_bounds
from backend.fincore.services import anomaly_ledger
from backend.fincore.services.record_store import SqlRecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckContext:
    db: Session
    store: RecordStore
    tenant_id: str
    as_of: date


@dataclass(frozen=True)
class AnomalyCheck:
    name: str
    anomaly_type: AnomalyType
    runner: Callable[[CheckContext], List[AnomalyFinding]]


def _persist(ctx: CheckContext, findings: List[AnomalyFinding]) -> List[AnomalyFinding]:
    for finding in findings:
        if finding.persist:
            anomaly_ledger.create(ctx.db, finding)
    ctx.db.commit()
    return findings


def _expenses(ctx: CheckContext, days: int):
    start, end = window_bounds(ctx.as_of, days)
    return ctx.store.expenses(ctx.tenant_id, start, end)


def check_duplicate_transactions(ctx: CheckContext) -> List[AnomalyFinding]:
    expenses = _expenses(ctx, detectors.DUPLICATE_WINDOW_DAYS)
    return _persist(ctx, detectors.detect_duplicate_transactions(ctx.tenant_id, expenses))


def check_unusual_amounts(ctx: CheckContext, resource: str = "expenses") -> List[AnomalyFinding]:
    start, end = window_bounds(ctx.as_of, detectors.UNUSUAL_AMOUNT_WINDOW_DAYS)
    if resource == "invoices":
        records = ctx.store.invoices(ctx.tenant_id, start, end)
    else:
        records = ctx.store.expenses(ctx.tenant_id, start, end)
    if len(records) < detectors.UNUSUAL_AMOUNT_MIN_RECORDS:
        logger.debug(
            "unusual amount check skipped tenant=%s resource=%s records=%s",
            ctx.tenant_id,
            resource,
            len(records),
        )
    return _persist(ctx, detectors.detect_unusual_amounts(ctx.tenant_id, records, resource))


def check_spending_spikes(ctx: CheckContext) -> List[AnomalyFinding]:
    expenses = _expenses(ctx, detectors.SPENDING_SPIKE_WINDOW_DAYS)
    return _persist(ctx, detectors.detect_spending_spikes(ctx.tenant_id, expenses))


def check_suspicious_vendors(ctx: CheckContext) -> List[AnomalyFinding]:
    expenses = _expenses(ctx, detectors.SUSPICIOUS_VENDOR_WINDOW_DAYS)
    findings = detectors.detect_suspicious_vendors(ctx.tenant_id, expenses, as_of=ctx.as_of)
    return _persist(ctx, findings)


def check_missing_receipts(ctx: CheckContext) -> List[AnomalyFinding]:
    expenses = _expenses(ctx, detectors.MISSING_RECEIPT_WINDOW_DAYS)
    return _persist(ctx, detectors.detect_missing_receipts(ctx.tenant_id, expenses))


def check_budget_overruns(ctx: CheckContext) -> List[AnomalyFinding]:
    budgets = ctx.store.approved_budgets(ctx.tenant_id)
    if not budgets:
        return []
    start, end = day_bounds(
        min(b.start_date for b in budgets),
        max(b.end_date for b in budgets),
    )
    expenses = ctx.store.expenses(ctx.tenant_id, start, end)
    return _persist(ctx, detectors.detect_budget_overruns(ctx.tenant_id, budgets, expenses))


ANOMALY_CHECKS: List[AnomalyCheck] = [
    AnomalyCheck("duplicate_transactions", AnomalyType.DUPLICATE_TRANSACTION, check_duplicate_transactions),
    AnomalyCheck("unusual_expenses", AnomalyType.UNUSUAL_AMOUNT, partial(check_unusual_amounts, resource="expenses")),
    AnomalyCheck("unusual_invoices", AnomalyType.UNUSUAL_AMOUNT, partial(check_unusual_amounts, resource="invoices")),
    AnomalyCheck("spending_spikes", AnomalyType.SPENDING_SPIKE, check_spending_spikes),
    AnomalyCheck("suspicious_vendors", AnomalyType.SUSPICIOUS_VENDOR, check_suspicious_vendors),
    AnomalyCheck("missing_receipts", AnomalyType.MISSING_RECEIPT, check_missing_receipts),
    AnomalyCheck("budget_overruns", AnomalyType.BUDGET_OVERRUN, check_budget_overruns),
]


def run_all_anomaly_checks(
    db: Session,
    tenant_id: str,
    *,
    store: Optional[RecordStore] = None,
    as_of: AsOf = None,
    checks: Optional[List[AnomalyCheck]] = None,
) -> Dict[str, Any]:
    ctx = CheckContext(
        db=db,
        store=store if store is not None else SqlRecordStore(db),
        tenant_id=tenant_id,
        as_of=as_of_date(as_of),
    )

    by_check: Dict[str, List[Dict[str, Any]]] = {}
    total = 0
    for check in checks if checks is not None else ANOMALY_CHECKS:
        findings = check.runner(ctx)
        by_check[check.name] = [finding_as_dict(f) for f in findings]
        total += len(findings)
        logger.info("anomaly check tenant=%s check=%s findings=%s", tenant_id, check.name, len(findings))

    return {
        "total_anomalies": total,
        "by_check": by_check,
        "severity_summary": anomaly_ledger.severity_summary(db, tenant_id),
    }


def list_unresolved_anomalies(
    db: Session,
    tenant_id: str,
    limit: int = anomaly_ledger.DEFAULT_LIST_LIMIT,
) -> List[Dict[str, Any]]:
    return [anomaly_ledger.serialize_anomaly(row) for row in anomaly_ledger.list_unresolved(db, tenant_id, limit)]


def search_anomalies(
    db: Session,
    tenant_id: str,
    *,
    severity: Optional[Severity] = None,
    anomaly_type: Optional[AnomalyType] = None,
    is_resolved: Optional[bool] = None,
    limit: int = anomaly_ledger.DEFAULT_LIST_LIMIT,
) -> List[Dict[str, Any]]:
    rows = anomaly_ledger.query(
        db,
        tenant_id,
        severity=severity,
        anomaly_type=anomaly_type,
        is_resolved=is_resolved,
        limit=limit,
    )
    return [anomaly_ledger.serialize_anomaly(row) for row in rows]


def resolve_anomaly(
    db: Session,
    anomaly_id: str,
    resolved_by: str,
    note: Optional[str] = None,
) -> Dict[str, Any]:
    row = anomaly_ledger.resolve(db, anomaly_id, resolved_by, note)
    logger.info("anomaly resolved id=%s by=%s", anomaly_id, resolved_by)
    return anomaly_ledger.serialize_anomaly(row)


def get_anomaly_trends(
    db: Session,
    tenant_id: str,
    days: int = 30,
    *,
    as_of: AsOf = None,
) -> Dict[str, Any]:
    return anomaly_ledger.trend(db, tenant_id, days, as_of=as_of)
