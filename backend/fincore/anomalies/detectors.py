from __future__ import annotations

from datetime import date, datetime, time
from typing import Dict, List, Optional, Sequence, Tuple, Union

from backend.fincore.analytics.stats import group_by, mean, stddev, zscore
from backend.fincore.anomalies.types import (
    AnomalyFinding,
    AnomalyType,
    BudgetOverrunDetected,
    BudgetOverrunExpected,
    DuplicateDetected,
    DuplicateExpected,
    MissingReceiptDetected,
    MissingReceiptExpected,
    Severity,
    SpendingSpikeDetected,
    SpendingSpikeExpected,
    SuspiciousVendorDetected,
    SuspiciousVendorExpected,
    UnusualAmountDetected,
    UnusualAmountExpected,
)
from backend.fincore.records import BudgetRecord, ExpenseRecord, InvoiceRecord

AmountRecord = Union[ExpenseRecord, InvoiceRecord]

# lookback windows (days)
DUPLICATE_WINDOW_DAYS = 90
UNUSUAL_AMOUNT_WINDOW_DAYS = 180
SPENDING_SPIKE_WINDOW_DAYS = 180
SUSPICIOUS_VENDOR_WINDOW_DAYS = 90
MISSING_RECEIPT_WINDOW_DAYS = 365

DUPLICATE_CONFIDENCE = 0.85

UNUSUAL_AMOUNT_MIN_RECORDS = 10
UNUSUAL_AMOUNT_Z = 3.0
UNUSUAL_AMOUNT_Z_WARNING = 4.0
UNUSUAL_AMOUNT_Z_CRITICAL = 5.0

SPENDING_SPIKE_MIN_MONTHS = 3
SPENDING_SPIKE_PCT = 50.0
SPENDING_SPIKE_PCT_WARNING = 75.0
SPENDING_SPIKE_PCT_CRITICAL = 100.0
SPENDING_SPIKE_CONFIDENCE = 0.9

VENDOR_MIN_TRANSACTIONS = 10
VENDOR_MAX_PER_DAY = 1.0
VENDOR_FREQUENCY_CONFIDENCE = 0.7
VENDOR_ROUND_SHARE = 0.7
VENDOR_ROUND_CONFIDENCE = 0.5
UNKNOWN_VENDOR = "Unknown"

# IRS substantiation threshold; intentionally not configurable
RECEIPT_THRESHOLD = 75.0

BUDGET_WARNING_PCT = 90.0
BUDGET_URGENT_PCT = 100.0
BUDGET_CRITICAL_PCT = 110.0


def _money(value: float) -> str:
    return f"${value:,.2f}"


def _record_amount(record: AmountRecord) -> float:
    if isinstance(record, InvoiceRecord):
        return float(record.total)
    return float(record.amount)


# -------------------------
# Duplicate transactions
# -------------------------

def detect_duplicate_transactions(
    tenant_id: str,
    expenses: Sequence[ExpenseRecord],
) -> List[AnomalyFinding]:
    """
    Same description, amount and calendar day. The first record seen for a
    key is the original; every later one is flagged against it.
    """
    seen: Dict[Tuple[str, float, date], ExpenseRecord] = {}
    findings: List[AnomalyFinding] = []

    for exp in expenses:
        description = exp.description or ""
        key = (description, round(float(exp.amount), 2), exp.day)
        original = seen.get(key)
        if original is None:
            seen[key] = exp
            continue

        findings.append(
            AnomalyFinding(
                tenant_id=tenant_id,
                type=AnomalyType.DUPLICATE_TRANSACTION,
                severity=Severity.WARNING,
                resource="expenses",
                resource_id=exp.id,
                title="Potential Duplicate Transaction",
                description=(
                    f'Transaction "{description}" for {_money(exp.amount)} on {exp.day.isoformat()} '
                    f"may be a duplicate of transaction {original.id}"
                ),
                detected_value=DuplicateDetected(
                    id=exp.id,
                    amount=float(exp.amount),
                    description=description,
                    date=exp.day.isoformat(),
                ),
                expected_value=DuplicateExpected(original_id=original.id),
                confidence=DUPLICATE_CONFIDENCE,
            )
        )

    return findings


# -------------------------
# Statistical outliers
# -------------------------

def _unusual_amount_severity(z: float) -> Severity:
    if z > UNUSUAL_AMOUNT_Z_CRITICAL:
        return Severity.CRITICAL
    if z > UNUSUAL_AMOUNT_Z_WARNING:
        return Severity.WARNING
    return Severity.INFO


def unusual_amount_confidence(z: float) -> float:
    return min(0.99, 0.6 + (z - UNUSUAL_AMOUNT_Z) * 0.1)


def detect_unusual_amounts(
    tenant_id: str,
    records: Sequence[AmountRecord],
    resource: str = "expenses",
) -> List[AnomalyFinding]:
    # not enough sample for a meaningful mean/stddev
    if len(records) < UNUSUAL_AMOUNT_MIN_RECORDS:
        return []

    amounts = [_record_amount(r) for r in records]
    mu = mean(amounts)
    sigma = stddev(amounts)
    label = "Expense" if resource == "expenses" else "Invoice"

    findings: List[AnomalyFinding] = []
    for record, amount in zip(records, amounts):
        z = abs(zscore(amount, mu, sigma))
        if z <= UNUSUAL_AMOUNT_Z:
            continue
        findings.append(
            AnomalyFinding(
                tenant_id=tenant_id,
                type=AnomalyType.UNUSUAL_AMOUNT,
                severity=_unusual_amount_severity(z),
                resource=resource,
                resource_id=record.id,
                title=f"Unusual {label} Amount",
                description=(
                    f"Amount {_money(amount)} is {z:.1f} standard deviations "
                    f"from the mean ({_money(mu)})"
                ),
                detected_value=UnusualAmountDetected(amount=amount, z_score=z),
                expected_value=UnusualAmountExpected(mean=mu, std_dev=sigma),
                confidence=unusual_amount_confidence(z),
            )
        )
    return findings


# -------------------------
# Monthly spending spikes
# -------------------------

def _spike_severity(pct: float) -> Severity:
    if pct > SPENDING_SPIKE_PCT_CRITICAL:
        return Severity.CRITICAL
    if pct > SPENDING_SPIKE_PCT_WARNING:
        return Severity.WARNING
    return Severity.INFO


def monthly_spending(expenses: Sequence[ExpenseRecord]) -> Dict[str, float]:
    totals: Dict[str, float] = {}
    for exp in sorted(expenses, key=lambda e: e.occurred_at):
        key = f"{exp.occurred_at.year:04d}-{exp.occurred_at.month:02d}"
        totals[key] = totals.get(key, 0.0) + float(exp.amount)
    return totals


def detect_spending_spikes(
    tenant_id: str,
    expenses: Sequence[ExpenseRecord],
) -> List[AnomalyFinding]:
    monthly = monthly_spending(expenses)
    if len(monthly) < SPENDING_SPIKE_MIN_MONTHS:
        return []

    avg = mean(list(monthly.values()))
    if avg == 0:
        return []

    findings: List[AnomalyFinding] = []
    for month, spending in monthly.items():
        pct = (spending - avg) / avg * 100
        if pct <= SPENDING_SPIKE_PCT:
            continue
        findings.append(
            AnomalyFinding(
                tenant_id=tenant_id,
                type=AnomalyType.SPENDING_SPIKE,
                severity=_spike_severity(pct),
                resource="expenses",
                resource_id=month,
                title=f"Spending Spike Detected for {month}",
                description=(
                    f"Monthly spending of {_money(spending)} is {pct:.0f}% higher "
                    f"than average ({_money(avg)})"
                ),
                detected_value=SpendingSpikeDetected(month=month, spending=spending, percent_increase=pct),
                expected_value=SpendingSpikeExpected(avg_spending=avg),
                confidence=SPENDING_SPIKE_CONFIDENCE,
            )
        )
    return findings


# -------------------------
# Suspicious vendors
# -------------------------

def _is_round_amount(amount: float) -> bool:
    cents = int(round(abs(amount) * 100))
    return cents % 10000 == 0 or cents % 100000 == 0


def detect_suspicious_vendors(
    tenant_id: str,
    expenses: Sequence[ExpenseRecord],
    *,
    as_of: date,
) -> List[AnomalyFinding]:
    """
    High-frequency vendors are persisted; round-number bias is reported as a
    finding only (`persist=False`).
    """
    findings: List[AnomalyFinding] = []
    as_of_dt = datetime.combine(as_of, time.max) if not isinstance(as_of, datetime) else as_of

    by_vendor = group_by(expenses, lambda e: e.vendor or UNKNOWN_VENDOR)
    for vendor, items in by_vendor.items():
        count = len(items)
        total = sum(float(e.amount) for e in items)

        if count > VENDOR_MIN_TRANSACTIONS:
            first_seen = min(e.occurred_at for e in items)
            day_span = max((as_of_dt - first_seen).total_seconds() / 86400, 1.0)
            per_day = count / day_span
            if per_day > VENDOR_MAX_PER_DAY:
                findings.append(
                    AnomalyFinding(
                        tenant_id=tenant_id,
                        type=AnomalyType.SUSPICIOUS_VENDOR,
                        severity=Severity.WARNING,
                        resource="expenses",
                        resource_id=vendor,
                        title=f"High Transaction Frequency with {vendor}",
                        description=(
                            f"{count} transactions totaling {_money(total)} with {vendor} in the last "
                            f"{day_span:.0f} days ({per_day:.1f} per day)"
                        ),
                        detected_value=SuspiciousVendorDetected(
                            vendor=vendor,
                            reason="high_frequency",
                            count=count,
                            total=total,
                            transactions_per_day=per_day,
                        ),
                        expected_value=SuspiciousVendorExpected(normal_frequency="< 1 per day"),
                        confidence=VENDOR_FREQUENCY_CONFIDENCE,
                    )
                )

        round_share = sum(1 for e in items if _is_round_amount(float(e.amount))) / count
        if round_share >= VENDOR_ROUND_SHARE:
            findings.append(
                AnomalyFinding(
                    tenant_id=tenant_id,
                    type=AnomalyType.SUSPICIOUS_VENDOR,
                    severity=Severity.INFO,
                    resource="expenses",
                    resource_id=vendor,
                    title=f"Round-Number Amounts with {vendor}",
                    description=(
                        f"{round_share:.0%} of {count} payments to {vendor} are exact multiples of 100"
                    ),
                    detected_value=SuspiciousVendorDetected(
                        vendor=vendor,
                        reason="round_amounts",
                        count=count,
                        total=total,
                        round_share=round_share,
                    ),
                    expected_value=SuspiciousVendorExpected(max_round_share=VENDOR_ROUND_SHARE),
                    confidence=VENDOR_ROUND_CONFIDENCE,
                    persist=False,
                )
            )

    return findings


# -------------------------
# Missing receipts
# -------------------------

def _receipt_severity(amount: float) -> Severity:
    if amount > 1000:
        return Severity.CRITICAL
    if amount > 500:
        return Severity.WARNING
    return Severity.INFO


def detect_missing_receipts(
    tenant_id: str,
    expenses: Sequence[ExpenseRecord],
) -> List[AnomalyFinding]:
    findings: List[AnomalyFinding] = []
    for exp in expenses:
        amount = float(exp.amount)
        if amount < RECEIPT_THRESHOLD or exp.has_receipt:
            continue
        findings.append(
            AnomalyFinding(
                tenant_id=tenant_id,
                type=AnomalyType.MISSING_RECEIPT,
                severity=_receipt_severity(amount),
                resource="expenses",
                resource_id=exp.id,
                title="Missing Receipt for Expense",
                description=(
                    f"Expense of {_money(amount)} to {exp.vendor or UNKNOWN_VENDOR} on {exp.day.isoformat()} "
                    f"requires a receipt (IRS requirement for amounts over {_money(RECEIPT_THRESHOLD)})"
                ),
                detected_value=MissingReceiptDetected(expense_id=exp.id, amount=amount),
                expected_value=MissingReceiptExpected(requires_receipt=True, threshold=RECEIPT_THRESHOLD),
                confidence=1.0,
            )
        )
    return findings


# -------------------------
# Budget overruns
# -------------------------

def _budget_severity(pct: float) -> Severity:
    if pct > BUDGET_CRITICAL_PCT:
        return Severity.CRITICAL
    if pct > BUDGET_URGENT_PCT:
        return Severity.URGENT
    return Severity.WARNING


def budget_spend(budget: BudgetRecord, expenses: Sequence[ExpenseRecord]) -> float:
    return sum(
        float(e.amount)
        for e in expenses
        if e.category == budget.category and budget.start_date <= e.day <= budget.end_date
    )


def evaluate_budget(
    tenant_id: str,
    budget: BudgetRecord,
    expenses: Sequence[ExpenseRecord],
) -> Optional[AnomalyFinding]:
    if budget.amount <= 0:
        return None

    actual = budget_spend(budget, expenses)
    pct = actual / budget.amount * 100
    if pct <= BUDGET_WARNING_PCT:
        return None

    return AnomalyFinding(
        tenant_id=tenant_id,
        type=AnomalyType.BUDGET_OVERRUN,
        severity=_budget_severity(pct),
        resource="budgets",
        resource_id=budget.id,
        title="Budget Exceeded" if pct > BUDGET_URGENT_PCT else "Budget Nearly Exceeded",
        description=(
            f"{budget.category} budget: {_money(actual)} spent of {_money(budget.amount)} ({pct:.0f}%)"
        ),
        detected_value=BudgetOverrunDetected(
            category=budget.category,
            actual_spending=actual,
            percent_used=pct,
        ),
        expected_value=BudgetOverrunExpected(budget_amount=budget.amount),
        confidence=1.0,
    )


def detect_budget_overruns(
    tenant_id: str,
    budgets: Sequence[BudgetRecord],
    expenses: Sequence[ExpenseRecord],
) -> List[AnomalyFinding]:
    findings: List[AnomalyFinding] = []
    for budget in budgets:
        finding = evaluate_budget(tenant_id, budget, expenses)
        if finding is not None:
            findings.append(finding)
    return findings
