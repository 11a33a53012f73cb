import math
from datetime import date, datetime, timedelta

import pytest

from backend.fincore.anomalies import detectors
from backend.fincore.anomalies.types import (
    AnomalyFinding,
    AnomalyType,
    DuplicateExpected,
    Severity,
    UnusualAmountDetected,
    UnusualAmountExpected,
    finding_as_dict,
)
from backend.fincore.records import BudgetRecord, ExpenseRecord, InvoiceRecord

TENANT = "tenant-1"


def _expense(exp_id, when, amount, **kwargs):
    return ExpenseRecord(id=exp_id, tenant_id=TENANT, occurred_at=when, amount=amount, **kwargs)


def _budget(amount=1000.0, category="Travel"):
    return BudgetRecord(
        id="budget-1",
        tenant_id=TENANT,
        category=category,
        start_date=date(2024, 3, 1),
        end_date=date(2024, 3, 31),
        amount=amount,
        status="APPROVED",
    )


# -------------------------
# Duplicates
# -------------------------

def test_duplicate_transaction_flags_later_record():
    expenses = [
        _expense("e1", datetime(2024, 3, 1, 9, 0), 120.00, description="Office Supplies"),
        _expense("e2", datetime(2024, 3, 1, 15, 0), 120.00, description="Office Supplies"),
        _expense("e3", datetime(2024, 3, 1, 16, 0), 121.00, description="Office Supplies"),
        _expense("e4", datetime(2024, 3, 2, 9, 0), 120.00, description="Office Supplies"),
    ]

    findings = detectors.detect_duplicate_transactions(TENANT, expenses)

    assert len(findings) == 1
    finding = findings[0]
    assert finding.type == AnomalyType.DUPLICATE_TRANSACTION
    assert finding.severity == Severity.WARNING
    assert finding.confidence == pytest.approx(0.85)
    assert finding.resource_id == "e2"
    assert finding.expected_value == DuplicateExpected(original_id="e1")
    assert finding.detected_value.date == "2024-03-01"


def test_duplicate_triplet_points_at_first_record():
    expenses = [
        _expense(f"e{i}", datetime(2024, 3, 1, 9 + i), 45.5, description=None) for i in range(3)
    ]
    findings = detectors.detect_duplicate_transactions(TENANT, expenses)

    assert [f.resource_id for f in findings] == ["e1", "e2"]
    assert {f.expected_value.original_id for f in findings} == {"e0"}
    assert findings[0].detected_value.description == ""


# -------------------------
# Unusual amounts
# -------------------------

def _hundreds(count, start=datetime(2024, 2, 1, 10)):
    return [_expense(f"n{i}", start + timedelta(days=i), 100.0) for i in range(count)]


def test_unusual_amount_skipped_below_sample_size():
    records = _hundreds(8) + [_expense("big", datetime(2024, 3, 1), 100000.0)]
    assert detectors.detect_unusual_amounts(TENANT, records) == []


def test_unusual_amount_zero_variance_flags_nothing():
    assert detectors.detect_unusual_amounts(TENANT, _hundreds(15)) == []


def test_unusual_amount_single_outlier_among_twelve():
    # a lone outlier among n records has z = sqrt(n - 1) under population stddev
    records = _hundreds(12) + [_expense("big", datetime(2024, 3, 1), 100000.0)]

    findings = detectors.detect_unusual_amounts(TENANT, records)

    assert len(findings) == 1
    finding = findings[0]
    assert finding.resource_id == "big"
    assert finding.detected_value.z_score == pytest.approx(math.sqrt(12))
    assert finding.severity == Severity.INFO
    assert finding.confidence == pytest.approx(0.6 + (math.sqrt(12) - 3) * 0.1)


def test_unusual_amount_critical_with_larger_sample():
    records = _hundreds(29) + [_expense("big", datetime(2024, 3, 1), 100000.0)]

    findings = detectors.detect_unusual_amounts(TENANT, records)

    assert len(findings) == 1
    assert findings[0].detected_value.z_score == pytest.approx(math.sqrt(29))
    assert findings[0].severity == Severity.CRITICAL
    assert findings[0].title == "Unusual Expense Amount"


def test_unusual_amount_warning_band():
    records = _hundreds(19) + [_expense("big", datetime(2024, 3, 1), 100000.0)]
    findings = detectors.detect_unusual_amounts(TENANT, records)
    assert findings[0].severity == Severity.WARNING


def test_unusual_amount_on_invoices():
    invoices = [
        InvoiceRecord(id=f"i{i}", tenant_id=TENANT, issued_at=datetime(2024, 1, 1) + timedelta(days=i), total=200.0, status="PAID")
        for i in range(29)
    ]
    invoices.append(InvoiceRecord(id="huge", tenant_id=TENANT, issued_at=datetime(2024, 3, 1), total=90000.0, status="SENT"))

    findings = detectors.detect_unusual_amounts(TENANT, invoices, resource="invoices")

    assert [f.resource_id for f in findings] == ["huge"]
    assert findings[0].resource == "invoices"
    assert findings[0].title == "Unusual Invoice Amount"


def test_unusual_amount_confidence_capped():
    assert detectors.unusual_amount_confidence(3.5) == pytest.approx(0.65)
    assert detectors.unusual_amount_confidence(50.0) == pytest.approx(0.99)


# -------------------------
# Spending spikes
# -------------------------

def _monthly(totals):
    return [_expense(f"m{i}", datetime(2024, i + 1, 15), amount) for i, amount in enumerate(totals)]


def test_spending_spike_needs_three_months():
    assert detectors.detect_spending_spikes(TENANT, _monthly([100.0, 900.0])) == []


def test_spending_spike_critical():
    findings = detectors.detect_spending_spikes(TENANT, _monthly([1000.0, 1000.0, 1000.0, 4000.0]))

    assert len(findings) == 1
    finding = findings[0]
    assert finding.resource_id == "2024-04"
    assert finding.detected_value.percent_increase == pytest.approx((4000 - 1750) / 1750 * 100)
    assert finding.expected_value.avg_spending == pytest.approx(1750.0)
    assert finding.severity == Severity.CRITICAL
    assert finding.confidence == pytest.approx(0.9)


def test_spending_spike_severity_bands():
    # avg 1300 -> 2200 is ~+69%
    info = detectors.detect_spending_spikes(TENANT, _monthly([1000.0, 1000.0, 1000.0, 2200.0]))
    assert [f.severity for f in info] == [Severity.INFO]

    # avg 1625 -> 2900 is ~+78%
    warning = detectors.detect_spending_spikes(TENANT, _monthly([1000.0, 1000.0, 1600.0, 2900.0]))
    assert [f.severity for f in warning] == [Severity.WARNING]


def test_monthly_spending_keys():
    assert detectors.monthly_spending(_monthly([5.0, 7.0])) == {"2024-01": 5.0, "2024-02": 7.0}


# -------------------------
# Suspicious vendors
# -------------------------

def test_suspicious_vendor_high_frequency():
    as_of = date(2024, 6, 30)
    first = datetime(2024, 6, 26, 10, 0)
    expenses = [
        _expense(f"v{i}", first + timedelta(hours=8 * i), 37.25 + i, vendor="FastPay") for i in range(12)
    ]
    expenses += [_expense(f"s{i}", datetime(2024, 5, 1) + timedelta(days=5 * i), 12.34, vendor="SlowCo") for i in range(11)]

    findings = detectors.detect_suspicious_vendors(TENANT, expenses, as_of=as_of)

    assert len(findings) == 1
    finding = findings[0]
    assert finding.resource_id == "FastPay"
    assert finding.severity == Severity.WARNING
    assert finding.persist is True
    assert finding.detected_value.reason == "high_frequency"
    assert finding.detected_value.count == 12
    assert finding.detected_value.transactions_per_day > 1.0
    assert finding.confidence == pytest.approx(0.7)


def test_suspicious_vendor_ten_transactions_not_flagged():
    as_of = date(2024, 6, 30)
    expenses = [_expense(f"v{i}", datetime(2024, 6, 30, 1 + i), 19.99, vendor="Busy") for i in range(10)]
    assert detectors.detect_suspicious_vendors(TENANT, expenses, as_of=as_of) == []


def test_suspicious_vendor_round_amounts_reported_but_not_persisted():
    amounts = [100.0, 200.0, 300.0, 1000.0, 45.5]
    expenses = [
        _expense(f"r{i}", datetime(2024, 4, 1) + timedelta(days=10 * i), amount, vendor="Roundly")
        for i, amount in enumerate(amounts)
    ]

    findings = detectors.detect_suspicious_vendors(TENANT, expenses, as_of=date(2024, 6, 30))

    assert len(findings) == 1
    finding = findings[0]
    assert finding.type == AnomalyType.SUSPICIOUS_VENDOR
    assert finding.severity == Severity.INFO
    assert finding.persist is False
    assert finding.detected_value.reason == "round_amounts"
    assert finding.detected_value.round_share == pytest.approx(0.8)


def test_missing_vendor_grouped_as_unknown():
    expenses = [_expense(f"u{i}", datetime(2024, 6, 1), 500.0) for i in range(3)]
    findings = detectors.detect_suspicious_vendors(TENANT, expenses, as_of=date(2024, 6, 30))
    assert [f.resource_id for f in findings] == [detectors.UNKNOWN_VENDOR]


# -------------------------
# Missing receipts
# -------------------------

def test_missing_receipt_threshold_and_severity():
    expenses = [
        _expense("small", datetime(2024, 3, 1), 50.0),
        _expense("edge", datetime(2024, 3, 1), 75.0),
        _expense("mid", datetime(2024, 3, 1), 80.0, vendor="Cafe"),
        _expense("covered", datetime(2024, 3, 1), 80.0, has_receipt=True),
        _expense("large", datetime(2024, 3, 2), 600.0),
        _expense("huge", datetime(2024, 3, 3), 1500.0),
    ]

    findings = {f.resource_id: f for f in detectors.detect_missing_receipts(TENANT, expenses)}

    assert set(findings) == {"edge", "mid", "large", "huge"}
    assert findings["mid"].severity == Severity.INFO
    assert findings["large"].severity == Severity.WARNING
    assert findings["huge"].severity == Severity.CRITICAL
    assert findings["mid"].confidence == 1.0
    assert findings["mid"].expected_value.threshold == 75.0
    assert "Cafe" in findings["mid"].description


# -------------------------
# Budget overruns
# -------------------------

def _travel(amount, day=10, category="Travel"):
    return _expense(f"t-{amount}-{day}", datetime(2024, 3, day, 12), amount, category=category)


@pytest.mark.parametrize(
    "spent, severity, title",
    [
        (950.0, Severity.WARNING, "Budget Nearly Exceeded"),
        (1050.0, Severity.URGENT, "Budget Exceeded"),
        (1150.0, Severity.CRITICAL, "Budget Exceeded"),
    ],
)
def test_budget_overrun_severity(spent, severity, title):
    findings = detectors.detect_budget_overruns(TENANT, [_budget()], [_travel(spent)])

    assert len(findings) == 1
    assert findings[0].severity == severity
    assert findings[0].title == title
    assert findings[0].resource == "budgets"
    assert findings[0].detected_value.percent_used == pytest.approx(spent / 10)


def test_budget_at_ninety_percent_not_flagged():
    assert detectors.detect_budget_overruns(TENANT, [_budget()], [_travel(900.0)]) == []


def test_budget_only_counts_matching_category_within_period():
    expenses = [
        _travel(600.0, day=5),
        _travel(500.0, day=6, category="Meals"),
        _expense("april", datetime(2024, 4, 1, 0, 30), 500.0, category="Travel"),
        _expense("last-day", datetime(2024, 3, 31, 23, 0), 350.0, category="Travel"),
    ]
    findings = detectors.detect_budget_overruns(TENANT, [_budget()], expenses)

    assert findings[0].detected_value.actual_spending == pytest.approx(950.0)


def test_zero_budget_skipped():
    assert detectors.detect_budget_overruns(TENANT, [_budget(amount=0.0)], [_travel(10.0)]) == []


# -------------------------
# Finding contract
# -------------------------

def test_finding_rejects_mismatched_payload():
    with pytest.raises(TypeError):
        AnomalyFinding(
            tenant_id=TENANT,
            type=AnomalyType.DUPLICATE_TRANSACTION,
            severity=Severity.WARNING,
            resource="expenses",
            resource_id="e1",
            title="x",
            description="x",
            detected_value=UnusualAmountDetected(amount=1.0, z_score=4.0),
            expected_value=UnusualAmountExpected(mean=0.0, std_dev=1.0),
            confidence=0.5,
        )


def test_finding_rejects_confidence_out_of_range():
    with pytest.raises(ValueError):
        AnomalyFinding(
            tenant_id=TENANT,
            type=AnomalyType.UNUSUAL_AMOUNT,
            severity=Severity.INFO,
            resource="expenses",
            resource_id="e1",
            title="x",
            description="x",
            detected_value=UnusualAmountDetected(amount=1.0, z_score=4.0),
            expected_value=UnusualAmountExpected(mean=0.0, std_dev=1.0),
            confidence=1.5,
        )


def test_finding_as_dict_flattens_payloads():
    finding = detectors.detect_missing_receipts(TENANT, [_expense("e1", datetime(2024, 3, 1), 90.0)])[0]
    payload = finding_as_dict(finding)

    assert payload["type"] == "MISSING_RECEIPT"
    assert payload["severity"] == "INFO"
    assert payload["detected_value"] == {"expense_id": "e1", "amount": 90.0}
    assert payload["persisted"] is True
