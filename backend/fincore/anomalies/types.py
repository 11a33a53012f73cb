from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type, Union


class AnomalyType(str, Enum):
    DUPLICATE_TRANSACTION = "DUPLICATE_TRANSACTION"
    UNUSUAL_AMOUNT = "UNUSUAL_AMOUNT"
    SPENDING_SPIKE = "SPENDING_SPIKE"
    SUSPICIOUS_VENDOR = "SUSPICIOUS_VENDOR"
    MISSING_RECEIPT = "MISSING_RECEIPT"
    BUDGET_OVERRUN = "BUDGET_OVERRUN"


class Severity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    URGENT = "URGENT"
    CRITICAL = "CRITICAL"


SEVERITY_RANK: Dict[str, int] = {
    Severity.INFO.value: 0,
    Severity.WARNING.value: 1,
    Severity.URGENT.value: 2,
    Severity.CRITICAL.value: 3,
}


# -------------------------
# Per-type payloads
# -------------------------

@dataclass(frozen=True)
class DuplicateDetected:
    id: str
    amount: float
    description: str
    date: str


@dataclass(frozen=True)
class DuplicateExpected:
    original_id: str


@dataclass(frozen=True)
class UnusualAmountDetected:
    amount: float
    z_score: float


@dataclass(frozen=True)
class UnusualAmountExpected:
    mean: float
    std_dev: float


@dataclass(frozen=True)
class SpendingSpikeDetected:
    month: str
    spending: float
    percent_increase: float


@dataclass(frozen=True)
class SpendingSpikeExpected:
    avg_spending: float


@dataclass(frozen=True)
class SuspiciousVendorDetected:
    vendor: str
    reason: str                 # "high_frequency" | "round_amounts"
    count: int
    total: float
    transactions_per_day: Optional[float] = None
    round_share: Optional[float] = None


@dataclass(frozen=True)
class SuspiciousVendorExpected:
    normal_frequency: Optional[str] = None
    max_round_share: Optional[float] = None


@dataclass(frozen=True)
class MissingReceiptDetected:
    expense_id: str
    amount: float


@dataclass(frozen=True)
class MissingReceiptExpected:
    requires_receipt: bool
    threshold: float


@dataclass(frozen=True)
class BudgetOverrunDetected:
    category: str
    actual_spending: float
    percent_used: float


@dataclass(frozen=True)
class BudgetOverrunExpected:
    budget_amount: float


DetectedValue = Union[
    DuplicateDetected,
    UnusualAmountDetected,
    SpendingSpikeDetected,
    SuspiciousVendorDetected,
    MissingReceiptDetected,
    BudgetOverrunDetected,
]
ExpectedValue = Union[
    DuplicateExpected,
    UnusualAmountExpected,
    SpendingSpikeExpected,
    SuspiciousVendorExpected,
    MissingReceiptExpected,
    BudgetOverrunExpected,
]

PAYLOAD_TYPES: Dict[AnomalyType, Tuple[Type, Type]] = {
    AnomalyType.DUPLICATE_TRANSACTION: (DuplicateDetected, DuplicateExpected),
    AnomalyType.UNUSUAL_AMOUNT: (UnusualAmountDetected, UnusualAmountExpected),
    AnomalyType.SPENDING_SPIKE: (SpendingSpikeDetected, SpendingSpikeExpected),
    AnomalyType.SUSPICIOUS_VENDOR: (SuspiciousVendorDetected, SuspiciousVendorExpected),
    AnomalyType.MISSING_RECEIPT: (MissingReceiptDetected, MissingReceiptExpected),
    AnomalyType.BUDGET_OVERRUN: (BudgetOverrunDetected, BudgetOverrunExpected),
}


@dataclass(frozen=True)
class AnomalyFinding:
    tenant_id: str
    type: AnomalyType
    severity: Severity
    resource: str
    resource_id: str
    title: str
    description: str
    detected_value: DetectedValue
    expected_value: ExpectedValue
    confidence: float
    persist: bool = True

    def __post_init__(self) -> None:
        detected_cls, expected_cls = PAYLOAD_TYPES[self.type]
        if not isinstance(self.detected_value, detected_cls):
            raise TypeError(
                f"{self.type.value} expects detected_value {detected_cls.__name__}, "
                f"got {type(self.detected_value).__name__}"
            )
        if not isinstance(self.expected_value, expected_cls):
            raise TypeError(
                f"{self.type.value} expects expected_value {expected_cls.__name__}, "
                f"got {type(self.expected_value).__name__}"
            )
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")


def payload_as_dict(payload: Any) -> Dict[str, Any]:
    return asdict(payload)


def payload_from_dict(cls: Type, data: Optional[Dict[str, Any]]) -> Any:
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in (data or {}).items() if k in known})


def load_payloads(anomaly_type: str, detected: Optional[dict], expected: Optional[dict]) -> Tuple[Any, Any]:
    detected_cls, expected_cls = PAYLOAD_TYPES[AnomalyType(anomaly_type)]
    return payload_from_dict(detected_cls, detected), payload_from_dict(expected_cls, expected)


def finding_as_dict(finding: AnomalyFinding) -> Dict[str, Any]:
    return {
        "tenant_id": finding.tenant_id,
        "type": finding.type.value,
        "severity": finding.severity.value,
        "resource": finding.resource,
        "resource_id": finding.resource_id,
        "title": finding.title,
        "description": finding.description,
        "detected_value": payload_as_dict(finding.detected_value),
        "expected_value": payload_as_dict(finding.expected_value),
        "confidence": finding.confidence,
        "persisted": finding.persist,
    }
